"""
InlineKeyboardMarkup builders. Shared across handler domains.
"""
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE
from app.services.referrals.tokens import VerifyAction


def get_verify_keyboard(user_id: int, language: str = DEFAULT_LANGUAGE) -> InlineKeyboardMarkup:
    """Single "Verify Me" button bound to verify_<user_id>"""
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(
            text=i18n_get_text(language, "verify.button"),
            callback_data=VerifyAction(target_user_id=user_id).encode(),
        )]
    ])
