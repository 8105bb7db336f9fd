"""
User commands: /start (private status check), /getchatid (any chat)
"""
import logging

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE
from app.services.referrals import get_referral_state, ReferralState
from app.handlers.common.guards import is_private_chat
from app.handlers.common.keyboards import get_verify_keyboard
from app.handlers.common.utils import escape_html, resolve_display_name

user_router = Router()
logger = logging.getLogger(__name__)


@user_router.message(Command("start"))
async def cmd_start(message: Message):
    """
    Self-service status check.

    Unverified referred users get the verification button in the private chat,
    so they can verify even if the group prompt was missed or failed to send.
    """
    if not is_private_chat(message):
        logger.debug(f"Ignoring /start in non-private chat {message.chat.id}")
        return

    user = message.from_user
    user_name = escape_html(resolve_display_name(user))
    logger.info(f"/start from user {user.id}")

    try:
        state = await get_referral_state(user.id)
    except Exception as e:
        logger.error(f"REFERRAL_STATUS_CHECK_FAILED [user={user.id}]: {type(e).__name__}: {e}")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "start.status_error"))
        return

    if state is ReferralState.UNVERIFIED:
        await message.answer(
            i18n_get_text(DEFAULT_LANGUAGE, "start.dm_prompt", user_name=user_name),
            parse_mode="HTML",
            reply_markup=get_verify_keyboard(user.id),
        )
    elif state is ReferralState.VERIFIED:
        await message.answer(
            i18n_get_text(DEFAULT_LANGUAGE, "start.already_verified", user_name=user_name),
            parse_mode="HTML",
        )
    else:
        await message.answer(
            i18n_get_text(DEFAULT_LANGUAGE, "start.welcome", user_name=user_name),
            parse_mode="HTML",
        )


@user_router.message(Command("getchatid"))
async def cmd_getchatid(message: Message):
    """Show chat id, used when filling in TARGET_GROUP_ID"""
    chat = message.chat
    title = chat.title or (message.from_user.first_name if message.from_user else None)
    title = title or i18n_get_text(DEFAULT_LANGUAGE, "chat.title_fallback")
    logger.info(f"/getchatid in {chat.type} chat {chat.id}")
    await message.answer(
        i18n_get_text(
            DEFAULT_LANGUAGE,
            "chat.info",
            title=escape_html(title),
            chat_type=escape_html(str(getattr(chat.type, "value", chat.type))),
            chat_id=chat.id,
        ),
        parse_mode="HTML",
    )
