"""
Verify button callbacks: verify_<telegram_id>.

Every callback query is answered exactly once, whatever happens downstream.
"""
import logging
from typing import Optional

from aiogram import Router, F
from aiogram.types import CallbackQuery

from app.core.structured_logger import log_event
from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE
from app.services.referrals import (
    verify_referral,
    VerifyAction,
    VerificationResult,
    VerificationStatus,
    InvalidActionTokenError,
)
from app.services.referrals.tokens import VERIFY_PREFIX
from app.handlers.common.utils import safe_edit_text, user_mention_html

verification_router = Router()
logger = logging.getLogger(__name__)

# status -> (answer text key, show_alert)
_ANSWERS = {
    VerificationStatus.VERIFIED: ("verify.success", False),
    VerificationStatus.ALREADY_VERIFIED: ("verify.already_verified", False),
    VerificationStatus.NOT_FOUND: ("verify.not_found", True),
    VerificationStatus.FORBIDDEN: ("verify.invalid_action", True),
    VerificationStatus.CHECK_FAILED: ("verify.check_failed", True),
    VerificationStatus.UPDATE_FAILED: ("verify.db_error", True),
}


async def _answer(callback: CallbackQuery, text: Optional[str] = None, show_alert: bool = False) -> None:
    try:
        await callback.answer(text, show_alert=show_alert)
    except Exception as e:
        # Query too old or network failure; nothing left to acknowledge
        logger.warning(f"CALLBACK_ANSWER_FAILED [query={callback.id}]: {type(e).__name__}: {e}")


def _stored_name(result: VerificationResult) -> Optional[str]:
    if result.record:
        return result.record.get("user_name")
    return None


async def _update_prompt(callback: CallbackQuery, result: VerificationResult, user_id: int) -> None:
    """Move the prompt message to its final state. Never raises."""
    if result.status is VerificationStatus.VERIFIED:
        text = i18n_get_text(
            DEFAULT_LANGUAGE, "verify.success_message",
            mention=user_mention_html(user_id, _stored_name(result)),
        )
        if not await safe_edit_text(callback.message, text):
            logger.error(f"VERIFY_PROMPT_EDIT_FAILED [user={user_id}]")
    elif result.status is VerificationStatus.ALREADY_VERIFIED:
        text = i18n_get_text(
            DEFAULT_LANGUAGE, "verify.already_verified_message",
            mention=user_mention_html(user_id, _stored_name(result)),
        )
        await safe_edit_text(callback.message, text)
    elif result.status is VerificationStatus.NOT_FOUND:
        text = i18n_get_text(DEFAULT_LANGUAGE, "verify.not_found_message")
        await safe_edit_text(callback.message, text, parse_mode=None)


@verification_router.callback_query(F.data.startswith(VERIFY_PREFIX))
async def callback_verify(callback: CallbackQuery):
    """Self-verification button pressed"""
    acting_user_id = callback.from_user.id

    try:
        action = VerifyAction.parse(callback.data)
    except InvalidActionTokenError as e:
        logger.warning(f"VERIFY_INVALID_TOKEN [user={acting_user_id}]: {e}")
        await _answer(callback, i18n_get_text(DEFAULT_LANGUAGE, "verify.invalid_action"), show_alert=True)
        return

    try:
        result = await verify_referral(acting_user_id, action)
    except Exception as e:
        logger.exception(f"Unexpected error in verification: user={acting_user_id}, target={action.target_user_id}: {e}")
        result = VerificationResult(status=VerificationStatus.UPDATE_FAILED)

    text_key, show_alert = _ANSWERS[result.status]
    await _answer(callback, i18n_get_text(DEFAULT_LANGUAGE, text_key), show_alert=show_alert)

    log_event(
        logger,
        component="verification",
        operation="verify",
        correlation_id=str(callback.id),
        outcome=result.status.value,
        level="warning" if result.status is VerificationStatus.FORBIDDEN else "info",
    )

    if result.status is not VerificationStatus.FORBIDDEN:
        await _update_prompt(callback, result, action.target_user_id)


@verification_router.callback_query()
async def callback_unhandled(callback: CallbackQuery):
    """Unknown callback data: acknowledge silently"""
    logger.info(f"CALLBACK_UNHANDLED [user={callback.from_user.id}, data={callback.data!r}]")
    await _answer(callback)
