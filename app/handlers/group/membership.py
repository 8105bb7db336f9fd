"""
Target group membership: chat_member updates.

Joins through a tracked KOL link create a referral record and a verification
prompt; leaves and kicks delete the record.
"""
import logging

from aiogram import Router, Bot
from aiogram.types import ChatMemberUpdated

from config import BotConfig
from app.core.structured_logger import log_event
from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE
from app.services.referrals import (
    classify_membership_change,
    register_join,
    register_leave,
    MembershipTransition,
    JoinResult,
)
from app.handlers.common.keyboards import get_verify_keyboard
from app.handlers.common.utils import escape_html, resolve_display_name, user_mention_html

membership_router = Router()
logger = logging.getLogger(__name__)


async def send_verification_prompt(bot: Bot, chat_id: int, user_id: int, user_name: str, kol_name: str) -> bool:
    """
    Post the verification prompt to the group.

    Failure is logged only: the referral record stays and the user can still
    verify through /start in a private chat.
    """
    text = i18n_get_text(
        DEFAULT_LANGUAGE,
        "membership.verify_prompt",
        mention=user_mention_html(user_id, user_name),
        kol_name=escape_html(kol_name),
    )
    try:
        await bot.send_message(
            chat_id,
            text,
            parse_mode="HTML",
            reply_markup=get_verify_keyboard(user_id),
        )
    except Exception as e:
        logger.error(f"VERIFY_PROMPT_SEND_FAILED [user={user_id}, chat={chat_id}]: {type(e).__name__}: {e}")
        return False
    logger.info(f"VERIFY_PROMPT_SENT [user={user_id}, chat={chat_id}]")
    return True


@membership_router.chat_member()
async def on_chat_member_updated(event: ChatMemberUpdated, bot: Bot, bot_config: BotConfig):
    """Join/leave transitions for the configured target group"""
    if event.chat.id != bot_config.target_group_id:
        return

    user = event.new_chat_member.user
    old_status = event.old_chat_member.status if event.old_chat_member else None
    new_status = event.new_chat_member.status
    transition = classify_membership_change(old_status, new_status)

    logger.info(
        f"CHAT_MEMBER_UPDATE [user={user.id}, chat={event.chat.id}, "
        f"old={getattr(old_status, 'value', old_status)}, new={getattr(new_status, 'value', new_status)}, "
        f"transition={transition.value}]"
    )

    try:
        if transition is MembershipTransition.JOINED:
            await _handle_join(event, bot, bot_config)
        elif transition is MembershipTransition.LEFT:
            status = await register_leave(user.id)
            log_event(
                logger,
                component="membership",
                operation="leave",
                correlation_id=str(user.id),
                outcome=status.value,
            )
    except Exception as e:
        log_event(
            logger,
            component="membership",
            operation=transition.value,
            correlation_id=str(user.id),
            outcome="failed",
            reason=f"{type(e).__name__}: {str(e)[:200]}",
            level="error",
        )
        logger.exception(f"Unexpected error in chat_member handler: user={user.id}")


async def _handle_join(event: ChatMemberUpdated, bot: Bot, bot_config: BotConfig) -> JoinResult:
    user = event.new_chat_member.user
    user_name = resolve_display_name(user)
    invite_link_url = event.invite_link.invite_link if event.invite_link else None

    result = await register_join(
        user_id=user.id,
        user_name=user_name,
        invite_link_url=invite_link_url,
    )
    log_event(
        logger,
        component="membership",
        operation="join",
        correlation_id=str(user.id),
        outcome=result.status.value,
    )

    if result.should_prompt:
        await send_verification_prompt(
            bot,
            chat_id=bot_config.target_group_id,
            user_id=user.id,
            user_name=user_name,
            kol_name=result.kol_name,
        )
    return result
