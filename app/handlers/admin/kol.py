"""
Admin commands: /createlink, /listkols, /refcount
"""
import logging
import time
from typing import Dict, List, Optional

from aiogram import Router, Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import Command, CommandObject
from aiogram.types import Message

from config import BotConfig
from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE
from app.services.kol_links import (
    build_invite_link_name,
    normalize_kol_name,
    register_kol_link,
    get_kol_directory,
    count_verified_referrals,
    InvalidKolNameError,
)
from app.handlers.common.guards import ensure_admin_private
from app.handlers.common.utils import escape_html

admin_kol_router = Router()
logger = logging.getLogger(__name__)

# Telegram message length limit
MAX_MESSAGE_LENGTH = 4096


def render_kol_directory(directory: Dict[str, List[str]], max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """
    HTML directory of tracked links grouped by KOL.

    Output longer than max_length is cut at a line boundary (so no HTML tag is
    split) and ends with a truncation marker.
    """
    total = sum(len(links) for links in directory.values())
    lines = [i18n_get_text(DEFAULT_LANGUAGE, "admin.listkols_title", count=total), ""]
    for kol_name, links in directory.items():
        lines.append(i18n_get_text(DEFAULT_LANGUAGE, "admin.listkols_kol", kol_name=escape_html(kol_name)))
        for link in links:
            lines.append(i18n_get_text(DEFAULT_LANGUAGE, "admin.listkols_link", link=escape_html(link)))
        lines.append("")

    text = "\n".join(lines).rstrip("\n")
    if len(text) <= max_length:
        return text

    marker = "\n" + i18n_get_text(DEFAULT_LANGUAGE, "admin.list_truncated")
    budget = max_length - len(marker)
    kept: List[str] = []
    used = 0
    for line in lines:
        cost = len(line) + (1 if kept else 0)
        if used + cost > budget:
            break
        kept.append(line)
        used += cost
    return "\n".join(kept).rstrip("\n") + marker


@admin_kol_router.message(Command("createlink"))
async def cmd_createlink(message: Message, command: CommandObject, bot: Bot, bot_config: BotConfig):
    """Create a tracked invite link for a KOL"""
    if not await ensure_admin_private(message, bot_config):
        return

    try:
        kol_name = normalize_kol_name(command.args)
    except InvalidKolNameError:
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "admin.createlink_usage"), parse_mode="HTML")
        return

    target_group_id = bot_config.target_group_id
    logger.info(f"Admin {message.from_user.id} requesting link for KOL {kol_name!r} in group {target_group_id}")

    try:
        invite_link = await bot.create_chat_invite_link(
            chat_id=target_group_id,
            name=build_invite_link_name(kol_name, int(time.time() * 1000)),
        )
    except TelegramAPIError as e:
        reason = getattr(e, "message", None) or str(e)
        logger.error(f"KOL_LINK_CREATE_FAILED [kol={kol_name}, group={target_group_id}]: {reason}")
        await message.answer(
            i18n_get_text(
                DEFAULT_LANGUAGE,
                "admin.link_create_failed",
                kol_name=escape_html(kol_name),
                reason=escape_html(reason),
                group_id=target_group_id,
            ),
            parse_mode="HTML",
        )
        return

    link_url = invite_link.invite_link
    try:
        await register_kol_link(link_url, kol_name)
    except Exception as e:
        logger.error(f"KOL_LINK_SAVE_FAILED [kol={kol_name}, link={link_url}]: {type(e).__name__}: {e}")
        await message.answer(
            i18n_get_text(
                DEFAULT_LANGUAGE,
                "admin.link_untracked",
                kol_name=escape_html(kol_name),
                link=escape_html(link_url),
            ),
            parse_mode="HTML",
        )
        return

    await message.answer(
        i18n_get_text(
            DEFAULT_LANGUAGE,
            "admin.link_created",
            kol_name=escape_html(kol_name),
            link=escape_html(link_url),
        ),
        parse_mode="HTML",
    )


@admin_kol_router.message(Command("listkols"))
async def cmd_listkols(message: Message, bot_config: BotConfig):
    """Directory of tracked links grouped by KOL"""
    if not await ensure_admin_private(message, bot_config):
        return

    logger.info(f"Admin {message.from_user.id} requested /listkols")

    try:
        directory = await get_kol_directory()
    except Exception as e:
        logger.error(f"KOL_LIST_FAILED: {type(e).__name__}: {e}")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "admin.listkols_error"))
        return

    if not directory:
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "admin.listkols_empty"))
        return

    await message.answer(render_kol_directory(directory), parse_mode="HTML")


@admin_kol_router.message(Command("refcount"))
async def cmd_refcount(message: Message, command: CommandObject, bot_config: BotConfig):
    """Verified referral count, total or for one KOL"""
    if not await ensure_admin_private(message, bot_config):
        return

    kol_name: Optional[str] = (command.args or "").strip() or None
    logger.info(
        f"Admin {message.from_user.id} requested /refcount"
        + (f" for KOL {kol_name!r}" if kol_name else " (total)")
    )

    try:
        result = await count_verified_referrals(kol_name)
    except Exception as e:
        logger.error(f"REFCOUNT_FAILED [kol={kol_name}]: {type(e).__name__}: {e}")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "admin.refcount_error"))
        return

    if kol_name is None:
        text = i18n_get_text(DEFAULT_LANGUAGE, "admin.refcount_total", count=result.count)
    elif not result.kol_known:
        text = i18n_get_text(DEFAULT_LANGUAGE, "admin.refcount_unknown_kol", kol_name=escape_html(kol_name))
    else:
        text = i18n_get_text(
            DEFAULT_LANGUAGE, "admin.refcount_kol", kol_name=escape_html(kol_name), count=result.count
        )
    await message.answer(text, parse_mode="HTML")
