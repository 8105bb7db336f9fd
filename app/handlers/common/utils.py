"""
Shared handler utilities: display names, HTML mentions, safe edits.
"""
import logging
import re
from typing import Any, Optional

from aiogram.exceptions import TelegramBadRequest
from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.text_decorations import html_decoration

from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)

# Telegram answers editMessageText with this description when the new text and
# markup equal the current ones. Two acknowledgement paths (a fresh verification
# and an "already verified" press) can race to the same final text, so this
# error means the edit already happened.
MESSAGE_NOT_MODIFIED = "message is not modified"

MAX_DISPLAY_NAME_LENGTH = 64

# Control, zero-width and bidi-override characters
_DANGEROUS_UNICODE_RE = re.compile(
    r"[\u0000-\u001f"
    r"\u007f-\u009f"
    r"\u200b-\u200f"
    r"\u2028-\u202f"
    r"\u2060-\u2069"
    r"\ufeff"
    r"]"
)


def escape_html(text: Optional[str]) -> str:
    """Escape text for parse_mode=HTML. None -> empty string."""
    if not text:
        return ""
    return html_decoration.quote(text)


def sanitize_display_name(name: Optional[str]) -> str:
    """
    Display name cleanup for rendering.

    Strips dangerous Unicode, trims whitespace, cuts to MAX_DISPLAY_NAME_LENGTH.
    """
    if not name:
        return ""
    name = _DANGEROUS_UNICODE_RE.sub("", name).strip()
    if len(name) > MAX_DISPLAY_NAME_LENGTH:
        name = name[:MAX_DISPLAY_NAME_LENGTH].rstrip()
    return name


def resolve_display_name(user: Any) -> str:
    """
    Raw display name of a Telegram user: first_name, else username, else "User <id>".

    The result is unescaped; it is what gets stored in the referral record.
    """
    first_name = getattr(user, "first_name", None)
    if first_name:
        return first_name
    username = getattr(user, "username", None)
    if username:
        return username
    return i18n_get_text(DEFAULT_LANGUAGE, "common.user_fallback", user_id=getattr(user, "id", "?"))


def user_mention_html(user_id: int, user_name: Optional[str]) -> str:
    """tg://user mention with an escaped, sanitized name"""
    name = sanitize_display_name(user_name) or i18n_get_text(
        DEFAULT_LANGUAGE, "common.user_fallback", user_id=user_id
    )
    return i18n_get_text(
        DEFAULT_LANGUAGE,
        "common.mention",
        user_id=user_id,
        user_name=escape_html(name),
    )


def is_message_not_modified(error: TelegramBadRequest) -> bool:
    return MESSAGE_NOT_MODIFIED in str(error).lower()


async def safe_edit_text(
    message: Any,
    text: str,
    reply_markup: Optional[InlineKeyboardMarkup] = None,
    parse_mode: Optional[str] = "HTML",
) -> bool:
    """
    Edit a message's text, removing its keyboard unless reply_markup is given.

    "message is not modified" counts as success. Any other failure is logged and
    reported as False; callers decide whether that matters.

    Returns:
        True if the message now shows text
    """
    if message is None or not hasattr(message, "edit_text"):
        # InaccessibleMessage (too old) or no message at all
        logger.warning("SAFE_EDIT_SKIP message is inaccessible")
        return False

    try:
        await message.edit_text(text, reply_markup=reply_markup, parse_mode=parse_mode)
        return True
    except TelegramBadRequest as e:
        if is_message_not_modified(e):
            logger.debug("SAFE_EDIT message already in final state: chat=%s", getattr(message.chat, "id", None))
            return True
        logger.warning(f"SAFE_EDIT_BAD_REQUEST chat={getattr(message.chat, 'id', None)}: {e}")
        return False
    except Exception as e:
        logger.error(f"SAFE_EDIT_FAILED chat={getattr(getattr(message, 'chat', None), 'id', None)}: {type(e).__name__}: {e}")
        return False
