"""
Permission guards for admin commands.
"""
import logging

from aiogram.enums import ChatType
from aiogram.types import Message

from config import BotConfig
from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)


def is_private_chat(message: Message) -> bool:
    return message.chat.type == ChatType.PRIVATE


async def ensure_admin_private(message: Message, bot_config: BotConfig) -> bool:
    """
    Admin commands run only for allow-listed users and only in a private chat.

    A rejected caller gets a message; nothing else happens.

    Returns:
        True if the command may proceed
    """
    user_id = message.from_user.id if message.from_user else None

    if not bot_config.is_admin(user_id):
        logger.warning(f"ADMIN_ACCESS_DENIED [user={user_id}, chat={message.chat.id}, command={message.text!r}]")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "admin.access_denied"))
        return False

    if not is_private_chat(message):
        logger.info(f"ADMIN_COMMAND_NOT_PRIVATE [user={user_id}, chat={message.chat.id}]")
        await message.answer(i18n_get_text(DEFAULT_LANGUAGE, "admin.private_only"))
        return False

    return True
