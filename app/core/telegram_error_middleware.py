"""
Global Telegram update error boundary middleware.

No handler exception may crash update processing.
Never swallows CancelledError.
"""
import asyncio
import logging
from typing import Callable, Awaitable, Dict, Any, Optional

from aiogram import BaseMiddleware
from aiogram.exceptions import TelegramForbiddenError, TelegramBadRequest
from aiogram.types import Update

from app.core.structured_logger import log_event
from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE

logger = logging.getLogger(__name__)


def _describe_update(event: Any) -> Dict[str, Optional[int]]:
    """Best-effort correlation data (update id, acting user id) for logging."""
    update_id = getattr(event, "update_id", None)
    user_id = None
    if isinstance(event, Update):
        inner = event.event
        from_user = getattr(inner, "from_user", None)
        if from_user is None:
            # chat_member updates carry the acting user as from_user too,
            # the subject user is on new_chat_member
            new_member = getattr(inner, "new_chat_member", None)
            from_user = getattr(new_member, "user", None)
        user_id = getattr(from_user, "id", None)
    return {"update_id": update_id, "user_id": user_id}


class TelegramErrorBoundaryMiddleware(BaseMiddleware):
    """
    Outer update middleware wrapping handler execution in an error boundary.

    TelegramForbiddenError (bot blocked / removed from chat) -> debug log.
    TelegramBadRequest -> warning log.
    Anything else -> logged with context; callback queries get a generic alert.
    """

    async def __call__(
        self,
        handler: Callable[[Any, Dict[str, Any]], Awaitable[Any]],
        event: Any,
        data: Dict[str, Any],
    ) -> Any:
        try:
            return await handler(event, data)
        except asyncio.CancelledError:
            raise
        except TelegramForbiddenError as e:
            logger.debug("TelegramForbiddenError (bot blocked or removed from chat): %s", e)
            return None
        except TelegramBadRequest as e:
            logger.warning("TelegramBadRequest: %s", e)
            return None
        except Exception as e:
            context = _describe_update(event)
            log_event(
                logger,
                component="telegram",
                operation="update_processing",
                correlation_id=context["update_id"],
                outcome="failed",
                reason=f"{type(e).__name__}: {str(e)[:200]}",
                level="error",
            )
            logger.exception(
                "UNHANDLED_HANDLER_EXCEPTION update_id=%s user_id=%s",
                context["update_id"], context["user_id"],
            )

            callback_query = getattr(event, "callback_query", None)
            if callback_query is not None:
                try:
                    await callback_query.answer(
                        i18n_get_text(DEFAULT_LANGUAGE, "errors.generic_alert"),
                        show_alert=True,
                    )
                except Exception as answer_error:
                    logger.debug("Fallback callback answer failed: %s", answer_error)

            return None
