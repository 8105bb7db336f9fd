import asyncio
import hashlib
import logging
import os
import sys
import uuid
from datetime import datetime, timezone

# Configure logging FIRST (before any other imports that may log)
# Routes INFO/WARNING -> stdout, ERROR/CRITICAL -> stderr
from app.core.logging_config import setup_logging
setup_logging()

from aiogram import Bot, Dispatcher
from aiogram.exceptions import TelegramConflictError
from aiogram.types import BotCommand

import database
from config import BotConfig, ConfigError, load_config
from app.core.structured_logger import log_event
from app.core.telegram_error_middleware import TelegramErrorBoundaryMiddleware
from app.handlers import router as root_router
from app.i18n import get_text as i18n_get_text, DEFAULT_LANGUAGE

# ====================================================================================
# LOGGING CONTRACT
# ====================================================================================
# Lifecycle events go through log_event(component, operation, outcome, ...):
# - polling: polling_start / polling_crash / polling_cancelled / conflict
# - database: init / retry
# - shutdown: shutdown_start / shutdown_completed
# Handlers log per-user events with the user id as correlation id.
# Secrets are never logged; the bot token only as a short sha256 prefix.
# ====================================================================================

logger = logging.getLogger(__name__)

# chat_member updates are only delivered when requested explicitly
ALLOWED_UPDATES = ["message", "chat_member", "callback_query"]

DB_RETRY_INTERVAL_SECONDS = 30
POLLING_RESTART_DELAY_SECONDS = 5


def build_dispatcher(bot_config: BotConfig) -> Dispatcher:
    """Dispatcher with the error boundary and all routers; bot_config is injected into handlers"""
    dp = Dispatcher(bot_config=bot_config)
    dp.update.middleware(TelegramErrorBoundaryMiddleware())
    dp.include_router(root_router)
    return dp


async def retry_db_init() -> None:
    """
    Background re-initialization of the database while it is unreachable.

    Stops once init_db() succeeds. Never raises except on cancellation.
    """
    logger.info(f"Starting DB initialization retry task (every {DB_RETRY_INTERVAL_SECONDS} seconds)")
    while not database.DB_READY:
        await asyncio.sleep(DB_RETRY_INTERVAL_SECONDS)
        try:
            if await database.init_db():
                log_event(logger, component="database", operation="retry", outcome="success")
                break
            logger.warning("Database initialization retry failed, will retry later")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Database initialization retry error: {type(e).__name__}: {e}")
    logger.info("DB retry task finished")


async def register_commands(bot: Bot) -> None:
    try:
        await bot.set_my_commands([
            BotCommand(command="start", description=i18n_get_text(DEFAULT_LANGUAGE, "commands.start")),
            BotCommand(command="getchatid", description=i18n_get_text(DEFAULT_LANGUAGE, "commands.getchatid")),
        ])
        logger.info("Bot commands registered")
    except Exception as e:
        logger.warning(f"Failed to register bot commands: {e}")


async def main(bot_config: BotConfig):
    instance_id = str(uuid.uuid4())
    logger.info(
        "BOT_INSTANCE_STARTED pid=%s instance_id=%s PROCESS_START_TIMESTAMP=%s",
        os.getpid(), instance_id, datetime.now(timezone.utc).isoformat()
    )
    logger.info("BOT_TOKEN_HASH=%s (first 8 chars of sha256)",
                hashlib.sha256(bot_config.bot_token.encode()).hexdigest()[:8])
    logger.info(f"Starting bot in {bot_config.app_env.upper()} environment, target group {bot_config.target_group_id}")

    if not bot_config.admin_user_ids:
        logger.warning(f"No admin user IDs configured ({bot_config.app_env.upper()}_ADMIN_USER_IDS), admin commands are disabled")
    else:
        logger.info(f"Admin user IDs configured: {len(bot_config.admin_user_ids)}")

    database.configure(
        bot_config.database_url,
        bot_config.database_password,
        min_size=bot_config.db_pool_min_size,
        max_size=bot_config.db_pool_max_size,
    )

    bot = Bot(token=bot_config.bot_token)
    dp = build_dispatcher(bot_config)

    # ====================================================================================
    # SAFE STARTUP GUARD: the bot starts even if the database is unreachable.
    # Handlers report DB failures to users; a background task keeps retrying init.
    # ====================================================================================
    background_tasks = []
    try:
        db_ok = await database.init_db()
    except Exception as e:
        logger.exception(f"Database initialization error: {type(e).__name__}: {e}")
        db_ok = False

    if db_ok:
        log_event(logger, component="database", operation="init", outcome="success")
    else:
        log_event(logger, component="database", operation="init", outcome="failed",
                  reason="running in degraded mode", level="error")
        background_tasks.append(asyncio.create_task(retry_db_init()))

    await register_commands(bot)

    try:
        while True:
            try:
                await bot.delete_webhook(drop_pending_updates=False)
                log_event(
                    logger,
                    component="polling",
                    operation="polling_start",
                    outcome="success",
                    correlation_id=instance_id,
                )
                await dp.start_polling(
                    bot,
                    allowed_updates=ALLOWED_UPDATES,
                    polling_timeout=30,
                    handle_signals=False,
                )
                break
            except asyncio.CancelledError:
                log_event(logger, component="polling", operation="polling_cancelled", outcome="cancelled")
                break
            except TelegramConflictError:
                log_event(
                    logger,
                    component="polling",
                    operation="conflict",
                    outcome="failed",
                    reason="another bot instance is running",
                    level="critical",
                )
                raise SystemExit(1)
            except Exception as e:
                # Connectivity problems must not end the process
                log_event(
                    logger,
                    component="polling",
                    operation="polling_crash",
                    outcome="failed",
                    reason=f"{type(e).__name__}: {str(e)[:200]}",
                    level="error",
                )
                logger.info(f"Restarting polling in {POLLING_RESTART_DELAY_SECONDS} seconds...")
                await asyncio.sleep(POLLING_RESTART_DELAY_SECONDS)
    finally:
        log_event(logger, component="shutdown", operation="shutdown_start", outcome="success")

        for task in background_tasks:
            if not task.done():
                task.cancel()
        for task in background_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"Error during shutdown of task {task.get_name()}: {e}")

        try:
            await database.close_pool()
        except Exception as e:
            logger.error(f"Error closing database pool: {e}")

        try:
            await bot.session.close()
            logger.info("Bot session closed")
        except Exception as e:
            logger.debug(f"Error closing bot session: {e}")

        log_event(logger, component="shutdown", operation="shutdown_completed", outcome="success")


def run():
    """Console entry point: validate configuration, then serve until interrupted"""
    try:
        bot_config = load_config()
    except ConfigError as e:
        logger.critical(f"FATAL: {e}")
        sys.exit(1)

    try:
        asyncio.run(main(bot_config))
    except KeyboardInterrupt:
        logger.info("Bot stopped")


if __name__ == "__main__":
    run()
