import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

# ====================================================================================
# ENVIRONMENT CONFIGURATION: PROD / STAGE / LOCAL isolation through prefixes
# ====================================================================================
# Every variable is read with the environment prefix:
#   - PROD: PROD_BOT_TOKEN, PROD_TARGET_GROUP_ID, PROD_DATABASE_URL, ...
#   - STAGE: STAGE_BOT_TOKEN, STAGE_TARGET_GROUP_ID, ...
#   - LOCAL: LOCAL_BOT_TOKEN, LOCAL_TARGET_GROUP_ID, ...
#
# A STAGE bot therefore never picks up PROD_BOT_TOKEN even if it is set.
# ====================================================================================

VALID_APP_ENVS = ("prod", "stage", "local")

# Variables that must never be read without the prefix
_DIRECT_USAGE_VARS = ("BOT_TOKEN", "DATABASE_URL", "DATABASE_PASSWORD", "TARGET_GROUP_ID")


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed"""
    pass


@dataclass(frozen=True)
class BotConfig:
    """
    Process configuration, built once before any handler runs.

    Injected into handlers as ``bot_config`` through the dispatcher workflow data.
    """
    app_env: str
    bot_token: str
    target_group_id: int
    database_url: str
    database_password: str
    admin_user_ids: Tuple[int, ...] = ()
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10

    def is_admin(self, user_id: Optional[int]) -> bool:
        return user_id is not None and user_id in self.admin_user_ids


def parse_admin_ids(raw: str) -> Tuple[int, ...]:
    """
    Parse a comma-separated list of Telegram IDs.

    Blank and non-numeric entries are dropped, matching how the list has always
    been filled in by hand in deployment settings.
    """
    ids = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            ids.append(int(part))
        except ValueError:
            continue
    return tuple(ids)


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except (ValueError, AttributeError):
        raise ConfigError(f"{name} must be a number, got: {value!r}")


def load_config(environ: Optional[Mapping[str, str]] = None) -> BotConfig:
    """
    Build BotConfig from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Frozen BotConfig

    Raises:
        ConfigError: required variable missing or malformed
    """
    if environ is None:
        environ = os.environ

    app_env = environ.get("APP_ENV", "prod").lower()
    if app_env not in VALID_APP_ENVS:
        raise ConfigError(f"Invalid APP_ENV={app_env}. Must be one of: {', '.join(VALID_APP_ENVS)}")

    prefix = app_env.upper()

    def env(key: str, default: str = "") -> str:
        return environ.get(f"{prefix}_{key}", default)

    for var in _DIRECT_USAGE_VARS:
        if environ.get(var):
            raise ConfigError(f"Direct usage of {var} is forbidden, use {prefix}_{var} instead")

    bot_token = env("BOT_TOKEN")
    if not bot_token:
        raise ConfigError(f"{prefix}_BOT_TOKEN environment variable is not set")

    target_group_raw = env("TARGET_GROUP_ID")
    if not target_group_raw:
        raise ConfigError(f"{prefix}_TARGET_GROUP_ID environment variable is not set")
    target_group_id = _parse_int(f"{prefix}_TARGET_GROUP_ID", target_group_raw)

    database_url = env("DATABASE_URL")
    database_password = env("DATABASE_PASSWORD")
    if not database_url or not database_password:
        raise ConfigError(f"{prefix}_DATABASE_URL and {prefix}_DATABASE_PASSWORD must both be set")

    min_size = _parse_int(f"{prefix}_DB_POOL_MIN_SIZE", env("DB_POOL_MIN_SIZE", "1"))
    max_size = _parse_int(f"{prefix}_DB_POOL_MAX_SIZE", env("DB_POOL_MAX_SIZE", "10"))
    if min_size < 0 or max_size < 1 or min_size > max_size:
        raise ConfigError(f"Invalid pool size: min={min_size} max={max_size}")

    return BotConfig(
        app_env=app_env,
        bot_token=bot_token,
        target_group_id=target_group_id,
        database_url=database_url,
        database_password=database_password,
        admin_user_ids=parse_admin_ids(env("ADMIN_USER_IDS")),
        db_pool_min_size=min_size,
        db_pool_max_size=max_size,
    )
