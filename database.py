import asyncpg
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List

from app.utils.retry import retry_async

logger = logging.getLogger(__name__)

# ====================================================================================
# SAFE STARTUP GUARD: database readiness flag
# ====================================================================================
# False until init_db() has created the pool and applied migrations.
# While False the bot keeps polling in degraded mode. Queries are not gated on it:
# they raise whatever the driver raises (RuntimeError before configure()).
# ====================================================================================
DB_READY: bool = False

_pool: Optional[asyncpg.Pool] = None
# Created lazily inside the running loop; serializes first-use pool creation
_pool_lock: Optional[asyncio.Lock] = None
_pool_config: Optional[Dict[str, Any]] = None
_database_url: Optional[str] = None


# ====================================================================================
# UTC HELPERS: DB boundary, TIMESTAMP WITHOUT TIME ZONE requires naive UTC
# ====================================================================================
# The schema uses TIMESTAMP (without time zone). The application layer uses aware UTC.
# All datetimes passed TO asyncpg go through _to_db_utc, all read FROM the DB through
# _from_db_utc.
# ====================================================================================

def _to_db_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert aware UTC datetime to naive UTC for DB storage."""
    if dt is None:
        return None
    assert dt.tzinfo == timezone.utc, f"Expected UTC, got tzinfo={dt.tzinfo}"
    return dt.replace(tzinfo=None)


def _from_db_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Convert naive DB datetime (stored as UTC) to aware UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc)
    return dt.replace(tzinfo=timezone.utc)


def _normalize_referral_row(row) -> Optional[Dict[str, Any]]:
    """Row -> dict with aware UTC timestamps"""
    if row is None:
        return None
    d = dict(row)
    for k in ("join_date", "verification_date", "created_at"):
        if isinstance(d.get(k), datetime):
            d[k] = _from_db_utc(d[k])
    return d


def _escape_like(value: str) -> str:
    """Escape ILIKE wildcards so a KOL name is matched literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def configure(database_url: str, password: str, min_size: int = 1, max_size: int = 10) -> None:
    """
    Remember connection settings. Called once from main() with values from BotConfig.
    """
    global _database_url, _pool_config
    _database_url = database_url
    _pool_config = {
        "password": password,
        "min_size": min_size,
        "max_size": max_size,
        "max_inactive_connection_lifetime": 300,
        "timeout": 10,
        "command_timeout": 30,
    }


async def get_pool() -> asyncpg.Pool:
    """
    Get the connection pool, creating it on first use.

    Pool creation is retried on transient errors only. Concurrent first callers
    share one pool: creation runs under _pool_lock and re-checks _pool.

    Raises:
        RuntimeError: database is not configured
    """
    global _pool, _pool_lock
    if not _database_url or _pool_config is None:
        raise RuntimeError("Database is not configured")
    if _pool is not None:
        return _pool

    if _pool_lock is None:
        _pool_lock = asyncio.Lock()
    async with _pool_lock:
        if _pool is None:
            _pool = await retry_async(
                lambda: asyncpg.create_pool(_database_url, **_pool_config),
                retries=1,
                base_delay=0.5,
                max_delay=5.0,
            )
            logger.info(
                "DB_POOL_CONFIG min=%s max=%s acquire_timeout=%s command_timeout=%s",
                _pool_config["min_size"], _pool_config["max_size"],
                _pool_config["timeout"], _pool_config["command_timeout"],
            )
    return _pool


async def init_db() -> bool:
    """
    Create the pool and apply migrations.

    Idempotent: returns True immediately once DB_READY is set.

    Returns:
        True on success, False on any failure (the caller decides about degraded mode)
    """
    global DB_READY, _pool

    if DB_READY:
        logger.info("Database already initialized (DB_READY=True), skipping init")
        return True

    try:
        pool = await get_pool()
    except Exception as e:
        logger.error(f"Failed to create database pool: {type(e).__name__}: {e}")
        return False

    # Let other startup tasks run before migrations take a connection
    await asyncio.sleep(0)

    import migrations
    if not await migrations.run_migrations_safe(pool):
        logger.error("Migration execution failed")
        return False

    DB_READY = True
    logger.info("Database initialized, DB_READY=True")
    return True


async def close_pool():
    """Close the connection pool"""
    global _pool, DB_READY
    if _pool:
        await _pool.close()
        _pool = None
        DB_READY = False
        logger.info("Database connection pool closed")


# ====================================================================================
# KOL LINK REGISTRY
# ====================================================================================

async def find_kol_link(link_url: str) -> Optional[Dict[str, Any]]:
    """Return the kol_links row for an invite link URL, or None"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            "SELECT link_url, kol_name FROM kol_links WHERE link_url = $1",
            link_url
        )
        return dict(row) if row else None


async def insert_kol_link(link_url: str, kol_name: str) -> None:
    """Register an issued invite link. Raises on duplicate URL or DB error."""
    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(
            "INSERT INTO kol_links (link_url, kol_name) VALUES ($1, $2)",
            link_url, kol_name
        )


async def list_kol_links() -> List[Dict[str, Any]]:
    """All registered links ordered by KOL name"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            "SELECT link_url, kol_name FROM kol_links ORDER BY kol_name ASC, created_at ASC"
        )
        return [dict(row) for row in rows]


# ====================================================================================
# REFERRAL RECORDS
# ====================================================================================

async def upsert_referral(
    user_id: int,
    kol_name: Optional[str],
    user_name: str,
    join_date: datetime,
) -> Dict[str, Any]:
    """
    Insert or overwrite the referral record for a user.

    A re-join resets verification: verified = FALSE, verification_date = NULL.

    Returns:
        The stored row
    """
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """INSERT INTO referrals
                   (user_id, referred_by_kol_name, user_name, join_date, verified, verification_date)
               VALUES ($1, $2, $3, $4, FALSE, NULL)
               ON CONFLICT (user_id) DO UPDATE SET
                   referred_by_kol_name = EXCLUDED.referred_by_kol_name,
                   user_name = EXCLUDED.user_name,
                   join_date = EXCLUDED.join_date,
                   verified = FALSE,
                   verification_date = NULL
               RETURNING *""",
            user_id, kol_name, user_name, _to_db_utc(join_date)
        )
        return _normalize_referral_row(row)


async def mark_referral_verified(user_id: int, verified_at: datetime) -> Optional[Dict[str, Any]]:
    """
    Atomically flip verified FALSE -> TRUE.

    The `verified = FALSE` predicate makes this a compare-and-set: among concurrent
    callers for the same user exactly one gets the row back.

    Returns:
        Updated row, or None if no unverified record matched
    """
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            """UPDATE referrals
               SET verified = TRUE, verification_date = $2
               WHERE user_id = $1 AND verified = FALSE
               RETURNING *""",
            user_id, _to_db_utc(verified_at)
        )
        return _normalize_referral_row(row)


async def get_referral(user_id: int) -> Optional[Dict[str, Any]]:
    """Current referral record for a user, or None"""
    pool = await get_pool()
    async with pool.acquire() as conn:
        row = await conn.fetchrow(
            "SELECT * FROM referrals WHERE user_id = $1",
            user_id
        )
        return _normalize_referral_row(row)


async def delete_referral(user_id: int) -> List[Dict[str, Any]]:
    """
    Delete the referral record for a user.

    Returns:
        Deleted rows (empty list if there was nothing to delete)
    """
    pool = await get_pool()
    async with pool.acquire() as conn:
        rows = await conn.fetch(
            "DELETE FROM referrals WHERE user_id = $1 RETURNING *",
            user_id
        )
        return [_normalize_referral_row(row) for row in rows]


async def count_referrals(kol_name: Optional[str] = None, verified_only: bool = True) -> int:
    """
    Count referral records.

    Args:
        kol_name: Case-insensitive KOL name filter (matched literally), None for all
        verified_only: Count only verified records
    """
    conditions = []
    args: List[Any] = []
    if verified_only:
        conditions.append("verified = TRUE")
    if kol_name is not None:
        args.append(_escape_like(kol_name))
        conditions.append(f"referred_by_kol_name ILIKE ${len(args)}")

    query = "SELECT COUNT(*) FROM referrals"
    if conditions:
        query += " WHERE " + " AND ".join(conditions)

    pool = await get_pool()
    async with pool.acquire() as conn:
        count = await conn.fetchval(query, *args)
        return int(count or 0)
