"""
Async retry utility for transient failures.

Retry policy:
- Exponential backoff with jitter
- Only transient infra errors are retried (asyncpg, aiohttp, timeouts, OS errors)
- Domain errors are raised immediately
- The original exception is re-raised after the final attempt
- No logging inside the utility (caller handles logging)
"""

import asyncio
import inspect
import random
from typing import Callable, Type, Tuple, Any
import asyncpg
import aiohttp


DEFAULT_RETRIES = 2
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


TRANSIENT_EXCEPTIONS: Tuple[Type[Exception], ...] = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncio.TimeoutError,
    aiohttp.ClientError,
    ConnectionError,
    OSError,
)


async def retry_async(
    fn: Callable[[], Any],
    *,
    retries: int = DEFAULT_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    retry_on: Tuple[Type[Exception], ...] = TRANSIENT_EXCEPTIONS,
) -> Any:
    """
    Retry an async callable with exponential backoff.

    Args:
        fn: Callable returning an awaitable
        retries: Number of retry attempts (total attempts = retries + 1)
        base_delay: Base delay in seconds
        max_delay: Delay cap in seconds
        retry_on: Exception types considered transient

    Returns:
        Result of the call

    Raises:
        The last exception once retries are exhausted, or any non-retryable exception
    """
    for attempt in range(retries + 1):
        try:
            result = fn()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            if not isinstance(e, retry_on):
                raise
            if attempt >= retries:
                raise

            delay = min(base_delay * (2 ** attempt), max_delay)
            # ±20% jitter
            jitter = delay * 0.2 * (random.random() * 2 - 1)
            await asyncio.sleep(max(0, delay + jitter))

    raise RuntimeError("retry_async: unexpected end of retry loop")
