import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """Run `operation` up to `max_retries` times with exponential backoff.

    The delay before attempt n+1 is base_delay * 2 ** (n - 1). The last
    failure is re-raised once attempts run out; exceptions outside
    `retry_on` propagate immediately.
    """
    sleep = sleep or asyncio.sleep
    attempts = max(1, max_retries)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as exc:
            logger.warning("Attempt %d/%d failed: %s", attempt, attempts, exc)
            if attempt == attempts:
                raise
            delay = base_delay * 2 ** (attempt - 1)
            logger.debug("Waiting %.2fs before retry", delay)
            await sleep(delay)
