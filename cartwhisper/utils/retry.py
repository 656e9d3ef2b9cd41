# cartwhisper/utils/retry.py
from __future__ import annotations
from typing import Awaitable, Callable, Tuple, Type, TypeVar
import asyncio
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

def backoff_delay(attempt: int, base_s: float = 1.0, cap_s: float = 5.0) -> float:
    """Delay before retry number `attempt` (0-based): base, 2*base, 4*base... capped."""
    return min(base_s * (2 ** attempt), cap_s)

async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    retries: int,
    base_s: float = 1.0,
    cap_s: float = 5.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await `fn()` up to `retries + 1` times with capped exponential backoff.
    The last error is re-raised once attempts are exhausted.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except retry_on as e:
            if attempt >= retries:
                logger.error(f"{label} failed after {attempt + 1} attempts: {e}")
                raise
            delay = backoff_delay(attempt, base_s, cap_s)
            logger.warning(f"{label} attempt {attempt + 1}/{retries + 1} failed: {e}; retrying in {delay:.1f}s")
            await sleep(delay)
            attempt += 1
