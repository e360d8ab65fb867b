"""Bounded retry with exponential backoff for rate-limited provider calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from app.core.errors import RateLimitedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (0-based), before applying server hints."""

    return min(base_delay * (2**attempt), max_delay)


async def with_retry(
    call: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """Run ``call``, retrying only when it raises ``RateLimitedError``.

    Each wait is the smaller of the provider's retry hint and the
    exponential backoff. Any other exception propagates on the first
    occurrence; once retries are exhausted the last rate-limit error is
    re-raised.
    """

    attempt = 0
    while True:
        try:
            return await call()
        except RateLimitedError as exc:
            if attempt >= max_retries:
                raise
            delay = min(exc.retry_after_seconds, backoff_delay(attempt, base_delay, max_delay))
            logger.warning(
                "Rate limited by %s, retrying in %.2fs (attempt %d of %d)",
                exc.provider or "provider",
                delay,
                attempt + 1,
                max_retries,
            )
            await sleep(delay)
            attempt += 1
