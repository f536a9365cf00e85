"""Bounded retry with pluggable backoff.

Shared by the crawler (per-page fetches) and the AI fixer (completion calls).
A policy allows ``max_retries`` additional attempts after the first one; the
delay before retry ``n`` (1-based) is ``backoff(base_delay, n, error)``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Backoff = Callable[[float, int, BaseException], float]


def linear_backoff(base_delay: float, attempt: int, error: BaseException) -> float:
    return base_delay * attempt


def constant_backoff(base_delay: float, attempt: int, error: BaseException) -> float:
    return base_delay


def exponential_backoff(base_delay: float, attempt: int, error: BaseException) -> float:
    return base_delay * (2 ** (attempt - 1))


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int
    base_delay: float
    backoff: Backoff = linear_backoff
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def delay_for(self, attempt: int, error: BaseException) -> float:
        return max(0.0, self.backoff(self.base_delay, attempt, error))

    async def call(self, fn: Callable[[], Awaitable[T]], *, label: str = "") -> T:
        """Await ``fn()`` until it succeeds or retries run out.

        The last error is re-raised once ``max_retries`` retries have failed.
        """
        attempt = 0
        while True:
            try:
                return await fn()
            except Exception as exc:
                if attempt >= self.max_retries:
                    raise
                attempt += 1
                delay = self.delay_for(attempt, exc)
                logger.warning(
                    "Retry %d/%d for %s in %.1fs: %s",
                    attempt,
                    self.max_retries,
                    label or "operation",
                    delay,
                    exc,
                )
                await self.sleep(delay)
