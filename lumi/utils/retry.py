from __future__ import annotations

import asyncio
from dataclasses import dataclass

from ..constants import DEFAULT_BACKOFF_BASE, DEFAULT_BACKOFF_CAP, DEFAULT_BACKOFF_INITIAL
from ..errors import is_retryable


def compute_backoff(
    attempt: int,
    base: float = DEFAULT_BACKOFF_BASE,
    initial: float = DEFAULT_BACKOFF_INITIAL,
    cap: float = DEFAULT_BACKOFF_CAP,
) -> float:
    """Compute capped exponential backoff for the retry after ``attempt``.

    The schedule is non-decreasing in ``attempt``.
    """
    delay = initial * base ** max(attempt - 1, 0)
    return min(cap, delay)


@dataclass
class RetryPolicy:
    """Bounded re-attempts with backoff."""

    base: float = DEFAULT_BACKOFF_BASE
    initial: float = DEFAULT_BACKOFF_INITIAL
    cap: float = DEFAULT_BACKOFF_CAP

    def backoff(self, attempt: int) -> float:
        return compute_backoff(attempt, self.base, self.initial, self.cap)

    def should_retry(self, error: BaseException, attempt: int, max_attempts: int) -> bool:
        """Return ``True`` if the run gets another attempt after ``error``."""
        if attempt >= max_attempts:
            return False
        return is_retryable(error)

    async def wait(self, attempt: int) -> None:
        """Sleep for computed backoff delay before retrying."""
        await schedule_retry(self.backoff(attempt))


async def schedule_retry(delay: float) -> None:
    await asyncio.sleep(delay)
