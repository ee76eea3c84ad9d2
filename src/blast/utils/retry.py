"""Bounded polling with exponential backoff.

The schedule is a pure function of the policy, and the sleep function is
injected, so callers and tests can run the full schedule without real delays.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from blast.config import Settings
from blast.domain.errors import PermanentIO, TransientIO
from blast.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def backoff_delays(
    max_attempts: int,
    base_delay: float,
    multiplier: float,
    initial_delay: float = 0.0,
) -> list[float]:
    """Seconds to wait before each attempt.

    The first attempt waits ``initial_delay``; attempt n+1 waits
    ``base_delay * multiplier ** (n - 1)`` after attempt n fails.

    >>> backoff_delays(5, base_delay=2.0, multiplier=2.0, initial_delay=2.0)
    [2.0, 2.0, 4.0, 8.0, 16.0]
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    retries = [float(base_delay * multiplier**n) for n in range(max_attempts - 1)]
    return [float(initial_delay), *retries]


@dataclass(frozen=True)
class BackoffPolicy:
    """Retry policy for polling an eventually-consistent resource."""

    max_attempts: int = 5
    initial_delay: float = 2.0
    base_delay: float = 2.0
    multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackoffPolicy":
        return cls(
            max_attempts=settings.url_resolve_max_attempts,
            initial_delay=settings.url_resolve_settle_seconds,
            base_delay=settings.url_resolve_base_delay_seconds,
            multiplier=settings.url_resolve_multiplier,
        )

    def delays(self) -> list[float]:
        return backoff_delays(
            self.max_attempts,
            base_delay=self.base_delay,
            multiplier=self.multiplier,
            initial_delay=self.initial_delay,
        )


async def poll_until_available(
    probe: Callable[[], Awaitable[T | None]],
    policy: BackoffPolicy,
    sleep: Sleep = asyncio.sleep,
    description: str = "resource",
) -> T:
    """Call ``probe`` until it returns a value, following ``policy``.

    A probe returning None, or raising TransientIO, counts as "not yet
    available" for that attempt.

    Raises:
        PermanentIO: If every attempt comes back empty
    """
    delays = policy.delays()
    for attempt, delay in enumerate(delays, start=1):
        await sleep(delay)
        try:
            result = await probe()
        except TransientIO as e:
            logger.warning("poll_attempt_error", target=description, attempt=attempt, error=str(e))
            result = None

        if result is not None:
            logger.debug("poll_succeeded", target=description, attempt=attempt)
            return result

        logger.debug("poll_not_ready", target=description, attempt=attempt)

    raise PermanentIO(
        f"{description} not available after {len(delays)} attempts",
        attempts=len(delays),
    )
