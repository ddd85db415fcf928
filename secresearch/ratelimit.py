"""Per-source minimum-interval rate limiting.

Each upstream source gets its own gate: successive calls to the same
source are spaced at least ``interval`` seconds apart while calls to
different sources never wait on each other.  Waiters for one source are
served in arrival order because ``asyncio.Lock`` wakes them FIFO.

The clock and sleep functions are injectable so tests can drive the
limiter with a fake clock instead of real delays.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateTier:
    """Minimum spacing between calls, with and without an API credential.

    Attributes:
        with_credential: Seconds between calls when a key is configured.
        without_credential: Seconds between anonymous calls.
    """

    with_credential: float
    without_credential: float

    def interval(self, has_credential: bool) -> float:
        return self.with_credential if has_credential else self.without_credential


class RateLimiter:
    """Minimum-interval gate keyed by source id.

    Args:
        clock: Monotonic time source in seconds.
        sleep: Coroutine function used to wait.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._intervals: dict[str, float] = {}
        self._last_grant: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def configure(self, source_id: str, interval: float) -> None:
        """Set the minimum interval for a source.

        Raises:
            ValueError: if ``interval`` is negative.
        """
        if interval < 0:
            raise ValueError(f"interval for {source_id} must be >= 0, got {interval}")
        self._intervals[source_id] = float(interval)

    def interval_for(self, source_id: str) -> float:
        """Configured interval for a source (0.0 when unknown)."""
        return self._intervals.get(source_id, 0.0)

    async def acquire(self, source_id: str) -> float:
        """Wait until ``source_id`` may be called again, then claim the slot.

        Never fails; a caller queued behind others simply waits longer.

        Args:
            source_id: Source whose gate to pass.

        Returns:
            The clock value at which the call was granted.
        """
        lock = self._locks.setdefault(source_id, asyncio.Lock())
        async with lock:
            last = self._last_grant.get(source_id)
            if last is not None:
                wait = last + self.interval_for(source_id) - self._clock()
                if wait > 0:
                    logger.debug("%s: rate limited, waiting %.3fs", source_id, wait)
                    await self._sleep(wait)
            granted = self._clock()
            self._last_grant[source_id] = granted
            return granted
