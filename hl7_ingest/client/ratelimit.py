"""
Outbound request pacing.

``PacedRateLimiter`` spaces permits evenly at ``1/rate`` seconds apart;
``UnlimitedRateLimiter`` never blocks. ``new_rate_limiter`` chooses one from
the configured rate.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

from hl7_ingest.errors import CancelledError


class RateLimiter(ABC):
    @abstractmethod
    def acquire(self, timeout: Optional[float] = None) -> None:
        """Block until the next permit is available."""
        ...


class UnlimitedRateLimiter(RateLimiter):
    def acquire(self, timeout: Optional[float] = None) -> None:
        return None


class PacedRateLimiter(RateLimiter):
    """
    Hand out at most ``rate`` permits per second, one every ``1/rate`` seconds.

    Each caller reserves the next free slot under the lock and then sleeps
    outside it, so concurrent callers are served in reservation order.
    The first permit is granted immediately.
    """

    def __init__(
        self,
        rate: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.rate = rate
        self.interval = 1.0 / rate
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot: Optional[float] = None

    def acquire(self, timeout: Optional[float] = None) -> None:
        """
        Wait for the next permit.

        Args:
            timeout: Give up with CancelledError, without consuming a slot,
                     if the permit is further away than this many seconds.
        """
        with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            wait = slot - now
            if timeout is not None and wait > timeout:
                raise CancelledError(
                    f"next permit in {wait:.3f}s exceeds timeout of {timeout:.3f}s"
                )
            self._next_slot = slot + self.interval

        if wait > 0:
            self._sleep(wait)


def new_rate_limiter(rate: int) -> RateLimiter:
    """Return a pacer for ``rate`` > 0, otherwise an unlimited limiter."""
    if rate > 0:
        return PacedRateLimiter(rate)
    return UnlimitedRateLimiter()
