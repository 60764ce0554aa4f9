"""Min-interval rate limiter shared by all requests of one LedgerClient."""

from __future__ import annotations

import asyncio
import time
from typing import Callable


class RateLimiter:
    """Simple token-bucket style: min interval between acquires. Waiters queue on the lock, never fail."""

    def __init__(self, rate_per_sec: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._interval = 1.0 / rate_per_sec if rate_per_sec > 0 else 0.0
        self._clock = clock
        self._last_acquire: float | None = None
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        return self._interval

    async def acquire(self) -> None:
        async with self._lock:
            if self._last_acquire is not None:
                elapsed = self._clock() - self._last_acquire
                if elapsed < self._interval:
                    await asyncio.sleep(self._interval - elapsed)
            self._last_acquire = self._clock()
