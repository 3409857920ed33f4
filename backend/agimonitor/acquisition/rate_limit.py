from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable


class TokenBucket:
    """Async token bucket shared by every strategy in a crawl.

    Starts full. One token is added every ``refill_interval_s`` up to
    ``capacity``.
    """

    def __init__(
        self,
        *,
        capacity: int = 1,
        refill_interval_s: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if refill_interval_s <= 0:
            raise ValueError("refill_interval_s must be > 0")
        self._capacity = float(capacity)
        self._interval = refill_interval_s
        self._clock = clock
        self._sleep_fn = sleep_fn
        self._tokens = float(capacity)
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._updated_at
        if elapsed > 0:
            self._tokens = min(self._capacity, self._tokens + elapsed / self._interval)
        self._updated_at = now

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                await self._sleep_fn((1.0 - self._tokens) * self._interval)
