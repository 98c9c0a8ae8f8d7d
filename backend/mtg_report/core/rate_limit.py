"""
Fixed-interval rate limiting for outbound API calls.

Scryfall asks clients to keep to roughly 10 requests per second. Rather than
counting requests per window, permits are spaced a constant interval apart,
so the aggregate request rate can never exceed the ceiling regardless of
batch boundaries.
"""
import asyncio
import time
from typing import Callable


class IntervalRateLimiter:
    """
    Hands out permits no closer together than ``1 / max_per_second`` seconds.

    Usage:
        limiter = IntervalRateLimiter(max_per_second=10)

        for card in cards:
            await limiter.acquire()
            await price_source.fetch_price(card)

    The first permit is granted immediately. Concurrent callers are
    serialized so the spacing holds even when several coroutines share
    one limiter.
    """

    def __init__(
        self,
        max_per_second: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_per_second <= 0:
            raise ValueError("max_per_second must be greater than zero")
        self.max_per_second = max_per_second
        self.interval = 1.0 / max_per_second
        self._clock = clock
        self._next_slot: float | None = None
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until the next permit is available and take it."""
        async with self._lock:
            now = self._clock()
            if self._next_slot is not None and now < self._next_slot:
                await asyncio.sleep(self._next_slot - now)
                now = self._clock()
            self._next_slot = now + self.interval
