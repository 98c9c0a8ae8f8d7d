"""
Run-wide deadline shared by every blocking step of a batch job.

A job establishes one ``Deadline`` before it starts and passes it down.
Each blocking operation is awaited through ``Deadline.run`` so that it is
cancelled as soon as the deadline passes instead of finishing extra work.
"""
import asyncio
import math
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class DeadlineExceeded(TimeoutError):
    """Raised when an operation is attempted or still running past the deadline."""
    pass


@dataclass(frozen=True)
class Deadline:
    """
    A point in monotonic time after which no new work may start.

    Usage:
        deadline = Deadline.after(600)
        cards = await deadline.run(store.fetch_cards_page(0, 1000))
    """
    expires_at: float
    clock: Callable[[], float] = field(default=time.monotonic, repr=False, compare=False)

    @classmethod
    def after(cls, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        """Deadline ``seconds`` from now."""
        return cls(expires_at=clock() + seconds, clock=clock)

    @classmethod
    def never(cls) -> "Deadline":
        """A deadline that never expires."""
        return cls(expires_at=math.inf)

    def remaining(self) -> float:
        """Seconds left before expiry (never negative)."""
        return max(0.0, self.expires_at - self.clock())

    @property
    def expired(self) -> bool:
        return self.clock() >= self.expires_at

    def check(self) -> None:
        """Raise DeadlineExceeded if the deadline has already passed."""
        if self.expired:
            raise DeadlineExceeded("deadline exceeded")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` but give up when the deadline passes.

        The awaited operation is cancelled on expiry. If the deadline has
        already passed the operation is never started.

        Raises:
            DeadlineExceeded: If the deadline expires first.
        """
        if self.expired:
            _close_unstarted(awaitable)
            raise DeadlineExceeded("deadline exceeded before operation started")

        delay = None if math.isinf(self.expires_at) else self.remaining()
        timeout = asyncio.timeout(delay)
        try:
            async with timeout:
                return await awaitable
        except TimeoutError as e:
            # A TimeoutError raised by the operation itself is its own failure
            if timeout.expired() and not isinstance(e, DeadlineExceeded):
                raise DeadlineExceeded("deadline exceeded during operation") from e
            raise

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Call ``func`` and await its result under the deadline.

        Unlike ``run``, ``func`` is not invoked at all once the deadline
        has passed, so no request is issued after expiry.
        """
        self.check()
        return await self.run(func(*args, **kwargs))


def _close_unstarted(awaitable: Any) -> None:
    # Avoid "coroutine was never awaited" warnings for skipped operations
    close = getattr(awaitable, "close", None)
    if callable(close):
        close()
