"""Tests for the run-wide deadline."""
import asyncio
import math
from unittest.mock import AsyncMock

import pytest

from mtg_report.core.deadline import Deadline, DeadlineExceeded


class TestDeadlineBasics:
    """Construction, remaining time and expiry."""

    def test_never_does_not_expire(self):
        deadline = Deadline.never()

        assert deadline.expires_at == math.inf
        assert not deadline.expired
        deadline.check()

    def test_after_uses_clock(self):
        now = [50.0]
        deadline = Deadline.after(10, clock=lambda: now[0])

        assert deadline.remaining() == pytest.approx(10)
        now[0] = 55.0
        assert deadline.remaining() == pytest.approx(5)
        assert not deadline.expired

    def test_remaining_is_never_negative(self):
        now = [0.0]
        deadline = Deadline.after(1, clock=lambda: now[0])
        now[0] = 5.0

        assert deadline.remaining() == 0.0
        assert deadline.expired

    def test_check_raises_when_expired(self):
        deadline = Deadline.after(0)

        with pytest.raises(DeadlineExceeded):
            deadline.check()

    def test_deadline_exceeded_is_timeout_error(self):
        assert issubclass(DeadlineExceeded, TimeoutError)


class TestDeadlineRun:
    """Awaiting operations under the deadline."""

    @pytest.mark.asyncio
    async def test_returns_result_in_time(self):
        async def work():
            return 42

        assert await Deadline.after(5).run(work()) == 42

    @pytest.mark.asyncio
    async def test_cancels_operation_on_expiry(self):
        cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        with pytest.raises(DeadlineExceeded):
            await Deadline.after(0.05).run(slow())

        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_expired_deadline_does_not_start_operation(self):
        started = False

        async def work():
            nonlocal started
            started = True

        with pytest.raises(DeadlineExceeded):
            await Deadline.after(-1).run(work())

        assert started is False

    @pytest.mark.asyncio
    async def test_operation_timeout_is_not_reported_as_deadline(self):
        async def failing():
            raise TimeoutError("upstream timed out")

        with pytest.raises(TimeoutError) as exc_info:
            await Deadline.after(5).run(failing())

        assert not isinstance(exc_info.value, DeadlineExceeded)

    @pytest.mark.asyncio
    async def test_never_runs_without_timeout(self):
        async def work():
            await asyncio.sleep(0)
            return "done"

        assert await Deadline.never().run(work()) == "done"


class TestDeadlineCall:
    """Calling a coroutine function under the deadline."""

    @pytest.mark.asyncio
    async def test_passes_arguments(self):
        func = AsyncMock(return_value=["page"])

        result = await Deadline.after(5).call(func, 0, limit=10)

        assert result == ["page"]
        func.assert_awaited_once_with(0, limit=10)

    @pytest.mark.asyncio
    async def test_expired_deadline_never_calls_function(self):
        func = AsyncMock()

        with pytest.raises(DeadlineExceeded):
            await Deadline.after(-1).call(func, "card")

        func.assert_not_called()
