from __future__ import annotations

import asyncio
from collections.abc import Callable

import pytest

from pycover.exceptions import CoverProtocolError, CoverTransportError
from pycover.stream import PollResult
from pycover.supervisor import StreamSupervisor


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class _ScriptedStream:
    """Plays back a list of outcomes; callables run before the outcome."""

    def __init__(self, script: list[object], clock: _FakeClock, cycle_seconds: float = 1.0) -> None:
        self._script = list(script)
        self._clock = clock
        self._cycle_seconds = cycle_seconds
        self.polls = 0
        self.cancels = 0

    async def poll(self) -> PollResult:
        self.polls += 1
        self._clock.now += self._cycle_seconds
        step = self._script.pop(0)
        if callable(step):
            step = step()
        if isinstance(step, BaseException):
            raise step
        assert isinstance(step, PollResult)
        return step

    def cancel(self) -> None:
        self.cancels += 1


def _stop_after(supervisor_ref: list[StreamSupervisor]) -> Callable[[], PollResult]:
    def step() -> PollResult:
        supervisor_ref[0].stop()
        return PollResult.CANCELLED

    return step


def _build(script: list[object], *, cycle_seconds: float = 1.0) -> tuple[StreamSupervisor, _ScriptedStream, list[float]]:
    clock = _FakeClock()
    ref: list[StreamSupervisor] = []
    stream = _ScriptedStream([*script, _stop_after(ref)], clock, cycle_seconds)
    supervisor = StreamSupervisor(stream, quick_failure_window=60.0, quick_failure_limit=3, cooldown=60.0, clock=clock)
    ref.append(supervisor)

    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.now += seconds

    supervisor._sleep = fake_sleep  # type: ignore[method-assign]
    return supervisor, stream, sleeps


@pytest.mark.asyncio
async def test_restarts_after_errors_and_end_of_stream() -> None:
    supervisor, stream, sleeps = _build(
        [CoverTransportError("boom"), PollResult.END_OF_STREAM, CoverProtocolError("bad retry")],
    )

    await asyncio.wait_for(supervisor.run(), timeout=2)

    assert stream.polls == 4
    assert supervisor.cycles == 4
    assert sleeps == []
    assert supervisor.quick_failures == 3


@pytest.mark.asyncio
async def test_cooldown_after_more_than_limit_quick_failures() -> None:
    supervisor, stream, sleeps = _build([CoverTransportError("down")] * 5)

    await asyncio.wait_for(supervisor.run(), timeout=2)

    # Fourth consecutive quick failure trips the breaker, the fifth starts a new count.
    assert sleeps == [60.0]
    assert supervisor.quick_failures == 1
    assert stream.polls == 6


@pytest.mark.asyncio
async def test_long_cycle_resets_counter() -> None:
    supervisor, stream, sleeps = _build([CoverTransportError("down")] * 3, cycle_seconds=1.0)
    # Make the third cycle a long-running one.
    original_poll = stream.poll

    async def poll() -> PollResult:
        if stream.polls == 2:
            stream._clock.now += 120
        return await original_poll()

    stream.poll = poll  # type: ignore[method-assign]

    await asyncio.wait_for(supervisor.run(), timeout=2)

    assert sleeps == []
    assert supervisor.quick_failures == 0


@pytest.mark.asyncio
async def test_cancellation_does_not_count() -> None:
    supervisor, _stream, sleeps = _build([PollResult.CANCELLED] * 6)

    await asyncio.wait_for(supervisor.run(), timeout=2)

    assert sleeps == []
    assert supervisor.quick_failures == 0


@pytest.mark.asyncio
async def test_stop_cancels_stream() -> None:
    supervisor, stream, _sleeps = _build([])

    await asyncio.wait_for(supervisor.run(), timeout=2)

    assert supervisor.is_stopping
    assert stream.cancels == 1
    assert stream.polls == 1


@pytest.mark.asyncio
async def test_stop_wakes_cooldown() -> None:
    clock = _FakeClock()
    stream = _ScriptedStream([CoverTransportError("down")] * 10, clock)
    supervisor = StreamSupervisor(stream, quick_failure_limit=0, cooldown=3600.0, clock=clock)

    task = asyncio.create_task(supervisor.run())
    await asyncio.sleep(0.05)
    assert not task.done()

    supervisor.stop()
    await asyncio.wait_for(task, timeout=1)
    assert stream.polls == 1
