"""Restart loop around :class:`pycover.stream.CoverEventStream`."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from typing import Protocol

from pycover.stream import PollResult

_logger = logging.getLogger(__name__)


class PollingStream(Protocol):
    """Structural interface of the stream driven by the supervisor."""

    async def poll(self) -> PollResult:
        ...

    def cancel(self) -> None:
        ...


class StreamSupervisor:
    """Keeps a stream connected, pausing after a burst of quick failures.

    Every cycle end triggers an immediate restart.  A cycle that ends
    within ``quick_failure_window`` seconds of the previous cycle start
    counts as a quick failure; once more than ``quick_failure_limit``
    happen back to back the supervisor waits ``cooldown`` seconds and
    starts counting again.  Cancelled cycles are neither logged as
    failures nor counted.
    """

    def __init__(
        self,
        stream: PollingStream,
        *,
        quick_failure_window: float = 60.0,
        quick_failure_limit: int = 3,
        cooldown: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stream = stream
        self._quick_failure_window = quick_failure_window
        self._quick_failure_limit = quick_failure_limit
        self._cooldown = cooldown
        self._clock = clock
        self._stopping = asyncio.Event()
        self._quick_failures = 0
        self._cycles = 0

    @property
    def quick_failures(self) -> int:
        """Current count of consecutive quick failures."""
        return self._quick_failures

    @property
    def cycles(self) -> int:
        """Number of poll cycles started so far."""
        return self._cycles

    @property
    def is_stopping(self) -> bool:
        return self._stopping.is_set()

    async def run(self) -> None:
        """Poll until :meth:`stop` is called."""
        last_start = self._clock()
        while not self._stopping.is_set():
            self._cycles += 1
            cancelled = False
            try:
                result = await self._stream.poll()
            except Exception as exc:  # noqa: BLE001
                _logger.warning("Event stream poll failed: %s", exc, exc_info=_logger.isEnabledFor(logging.DEBUG))
            else:
                cancelled = result == PollResult.CANCELLED

            if self._stopping.is_set():
                break

            now = self._clock()
            if cancelled:
                _logger.debug("Event stream cycle cancelled, reconnecting")
            elif now - last_start < self._quick_failure_window:
                self._quick_failures += 1
                if self._quick_failures > self._quick_failure_limit:
                    _logger.warning(
                        "%d quick event stream failures, pausing %.0fs",
                        self._quick_failures,
                        self._cooldown,
                    )
                    await self._sleep(self._cooldown)
                    self._quick_failures = 0
                    now = self._clock()
            else:
                self._quick_failures = 0
            last_start = now

        _logger.debug("Stream supervisor stopped after %d cycles", self._cycles)

    def stop(self) -> None:
        """Stop restarting and cancel the in-flight cycle."""
        self._stopping.set()
        self._stream.cancel()

    async def _sleep(self, seconds: float) -> None:
        """Sleep for *seconds*, waking early when stopped."""
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
