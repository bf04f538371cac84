"""Long-lived event stream reader for one tracked cover entity."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from enum import StrEnum

import aiohttp
from pydantic import ValidationError

from pycover._redact import redact_url, truncate_for_log
from pycover._sse import LogicalEvent, aiter_events
from pycover.exceptions import CoverError, CoverProtocolError, CoverStreamBusyError, CoverTransportError
from pycover.models.cover import EntityStateSnapshot, MappingVariant, StateChangeEvent

_logger = logging.getLogger(__name__)

#: Upper bound for one poll cycle.  The stream is expected to stay open
#: indefinitely; this only guards against a wedged connection.
DEFAULT_POLL_TIMEOUT: float = 3600.0

_LEADING_ID_RE = re.compile(r'\s*\{\s*"id"\s*:\s*("(?:[^"\\]|\\.)*")')


class PollResult(StrEnum):
    """How a poll cycle ended when it did not raise."""

    END_OF_STREAM = "end_of_stream"
    CANCELLED = "cancelled"


def leading_entity_id(data: str) -> str | None:
    """Return the ``id`` field when it is the first key of a JSON object body.

    Used to filter events without fully parsing bodies for other
    entities.  Returns ``None`` when *data* does not start that way.
    """
    match = _LEADING_ID_RE.match(data)
    if match is None:
        return None
    try:
        value = json.loads(match.group(1))
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, str) else None


class CoverEventStream:
    """Reads ``state`` events for one entity and emits :class:`StateChangeEvent`.

    Each :meth:`poll` call runs a single cycle: connect, decode until the
    stream ends, fails or is cancelled.  Reconnecting is the caller's job
    (see :class:`pycover.supervisor.StreamSupervisor`).

    Usage::

        events: asyncio.Queue[StateChangeEvent] = asyncio.Queue(maxsize=1)
        stream = CoverEventStream(url, "cover-door", events, http_session)
        result = await stream.poll()
    """

    def __init__(
        self,
        url: str,
        entity_id: str,
        events: asyncio.Queue[StateChangeEvent],
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        mapping: MappingVariant = MappingVariant.STRICT,
    ) -> None:
        self._url = url
        self._log_url = redact_url(url)
        self._entity_id = entity_id
        self._events = events
        self._http = http_session
        self._timeout = timeout
        self._mapping = mapping
        self._poll_lock = asyncio.Lock()
        self._cycle: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._cancel_requested = False

    @property
    def events(self) -> asyncio.Queue[StateChangeEvent]:
        """Bounded output queue read by the consumer."""
        return self._events

    @property
    def entity_id(self) -> str:
        return self._entity_id

    @property
    def is_polling(self) -> bool:
        """Whether a poll cycle is currently in flight."""
        return self._poll_lock.locked()

    async def poll(self) -> PollResult:
        """Run one poll cycle.

        Returns
        -------
        PollResult
            ``END_OF_STREAM`` when the server closed the stream,
            ``CANCELLED`` when :meth:`cancel` interrupted the cycle.

        Raises
        ------
        CoverStreamBusyError
            If another cycle is already running.
        CoverTransportError
            On connection or read failure, or a non-2xx response.
        CoverProtocolError
            On a malformed ``retry`` field or tracked-entity body.
        """
        if self._poll_lock.locked():
            raise CoverStreamBusyError(f"Stream for {self._entity_id} is already polling")

        async with self._poll_lock:
            self._loop = asyncio.get_running_loop()
            self._cancel_requested = False
            cycle = asyncio.create_task(self._run_cycle())
            self._cycle = cycle
            try:
                await cycle
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if self._cancel_requested and (current is None or current.cancelling() == 0):
                    _logger.debug("Poll cycle for %s cancelled", self._entity_id)
                    return PollResult.CANCELLED
                raise
            finally:
                self._cycle = None
                self._cancel_requested = False

        _logger.debug("Event stream for %s ended", self._entity_id)
        return PollResult.END_OF_STREAM

    def cancel(self) -> None:
        """Request prompt termination of the in-flight cycle.

        Idempotent and a no-op when nothing is polling.  May be called
        from any thread; it does not wait for the cycle to return.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self._cancel_now()
        else:
            loop.call_soon_threadsafe(self._cancel_now)

    def _cancel_now(self) -> None:
        cycle = self._cycle
        if cycle is None or cycle.done():
            return
        self._cancel_requested = True
        cycle.cancel()

    async def _run_cycle(self) -> None:
        timeout = aiohttp.ClientTimeout(total=self._timeout)
        _logger.debug("GET %s", self._log_url)
        try:
            async with self._http.get(
                self._url,
                timeout=timeout,
                headers={"accept": "text/event-stream", "cache-control": "no-cache"},
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise CoverTransportError(
                        f"HTTP {resp.status} from {self._log_url}",
                        status_code=resp.status,
                        url=self._url,
                    )
                _logger.info("Connected to event stream %s", self._log_url)
                async for event in aiter_events(resp.content):
                    self._handle_event(event)
        except CoverError:
            raise
        except aiohttp.ClientError as exc:
            raise CoverTransportError(
                f"Event stream {self._log_url} failed: {exc}",
                url=self._url,
            ) from exc
        except TimeoutError as exc:
            raise CoverTransportError(
                f"Event stream {self._log_url} exceeded {self._timeout:.0f}s",
                url=self._url,
            ) from exc
        except ValueError as exc:
            # aiohttp's line reader raises "Chunk too big" past its buffer limit.
            raise CoverTransportError(
                f"Event stream {self._log_url} failed: {exc}",
                url=self._url,
            ) from exc

    def _handle_event(self, event: LogicalEvent) -> None:
        if event.type != "state":
            return
        if leading_entity_id(event.data) != self._entity_id:
            return

        try:
            snapshot = EntityStateSnapshot.model_validate_json(event.data)
        except ValidationError as exc:
            raise CoverProtocolError(
                f"Malformed state for {self._entity_id}: {truncate_for_log(event.data)}"
            ) from exc

        change = StateChangeEvent.from_snapshot(snapshot, self._mapping)
        _logger.debug(
            "Received %s update state=%s operation=%s position=%s mapped=%s",
            snapshot.id,
            snapshot.state,
            snapshot.current_operation,
            snapshot.position,
            change.mapped.label,
        )
        try:
            self._events.put_nowait(change)
        except asyncio.QueueFull:
            _logger.debug("Event queue full, dropping %s update", change.mapped.label)
