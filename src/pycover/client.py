"""High-level async client for a cover state event stream."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from pycover.actions import CoverActions
from pycover.config import CoverConfig
from pycover.exceptions import CoverError
from pycover.models.cover import DoorState, StateChangeEvent
from pycover.models.status import CoverStatus
from pycover.notify import NotificationSink, StatusNotifier
from pycover.state import CoverStateStore
from pycover.stream import CoverEventStream
from pycover.supervisor import StreamSupervisor

_logger = logging.getLogger(__name__)


class CoverClient:
    """Tracks one cover entity and exposes its status and actions.

    Usage::

        async with CoverClient(CoverConfig.from_env()) as client:
            await client.start()
            await client.wait_for_state(DoorState.CLOSED, timeout=30)
    """

    def __init__(
        self,
        config: CoverConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        sink: NotificationSink | None = None,
    ) -> None:
        config.validate()
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._sink = sink
        self._store = CoverStateStore()
        self._events: asyncio.Queue[StateChangeEvent] = asyncio.Queue(maxsize=config.event_queue_size)
        self._stream: CoverEventStream | None = None
        self._supervisor: StreamSupervisor | None = None
        self._actions: CoverActions | None = None
        self._tasks: list[asyncio.Task[None]] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> CoverClient:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._stream = CoverEventStream(
            self._config.source_url,
            self._config.entity_id,
            self._events,
            self._http_session,
            timeout=self._config.poll_timeout,
            mapping=self._config.mapping,
        )
        self._supervisor = StreamSupervisor(
            self._stream,
            quick_failure_window=self._config.quick_failure_window,
            quick_failure_limit=self._config.quick_failure_limit,
            cooldown=self._config.cooldown,
        )
        self._actions = CoverActions(
            self._store,
            self._http_session,
            self._stream,
            open_url=self._config.open_webhook_url,
            close_url=self._config.close_webhook_url,
            action_timeout=self._config.action_timeout,
            settle_timeout=self._config.settle_timeout,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._stream = None
        self._supervisor = None
        self._actions = None

    # ------------------------------------------------------------------
    # Background tasks
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start streaming, consuming and (when a sink is set) notifying."""
        if self._tasks:
            return
        supervisor = self._supervisor
        if supervisor is None:
            raise CoverError("Client not initialized. Use 'async with CoverClient(...) as client:'")
        self._tasks.append(asyncio.create_task(supervisor.run(), name="pycover-supervisor"))
        self._tasks.append(asyncio.create_task(self._store.consume(self._events), name="pycover-consumer"))
        if self._sink is not None:
            notifier = StatusNotifier(self._store, self._sink, tz=self._config.time_zone)
            self._tasks.append(asyncio.create_task(notifier.run(), name="pycover-notifier"))
        _logger.info("Tracking %s", self._config.entity_id)

    async def stop(self) -> None:
        """Stop background tasks and wait for them to finish."""
        if self._supervisor is not None:
            self._supervisor.stop()
        tasks, self._tasks = self._tasks, []
        for task in tasks[1:]:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise

    # ------------------------------------------------------------------
    # Status and actions
    # ------------------------------------------------------------------

    @property
    def config(self) -> CoverConfig:
        return self._config

    @property
    def store(self) -> CoverStateStore:
        return self._store

    @property
    def status(self) -> CoverStatus:
        """Current cover status snapshot."""
        return self._store.status

    async def wait_for_state(self, target: DoorState, timeout: float) -> bool:
        """Wait until the door reports *target*; ``False`` on timeout."""
        return await self._store.wait_for_state(target, timeout)

    async def open_door(self) -> bool:
        """Trigger the open webhook; ``True`` once the door reports open."""
        return await self._require_actions().open()

    async def close_door(self) -> bool:
        """Trigger the close webhook; ``True`` once the door reports closed."""
        return await self._require_actions().close()

    async def refresh(self) -> bool:
        return await self._require_actions().refresh()

    def _require_actions(self) -> CoverActions:
        if self._actions is None:
            raise CoverError("Client not initialized. Use 'async with CoverClient(...) as client:'")
        return self._actions
