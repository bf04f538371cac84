"""Single owner of the tracked cover status.

All updates go through :class:`CoverStateStore`; readers get an
immutable :class:`~pycover.models.status.CoverStatus` snapshot.  Every
effective update posts a change notification on a bounded queue.  A full
queue drops the notification, so bursts of updates coalesce into fewer
notifications.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pycover.models.cover import DoorState, StateChangeEvent
from pycover.models.status import CoverOperation, CoverStatus

_logger = logging.getLogger(__name__)

#: Capacity of the change notification queue.
CHANGE_QUEUE_SIZE = 10


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CoverStateStore:
    """In-memory owner of the cover status."""

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        change_queue_size: int = CHANGE_QUEUE_SIZE,
    ) -> None:
        self._clock = clock
        self._status = CoverStatus()
        self._changed = asyncio.Condition()
        self._changes: asyncio.Queue[CoverStatus] = asyncio.Queue(maxsize=change_queue_size)

    @property
    def status(self) -> CoverStatus:
        """Current status snapshot."""
        return self._status

    @property
    def changes(self) -> asyncio.Queue[CoverStatus]:
        """Queue of status snapshots, one per effective update (best effort)."""
        return self._changes

    async def apply(self, event: StateChangeEvent) -> bool:
        """Record a state change from the stream.

        Returns ``True`` when the door state actually changed.
        """
        if event.mapped == self._status.door_state:
            return False
        _logger.info(
            "Door state %s -> %s",
            self._status.door_state.label,
            event.mapped.label,
        )
        await self._replace(door_state=event.mapped, changed_at=self._clock())
        return True

    async def set_operation(self, operation: CoverOperation) -> None:
        await self._replace(operation=operation)

    async def begin_query(self) -> None:
        """Mark a status refresh: the door state is unknown until the next event."""
        await self._replace(
            operation=CoverOperation.QUERY,
            door_state=DoorState.UNKNOWN,
            changed_at=self._clock(),
        )

    def set_message_id(self, message_id: str | None) -> None:
        """Remember the id of the published status message.

        Not a visible change, so no notification is posted.
        """
        self._status = self._status.model_copy(update={"message_id": message_id})

    async def wait_for(
        self,
        predicate: Callable[[CoverStatus], bool],
        timeout: float,
    ) -> bool:
        """Wait until *predicate* holds for the current status.

        Wakes on every update instead of polling.  Returns ``False`` when
        *timeout* seconds pass first.
        """
        async with self._changed:
            try:
                await asyncio.wait_for(
                    self._changed.wait_for(lambda: predicate(self._status)),
                    timeout,
                )
            except TimeoutError:
                return False
        return True

    async def wait_for_state(self, target: DoorState, timeout: float) -> bool:
        return await self.wait_for(lambda status: status.door_state == target, timeout)

    async def consume(self, events: asyncio.Queue[StateChangeEvent]) -> None:
        """Drain *events* into :meth:`apply` until cancelled."""
        while True:
            event = await events.get()
            try:
                await self.apply(event)
            finally:
                events.task_done()

    async def _replace(self, **changes: object) -> None:
        self._status = self._status.model_copy(update=changes)
        try:
            self._changes.put_nowait(self._status)
        except asyncio.QueueFull:
            _logger.debug("Change queue full, coalescing notification")
        async with self._changed:
            self._changed.notify_all()
