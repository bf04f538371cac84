"""Forward status changes to an external notification sink."""

from __future__ import annotations

import logging
from datetime import tzinfo
from typing import Protocol

from pycover.render import render_status
from pycover.state import CoverStateStore

_logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Where rendered status text goes (chat message, log, dashboard...).

    ``publish`` receives the id returned by the previous successful call
    (``None`` the first time) so a sink can edit one message in place.
    It returns the id of the message it published or updated.
    """

    async def publish(self, text: str, message_id: str | None) -> str | None:
        ...


class StatusNotifier:
    """Renders the current status whenever the store reports a change."""

    def __init__(
        self,
        store: CoverStateStore,
        sink: NotificationSink,
        *,
        tz: tzinfo | str = "UTC",
    ) -> None:
        self._store = store
        self._sink = sink
        self._tz = tz

    async def publish_current(self) -> None:
        """Render and publish the current status once.

        Sink failures are logged; the notifier keeps running.
        """
        status = self._store.status
        try:
            text = render_status(status, self._tz)
            message_id = await self._sink.publish(text, status.message_id)
        except Exception:
            _logger.warning("Status notification failed", exc_info=True)
            return
        if message_id is not None and message_id != status.message_id:
            self._store.set_message_id(message_id)
        _logger.debug("Published status %r", text)

    async def run(self) -> None:
        """Publish on every change notification until cancelled."""
        changes = self._store.changes
        while True:
            await changes.get()
            # Later notifications already queued describe the same or a newer
            # status; collapse them into one publish.
            while not changes.empty():
                changes.get_nowait()
            await self.publish_current()
