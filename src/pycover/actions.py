"""Open, close and refresh actions for the tracked cover.

Open and close trigger a webhook (typically a home-automation script)
and then wait for the event stream to report the target state.  Refresh
drops the known state and forces the stream to reconnect; the event
source replays the current state of every entity on connect.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp

from pycover._redact import redact_url
from pycover.exceptions import CoverActionInProgressError, CoverConfigError, CoverTransportError
from pycover.models.cover import DoorState
from pycover.models.status import CoverOperation
from pycover.state import CoverStateStore

_logger = logging.getLogger(__name__)


class CancellableStream(Protocol):
    def cancel(self) -> None:
        ...


class CoverActions:
    """Runs one cover action at a time."""

    def __init__(
        self,
        store: CoverStateStore,
        http_session: aiohttp.ClientSession,
        stream: CancellableStream,
        *,
        open_url: str | None = None,
        close_url: str | None = None,
        action_timeout: float = 60.0,
        settle_timeout: float = 30.0,
    ) -> None:
        self._store = store
        self._http = http_session
        self._stream = stream
        self._open_url = open_url
        self._close_url = close_url
        self._action_timeout = action_timeout
        self._settle_timeout = settle_timeout
        self._operation_lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        """Whether an action is currently running."""
        return self._operation_lock.locked()

    async def open(self) -> bool:
        """Trigger the open webhook and wait for the door to report open.

        Returns ``True`` when the door reached ``OPEN`` within the settle
        timeout.
        """
        return await self._trigger(CoverOperation.OPEN, self._open_url, DoorState.OPEN)

    async def close(self) -> bool:
        """Trigger the close webhook and wait for the door to report closed."""
        return await self._trigger(CoverOperation.CLOSE, self._close_url, DoorState.CLOSED)

    async def refresh(self) -> bool:
        """Force a reconnect and wait for a fresh door state.

        Returns ``True`` when a known state arrived within the settle
        timeout.
        """
        async with self._exclusive():
            await self._store.begin_query()
            self._stream.cancel()
            try:
                changed = await self._store.wait_for(
                    lambda status: status.door_state != DoorState.UNKNOWN,
                    self._settle_timeout,
                )
                if not changed:
                    _logger.warning("No door state after %.0fs, giving up on refresh", self._settle_timeout)
                return changed
            finally:
                await self._store.set_operation(CoverOperation.WAITING)

    async def _trigger(self, operation: CoverOperation, url: str | None, target: DoorState) -> bool:
        if not url:
            raise CoverConfigError(f"No webhook URL configured for {operation.name.lower()}")

        async with self._exclusive():
            await self._store.set_operation(operation)
            try:
                try:
                    await self._post_webhook(url)
                except CoverTransportError as exc:
                    # The door may still move (e.g. the webhook fired but the
                    # response was lost), so keep waiting for the state.
                    _logger.warning("Webhook for %s failed: %s", operation.name.lower(), exc)

                reached = await self._store.wait_for_state(target, self._settle_timeout)
                if not reached:
                    _logger.warning(
                        "Door not %s after %.0fs, giving up",
                        target.label.lower(),
                        self._settle_timeout,
                    )
                return reached
            finally:
                await self._store.set_operation(CoverOperation.WAITING)

    async def _post_webhook(self, url: str) -> None:
        log_url = redact_url(url)
        _logger.debug("POST %s", log_url)
        timeout = aiohttp.ClientTimeout(total=self._action_timeout)
        try:
            async with self._http.post(url, timeout=timeout) as resp:
                if resp.status >= 400:
                    raise CoverTransportError(
                        f"HTTP {resp.status} from {log_url}",
                        status_code=resp.status,
                        url=url,
                    )
        except CoverTransportError:
            raise
        except aiohttp.ClientError as exc:
            raise CoverTransportError(f"Request to {log_url} failed: {exc}", url=url) from exc
        except TimeoutError as exc:
            raise CoverTransportError(f"Request to {log_url} timed out", url=url) from exc

    def _exclusive(self) -> _ExclusiveAction:
        return _ExclusiveAction(self._operation_lock)


class _ExclusiveAction:
    """Async context manager that refuses to wait for a held lock."""

    def __init__(self, lock: asyncio.Lock) -> None:
        self._lock = lock

    async def __aenter__(self) -> None:
        if self._lock.locked():
            raise CoverActionInProgressError("Another cover action is in progress")
        await self._lock.acquire()

    async def __aexit__(self, *exc: object) -> None:
        self._lock.release()
