from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from pycover.actions import CoverActions
from pycover.exceptions import CoverActionInProgressError, CoverConfigError
from pycover.models.cover import DoorState, EntityStateSnapshot, StateChangeEvent
from pycover.models.status import CoverOperation
from pycover.state import CoverStateStore


def _event(state: str, operation: str = "IDLE") -> StateChangeEvent:
    return StateChangeEvent.from_snapshot(
        EntityStateSnapshot(id="cover-door", state=state, current_operation=operation)
    )


class _FakeStream:
    def __init__(self) -> None:
        self.cancels = 0

    def cancel(self) -> None:
        self.cancels += 1


class _Garage:
    """Webhook endpoints that move the door by feeding the store."""

    def __init__(self, store: CoverStateStore, *, status: int = 200, move: bool = True) -> None:
        self.store = store
        self.status = status
        self.move = move
        self.calls: list[str] = []
        self.operations: list[CoverOperation] = []
        self.release = asyncio.Event()
        self.release.set()
        self._moves: list[asyncio.Task[bool]] = []

    async def _handle(self, request: web.Request, final: str) -> web.Response:
        self.calls.append(request.path)
        self.operations.append(self.store.status.operation)
        await self.release.wait()
        if self.move:
            asyncio.get_running_loop().call_later(0.05, self._finish, final)
        return web.Response(status=self.status)

    def _finish(self, final: str) -> None:
        self._moves.append(asyncio.ensure_future(self.store.apply(_event(final))))

    async def open(self, request: web.Request) -> web.Response:
        return await self._handle(request, "OPEN")

    async def close(self, request: web.Request) -> web.Response:
        return await self._handle(request, "CLOSED")


@pytest_asyncio.fixture
async def http_session() -> AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession() as session:
        yield session


async def _serve(garage: _Garage) -> test_utils.TestServer:
    app = web.Application()
    app.router.add_post("/api/webhook/open-secret", garage.open)
    app.router.add_post("/api/webhook/close-secret", garage.close)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


def _actions(
    store: CoverStateStore,
    session: aiohttp.ClientSession,
    server: test_utils.TestServer | None,
    stream: _FakeStream,
    *,
    settle_timeout: float = 2.0,
) -> CoverActions:
    return CoverActions(
        store,
        session,
        stream,
        open_url=str(server.make_url("/api/webhook/open-secret")) if server else None,
        close_url=str(server.make_url("/api/webhook/close-secret")) if server else None,
        settle_timeout=settle_timeout,
    )


@pytest.mark.asyncio
async def test_open_waits_for_open_state(http_session: aiohttp.ClientSession) -> None:
    store = CoverStateStore()
    garage = _Garage(store)
    server = await _serve(garage)
    try:
        actions = _actions(store, http_session, server, _FakeStream())
        assert await actions.open() is True
    finally:
        await server.close()

    assert garage.calls == ["/api/webhook/open-secret"]
    assert garage.operations == [CoverOperation.OPEN]
    assert store.status.door_state == DoorState.OPEN
    assert store.status.operation == CoverOperation.WAITING


@pytest.mark.asyncio
async def test_close_times_out_when_door_does_not_move(http_session: aiohttp.ClientSession) -> None:
    store = CoverStateStore()
    garage = _Garage(store, move=False)
    server = await _serve(garage)
    try:
        actions = _actions(store, http_session, server, _FakeStream(), settle_timeout=0.1)
        assert await actions.close() is False
    finally:
        await server.close()

    assert garage.operations == [CoverOperation.CLOSE]
    assert store.status.operation == CoverOperation.WAITING


@pytest.mark.asyncio
async def test_webhook_error_still_waits_for_state(http_session: aiohttp.ClientSession) -> None:
    store = CoverStateStore()
    garage = _Garage(store, status=500)
    server = await _serve(garage)
    try:
        actions = _actions(store, http_session, server, _FakeStream())
        assert await actions.open() is True
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_concurrent_action_is_rejected(http_session: aiohttp.ClientSession) -> None:
    store = CoverStateStore()
    garage = _Garage(store)
    garage.release.clear()
    server = await _serve(garage)
    try:
        actions = _actions(store, http_session, server, _FakeStream())
        first = asyncio.create_task(actions.open())
        while not garage.calls:
            await asyncio.sleep(0.01)

        assert actions.busy
        with pytest.raises(CoverActionInProgressError):
            await actions.close()
        with pytest.raises(CoverActionInProgressError):
            await actions.refresh()

        garage.release.set()
        assert await asyncio.wait_for(first, timeout=2) is True
    finally:
        garage.release.set()
        await server.close()

    assert garage.calls == ["/api/webhook/open-secret"]
    assert not actions.busy


@pytest.mark.asyncio
async def test_missing_webhook_url(http_session: aiohttp.ClientSession) -> None:
    actions = _actions(CoverStateStore(), http_session, None, _FakeStream())

    with pytest.raises(CoverConfigError):
        await actions.open()
    assert not actions.busy


@pytest.mark.asyncio
async def test_refresh_reconnects_and_waits_for_known_state(http_session: aiohttp.ClientSession) -> None:
    store = CoverStateStore()
    await store.apply(_event("CLOSED"))
    stream = _FakeStream()
    actions = _actions(store, http_session, None, stream)

    task = asyncio.create_task(actions.refresh())
    while stream.cancels == 0:
        await asyncio.sleep(0.01)
    assert store.status.operation == CoverOperation.QUERY
    assert store.status.door_state == DoorState.UNKNOWN

    await store.apply(_event("CLOSED"))

    assert await asyncio.wait_for(task, timeout=2) is True
    assert store.status.door_state == DoorState.CLOSED
    assert store.status.operation == CoverOperation.WAITING


@pytest.mark.asyncio
async def test_refresh_times_out(http_session: aiohttp.ClientSession) -> None:
    store = CoverStateStore()
    actions = _actions(store, http_session, None, _FakeStream(), settle_timeout=0.05)

    assert await actions.refresh() is False
    assert store.status.operation == CoverOperation.WAITING
