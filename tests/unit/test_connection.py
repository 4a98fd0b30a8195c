import asyncio
from pathlib import Path
from typing import Any

import pytest

from wagate.client.connection import AUTH_SUCCESS, ConnectionManager, close_reason_code
from wagate.core.errors import (
    AuthenticationFailed,
    AuthenticationInProgress,
    ConnectionClosed,
    DisconnectReason,
    GatewayError,
    NotInitialized,
    QRTimeout,
    UpstreamFailure,
)
from wagate.core.events import ConnectionEvent, ConnectionState, IncomingMessage
from wagate.infra.session_store import SessionStore


class _FakeSocket:
    def __init__(self, options: Any, fail_start: bool = False) -> None:
        self.options = options
        self.on_connection_update: Any = None
        self.on_creds_update: Any = None
        self.on_message: Any = None
        self.fail_start = fail_start
        self.started = False
        self.ended = False
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("websocket refused")
        self.started = True

    async def send_message(self, jid: str, content: dict[str, Any]) -> Any:
        self.sent.append((jid, content))
        return {"id": "MSG1"}

    async def end(self) -> None:
        self.ended = True

    async def emit(self, **kwargs: Any) -> None:
        if self.on_connection_update is not None:
            await self.on_connection_update(ConnectionEvent(**kwargs))


def _run(coro: Any) -> Any:
    return asyncio.run(coro)


def _manager(root: Path, sockets: list[_FakeSocket], delays: list[float] | None = None, **kwargs: Any):
    recorded = delays if delays is not None else []

    def _factory(options: Any) -> _FakeSocket:
        sock = _FakeSocket(options)
        sockets.append(sock)
        return sock

    async def _version() -> tuple[int, int, int]:
        return (2, 3000, 1)

    async def _no_sleep(delay: float) -> None:
        recorded.append(delay)

    kwargs.setdefault("version_fetcher", _version)
    return ConnectionManager(SessionStore(root), socket_factory=_factory, sleep=_no_sleep, **kwargs)


async def _settle_reconnect(manager: ConnectionManager) -> None:
    task = manager._reconnect_task
    if task is not None:
        await task


def _lost() -> ConnectionClosed:
    return ConnectionClosed("connection lost", int(DisconnectReason.CONNECTION_LOST))


def test_close_reason_code_reads_codes() -> None:
    assert close_reason_code(401) == 401
    assert close_reason_code(ConnectionClosed("x", 515)) == 515
    assert close_reason_code(GatewayError("y", status_code=408)) == 408
    assert close_reason_code(None) is None
    assert close_reason_code(True) is None


def test_connect_creates_socket_with_session_options(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        sock = await manager.connect()

        assert sock is sockets[0]
        assert sock.started is True
        assert manager.state is ConnectionState.CONNECTING
        assert manager.version == (2, 3000, 1)
        assert sock.options.version == (2, 3000, 1)
        assert sock.options.session_dir == tmp_path / "default"
        assert sock.options.store_path.parent == tmp_path / "default"
        assert sock.options.creds is None
        assert (tmp_path / "default").is_dir()

    _run(_case())


def test_connect_falls_back_when_version_lookup_fails(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []

        async def _broken() -> tuple[int, int, int]:
            raise RuntimeError("offline")

        manager = _manager(tmp_path, sockets, version_fetcher=_broken, version=(2, 1, 1))
        await manager.connect()
        assert manager.version == (2, 1, 1)

    _run(_case())


def test_connect_passes_stored_creds(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.store.save_creds("default", {"me": {"id": "15551234567@s.whatsapp.net"}})
        await manager.connect()
        assert sockets[0].options.creds == {"me": {"id": "15551234567@s.whatsapp.net"}}

    _run(_case())


def test_connect_start_failure_raises_upstream_failure(tmp_path: Path) -> None:
    async def _case() -> None:
        manager = ConnectionManager(
            SessionStore(tmp_path),
            socket_factory=lambda options: _FakeSocket(options, fail_start=True),
            version_fetcher=lambda: asyncio.sleep(0, result=(2, 3000, 1)),
        )
        with pytest.raises(UpstreamFailure):
            await manager.connect()
        assert manager.socket is None
        assert manager.state is ConnectionState.DISCONNECTED

    _run(_case())


def test_open_update_marks_connected(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.connect()
        await sockets[0].emit(status="open")

        assert manager.is_connected is True
        assert manager.status()["state"] == "connected"
        assert await manager.authenticate() == AUTH_SUCCESS

    _run(_case())


def test_authenticate_without_connection_raises_not_initialized(tmp_path: Path) -> None:
    async def _case() -> None:
        manager = _manager(tmp_path, [])
        with pytest.raises(NotInitialized):
            await manager.authenticate()

    _run(_case())


def test_authenticate_resolves_once_and_rejects_second_waiter(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.connect()

        pending = asyncio.create_task(manager.authenticate())
        await asyncio.sleep(0)
        with pytest.raises(AuthenticationInProgress):
            await manager.authenticate()

        await sockets[0].emit(status="open")
        assert await pending == AUTH_SUCCESS

        # A later open with no waiter is a no-op.
        await sockets[0].emit(status="open")
        assert manager._auth_waiter is None

    _run(_case())


def test_logged_out_fails_pending_auth_without_reconnect(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.connect()

        pending = asyncio.create_task(manager.authenticate())
        await asyncio.sleep(0)
        await sockets[0].emit(status="close", reason=ConnectionClosed("logged out", 401))

        with pytest.raises(AuthenticationFailed):
            await pending
        assert manager.state is ConnectionState.LOGGED_OUT
        assert manager._reconnect_task is None
        assert len(sockets) == 1

        with pytest.raises(AuthenticationFailed):
            await manager.authenticate()

    _run(_case())


def test_each_close_schedules_exactly_one_reconnect(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        delays: list[float] = []
        manager = _manager(tmp_path, sockets, delays)
        await manager.connect()

        await sockets[0].emit(status="close", reason=_lost())
        # A second close before the reconnect runs collapses into the first.
        await sockets[0].emit(status="close", reason=_lost())
        assert manager.state is ConnectionState.DISCONNECTED
        await _settle_reconnect(manager)

        assert len(sockets) == 2
        assert delays == [1.0]
        assert manager.policy.failures == 1
        assert sockets[0].ended is True
        assert manager.socket is sockets[1]

    _run(_case())


def test_reconnect_backoff_grows_and_open_resets(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        delays: list[float] = []
        manager = _manager(tmp_path, sockets, delays)
        await manager.connect()

        await sockets[0].emit(status="close", reason=_lost())
        await _settle_reconnect(manager)
        await sockets[1].emit(status="close", reason=_lost())
        await _settle_reconnect(manager)
        assert delays == [1.0, 2.0]

        await sockets[2].emit(status="open")
        assert manager.policy.failures == 0
        await sockets[2].emit(status="close", reason=_lost())
        await _settle_reconnect(manager)
        assert delays == [1.0, 2.0, 1.0]

    _run(_case())


def test_repeated_failures_trip_breaker(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets, reconnect_max_attempts=2)
        await manager.connect()

        await sockets[0].emit(status="close", reason=_lost())
        await _settle_reconnect(manager)
        pending = asyncio.create_task(manager.authenticate())
        await asyncio.sleep(0)
        await sockets[1].emit(status="close", reason=_lost())

        assert manager.state is ConnectionState.FAILED
        assert len(sockets) == 2
        with pytest.raises(AuthenticationFailed):
            await pending

    _run(_case())


def test_explicit_disconnect_ends_socket_and_fails_auth(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.connect()
        await sockets[0].emit(status="connecting", qr="2@abc")

        pending = asyncio.create_task(manager.authenticate())
        await asyncio.sleep(0)
        await manager.disconnect()

        with pytest.raises(AuthenticationFailed):
            await pending
        assert sockets[0].ended is True
        assert sockets[0].on_connection_update is None
        assert manager.socket is None
        assert manager.state is ConnectionState.DISCONNECTED
        assert manager.latest_qr is None
        assert manager._reconnect_task is None

    _run(_case())


def test_wait_for_qr_returns_cached_and_next_codes(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.connect()

        waiter = asyncio.create_task(manager.wait_for_qr(1.0))
        await asyncio.sleep(0)
        await sockets[0].emit(status="connecting", qr="2@first")
        assert await waiter == "2@first"

        await sockets[0].emit(qr="2@second")
        assert await manager.wait_for_qr(0.01) == "2@second"

    _run(_case())


def test_wait_for_qr_times_out(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.connect()
        with pytest.raises(QRTimeout) as excinfo:
            await manager.wait_for_qr(0.01)
        assert excinfo.value.status_code == 408

    _run(_case())


def test_wait_for_qr_when_connected_is_conflict(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.connect()
        await sockets[0].emit(status="connecting", qr="2@abc")
        await sockets[0].emit(status="open")

        assert manager.latest_qr is None
        with pytest.raises(GatewayError) as excinfo:
            await manager.wait_for_qr(0.01)
        assert excinfo.value.status_code == 409

    _run(_case())


def test_creds_update_is_persisted(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        await manager.connect()
        await sockets[0].on_creds_update({"me": {"id": "15551234567@s.whatsapp.net"}, "registered": True})

        loaded = await manager.store.load_creds("default")
        assert loaded == {"me": {"id": "15551234567@s.whatsapp.net"}, "registered": True}

    _run(_case())


def test_message_handler_errors_are_contained(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        manager = _manager(tmp_path, sockets)
        seen: list[str] = []

        async def _handler(message: IncomingMessage) -> None:
            seen.append(message.id)
            raise RuntimeError("boom")

        manager.on_message = _handler
        await manager.connect()
        incoming = IncomingMessage(id="M1", chat_jid="1@s.whatsapp.net", sender_jid="1@s.whatsapp.net")
        await sockets[0].on_message(incoming)
        assert seen == ["M1"]

    _run(_case())


def test_invalid_session_id_rejected(tmp_path: Path) -> None:
    with pytest.raises(GatewayError):
        _manager(tmp_path, [], session_id="../escape")


def _gated_version() -> tuple[asyncio.Event, asyncio.Event, Any]:
    gate = asyncio.Event()
    entered = asyncio.Event()

    async def _version() -> tuple[int, int, int]:
        entered.set()
        await gate.wait()
        return (2, 3000, 1)

    return gate, entered, _version


def test_disconnect_during_connect_keeps_manager_disconnected(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        gate, entered, version = _gated_version()
        manager = _manager(tmp_path, sockets, version_fetcher=version)

        connecting = asyncio.create_task(manager.connect())
        await entered.wait()
        await manager.disconnect()
        gate.set()

        assert await connecting is None
        assert manager.state is ConnectionState.DISCONNECTED
        assert manager.socket is None
        assert sockets == []

        # A connect issued after the disconnect still works.
        assert await manager.connect() is sockets[0]
        assert manager.state is ConnectionState.CONNECTING

    _run(_case())


def test_disconnect_during_reconnect_keeps_manager_disconnected(tmp_path: Path) -> None:
    async def _case() -> None:
        sockets: list[_FakeSocket] = []
        gate, entered, version = _gated_version()
        gate.set()
        manager = _manager(tmp_path, sockets, version_fetcher=version)
        await manager.connect()

        gate.clear()
        entered.clear()
        await sockets[0].emit(status="close", reason=_lost())
        reconnect = manager._reconnect_task
        assert reconnect is not None
        await entered.wait()
        assert manager._reconnect_task is None

        await manager.disconnect()
        gate.set()
        await reconnect

        assert manager.state is ConnectionState.DISCONNECTED
        assert manager.socket is None
        assert len(sockets) == 1
        assert manager._reconnect_task is None

    _run(_case())
