from pathlib import Path
from typing import Any

import pytest

from wagate.config import GatewayConfig
from wagate.core.errors import GatewayError, NotInitialized
from wagate.core.events import ConnectionEvent
from wagate.server.runtime import GatewayRuntime


class _FakeSocket:
    def __init__(self, options: Any) -> None:
        self.options = options
        self.on_connection_update: Any = None
        self.on_creds_update: Any = None
        self.on_message: Any = None
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.ended = False

    async def start(self) -> None:
        return None

    async def send_message(self, jid: str, content: dict[str, Any]) -> Any:
        self.sent.append((jid, content))
        return {"id": "MSG1"}

    async def end(self) -> None:
        self.ended = True

    async def emit(self, **kwargs: Any) -> None:
        await self.on_connection_update(ConnectionEvent(**kwargs))


async def _version() -> tuple[int, int, int]:
    return (2, 3000, 1)


@pytest.fixture
def runtime_and_sockets(tmp_path: Path):
    sockets: list[_FakeSocket] = []

    def _factory(options: Any) -> _FakeSocket:
        sockets.append(_FakeSocket(options))
        return sockets[-1]

    cfg = GatewayConfig(sessions_dir=str(tmp_path), request_timeout_s=5.0)
    runtime = GatewayRuntime(cfg, socket_factory=_factory, version_fetcher=_version)
    yield runtime, sockets
    runtime.close()


def test_runtime_requires_start_before_status(runtime_and_sockets) -> None:
    runtime, _ = runtime_and_sockets
    with pytest.raises(NotInitialized):
        runtime.connection_state()


def test_runtime_start_qr_auth_and_send(runtime_and_sockets) -> None:
    runtime, sockets = runtime_and_sockets

    state = runtime.start()
    assert state["state"] == "connecting"
    assert len(sockets) == 1

    runtime._run_coro_sync(sockets[0].emit(status="connecting", qr="2@abc"))
    assert runtime.wait_for_qr(1.0) == "2@abc"

    runtime._run_coro_sync(sockets[0].emit(status="open"))
    assert runtime.connection_state()["connected"] is True
    assert runtime.authenticate(1.0) == "Authentication successful"

    runtime.send_text("15551234567@s.whatsapp.net", "hello")
    outcomes = runtime.send_bulk(["15550000001", "bogus"], {"text": "bulk"})
    assert [o.status for o in outcomes] == ["sent", "error"]
    assert sockets[0].sent == [
        ("15551234567@s.whatsapp.net", {"text": "hello"}),
        ("15550000001@s.whatsapp.net", {"text": "bulk"}),
    ]

    runtime.close()
    assert sockets[0].ended is True


def test_runtime_auth_timeout_is_408(runtime_and_sockets) -> None:
    runtime, _ = runtime_and_sockets
    runtime.start()
    with pytest.raises(GatewayError) as excinfo:
        runtime.authenticate(0.05)
    assert excinfo.value.status_code == 408
