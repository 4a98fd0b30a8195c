from __future__ import annotations

import asyncio
import atexit
import concurrent.futures
import contextlib
import logging
import threading
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from wagate.client.bulk import send_bulk
from wagate.client.connection import ConnectionManager
from wagate.client.incoming import IncomingMessageHandler
from wagate.client.messages import MessageDispatcher
from wagate.client.version import Version
from wagate.config import GatewayConfig
from wagate.core.entities import BulkSendResult, MessageContent
from wagate.core.errors import GatewayError, NotInitialized, UpstreamFailure
from wagate.infra.session_store import SessionStore
from wagate.infra.transport import SocketFactory, default_socket_factory

logger = logging.getLogger(__name__)


class GatewayRuntime:
    """Runs the connection manager on a private event loop for the sync HTTP layer."""

    def __init__(
        self,
        config: GatewayConfig,
        *,
        socket_factory: SocketFactory = default_socket_factory,
        version_fetcher: Callable[[], Awaitable[Version]] | None = None,
    ) -> None:
        self.config = config
        self._loop = asyncio.new_event_loop()
        self._started = threading.Event()
        self._thread = threading.Thread(target=self._run_loop, name="wagate-loop", daemon=True)
        self._thread.start()
        self._started.wait(timeout=2.0)

        self.store = SessionStore(config.sessions_dir)
        self.manager = ConnectionManager(
            self.store,
            config.session_id,
            socket_factory=socket_factory,
            version_fetcher=version_fetcher,
            **config.connection_config(),
        )
        self.dispatcher = MessageDispatcher(self.manager)
        self.manager.on_message = IncomingMessageHandler(self.dispatcher, ping_reply=config.ping_reply)
        self._initialized = False
        self._closed = False

        atexit.register(self.close)

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._started.set()
        self._loop.run_forever()

    def _run_coro_sync(self, coro: Any, timeout: float | None = None) -> Any:
        fut = asyncio.run_coroutine_threadsafe(coro, self._loop)
        wait_s = self.config.request_timeout_s if timeout is None else timeout
        try:
            return fut.result(timeout=wait_s)
        except concurrent.futures.TimeoutError as exc:
            fut.cancel()
            raise UpstreamFailure(f"Timed out after {wait_s:.0f}s waiting for WhatsApp") from exc

    def start(self) -> dict[str, Any]:
        self._run_coro_sync(self.manager.connect())
        self._initialized = True
        logger.info("WhatsApp client initialized for session %s", self.manager.session_id)
        return self.manager.status()

    def connection_state(self) -> dict[str, Any]:
        if not self._initialized:
            raise NotInitialized("WhatsApp client not initialized")
        return self.manager.status()

    def wait_for_qr(self, timeout: float) -> str:
        return self._run_coro_sync(self.manager.wait_for_qr(timeout), timeout=timeout + 5.0)

    def authenticate(self, timeout: float) -> str:
        async def _authenticate() -> str:
            try:
                return await asyncio.wait_for(self.manager.authenticate(), timeout)
            except asyncio.TimeoutError as exc:
                raise GatewayError("Timed out waiting for authentication", status_code=408) from exc

        return self._run_coro_sync(_authenticate(), timeout=timeout + 5.0)

    def send_text(self, recipient: str, text: str) -> Any:
        return self._run_coro_sync(self.dispatcher.send_text(recipient, text))

    def send_message(self, recipient: str, content: MessageContent) -> Any:
        return self._run_coro_sync(self.dispatcher.send_message(recipient, content))

    def send_bulk(self, recipients: Sequence[str], content: MessageContent) -> BulkSendResult:
        timeout = self.config.request_timeout_s * max(1, len(recipients))
        return self._run_coro_sync(
            send_bulk(self.dispatcher, recipients, content, concurrency=self.config.bulk_concurrency),
            timeout=timeout,
        )

    def close(self) -> None:
        if self._closed or not self._loop.is_running():
            return
        self._closed = True
        with contextlib.suppress(Exception):
            self._run_coro_sync(self.manager.disconnect(), timeout=5.0)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=2.0)
