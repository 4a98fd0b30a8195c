"""Connection lifecycle manager."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from wagate.client.broadcast import LatestValueBroadcast
from wagate.client.retry import ReconnectPolicy
from wagate.client.version import Version, fetch_latest_version, parse_version
from wagate.core.errors import (
    AuthenticationFailed,
    AuthenticationInProgress,
    DisconnectReason,
    GatewayError,
    NotInitialized,
    QRTimeout,
    UpstreamFailure,
)
from wagate.core.events import ConnectionEvent, ConnectionState, IncomingMessage
from wagate.defaults.config import DEFAULT_CONNECTION_CONFIG
from wagate.infra.logger import ProtocolLogger
from wagate.infra.session_store import SessionStore, validate_session_id
from wagate.infra.transport import SocketFactory, SocketLike, SocketOptions, default_socket_factory

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

AUTH_SUCCESS = "Authentication successful"


def close_reason_code(reason: Any) -> int | None:
    if isinstance(reason, int) and not isinstance(reason, bool):
        return reason
    for attr in ("reason_code", "status_code"):
        code = getattr(reason, attr, None)
        if isinstance(code, int):
            return code
    return None


class ConnectionManager:
    """Owns one protocol connection for a session.

    Connection updates from the socket go through a single handler that
    tracks :class:`ConnectionState`, publishes pairing codes, schedules
    reconnects and settles the one pending :meth:`authenticate` call.
    """

    def __init__(
        self,
        store: SessionStore,
        session_id: str = "default",
        *,
        socket_factory: SocketFactory = default_socket_factory,
        version_fetcher: Callable[[], Awaitable[Version]] | None = None,
        policy: ReconnectPolicy | None = None,
        protocol_logger: ProtocolLogger | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        **config_overrides: Any,
    ) -> None:
        self.store = store
        self.session_id = validate_session_id(session_id)
        self.config: dict[str, Any] = {**DEFAULT_CONNECTION_CONFIG, **config_overrides}
        self.socket_factory = socket_factory
        self.version_fetcher = version_fetcher or self._fetch_version
        self.policy = policy or ReconnectPolicy.from_config(self.config)
        self.protocol_logger = protocol_logger or ProtocolLogger(logging.getLogger("wagate.protocol"))
        self.qr_codes: LatestValueBroadcast[str] = LatestValueBroadcast()
        self.on_message: Callable[[IncomingMessage], Awaitable[None]] | None = None

        self.version: Version | None = None
        self.last_reason: str | None = None

        self._socket: SocketLike | None = None
        self._state = ConnectionState.DISCONNECTED
        self._auth_waiter: asyncio.Future[str] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._explicit_disconnect = False
        # Bumped by disconnect(); in-flight connects from an older generation abort.
        self._generation = 0
        self._sleep = sleep
        self._connect_guard = asyncio.Lock()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def socket(self) -> SocketLike | None:
        return self._socket

    @property
    def latest_qr(self) -> str | None:
        return self.qr_codes.latest

    def status(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "state": self._state.value,
            "connected": self.is_connected,
            "reason": self.last_reason,
            "reconnect_failures": self.policy.failures,
        }

    async def connect(self, session_id: str | None = None) -> SocketLike | None:
        """Builds and starts a socket for the session.

        Returns ``None`` without touching the state when :meth:`disconnect`
        ran while this call was in flight.
        """
        return await self._connect(session_id, self._generation)

    async def _connect(self, session_id: str | None, generation: int) -> SocketLike | None:
        async with self._connect_guard:
            if self._superseded(generation):
                return None
            if session_id is not None:
                self.session_id = validate_session_id(session_id)
            self._explicit_disconnect = False

            session_dir = await self.store.ensure_session(self.session_id)
            creds = await self.store.load_creds(self.session_id)
            version = await self._negotiate_version()
            if self._superseded(generation):
                return None

            previous = self._socket
            if previous is not None:
                self._detach(previous)
                self._socket = None
                with contextlib.suppress(Exception):
                    await previous.end()
                if self._superseded(generation):
                    return None

            self._set_state(ConnectionState.CONNECTING)
            options = SocketOptions(
                session_id=self.session_id,
                session_dir=session_dir,
                store_path=self.store.store_path(self.session_id),
                version=version,
                logger=self.protocol_logger.child(session=self.session_id),
                creds=creds,
                browser=tuple(self.config["browser"]),
                sync_full_history=bool(self.config["sync_full_history"]),
            )
            try:
                socket = self.socket_factory(options)
            except Exception as exc:
                self._set_state(ConnectionState.DISCONNECTED)
                raise UpstreamFailure(f"Failed to create connection: {exc}") from exc

            socket.on_connection_update = self._handle_connection_update
            socket.on_creds_update = self._handle_creds_update
            socket.on_message = self._handle_message
            self._socket = socket

            try:
                await socket.start()
            except Exception as exc:
                self._detach(socket)
                if self._socket is socket:
                    self._socket = None
                if not self._superseded(generation):
                    self._set_state(ConnectionState.DISCONNECTED)
                raise UpstreamFailure(f"Failed to connect: {exc}") from exc
            if self._superseded(generation):
                # disconnect() already detached and ended this socket.
                return None
            return socket

    def _superseded(self, generation: int) -> bool:
        if generation == self._generation:
            return False
        logger.info("connect attempt for session %s dropped after disconnect", self.session_id)
        return True

    async def disconnect(self) -> None:
        self._explicit_disconnect = True
        self._generation += 1
        self._cancel_reconnect()
        socket = self._socket
        self._socket = None
        if socket is not None:
            self._detach(socket)
            try:
                await socket.end()
            except Exception as exc:
                logger.warning("error while closing connection: %s", exc)
            logger.info("disconnected session %s", self.session_id)
        self._set_state(ConnectionState.DISCONNECTED)
        self._fail_auth("Connection closed")
        await self.qr_codes.clear()

    async def authenticate(self) -> str:
        if self._state is ConnectionState.CONNECTED:
            return AUTH_SUCCESS
        if self._socket is None and self._reconnect_task is None:
            raise NotInitialized("WhatsApp client is not initialized")
        if self._state in (ConnectionState.LOGGED_OUT, ConnectionState.FAILED):
            raise AuthenticationFailed(f"Authentication failed: connection is {self._state.value}")
        if self._auth_waiter is not None and not self._auth_waiter.done():
            raise AuthenticationInProgress("Authentication is already in progress")

        waiter: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._auth_waiter = waiter
        try:
            return await waiter
        finally:
            if self._auth_waiter is waiter:
                self._auth_waiter = None

    async def wait_for_qr(self, timeout: float | None = None) -> str:
        """Returns the cached pairing code, or waits for the next one."""
        if self._state is ConnectionState.CONNECTED:
            raise GatewayError("WhatsApp session is already authenticated", status_code=409)
        latest = self.qr_codes.latest
        if latest is not None:
            return latest
        try:
            return await self.qr_codes.next(timeout)
        except asyncio.TimeoutError as exc:
            raise QRTimeout("Timed out waiting for QR code") from exc

    async def _fetch_version(self) -> Version:
        return await fetch_latest_version(
            str(self.config["version_url"]),
            timeout=float(self.config["version_timeout"]),
        )

    async def _negotiate_version(self) -> Version:
        try:
            version = parse_version(await self.version_fetcher())
        except Exception as exc:
            try:
                version = parse_version(self.config.get("version"))
            except ValueError as fallback_exc:
                raise UpstreamFailure(f"No usable protocol version: {exc}") from fallback_exc
            logger.warning("version lookup failed (%s); using fallback %s", exc, version)
        self.version = version
        return version

    async def _handle_connection_update(self, event: ConnectionEvent) -> None:
        if event.qr:
            await self.qr_codes.publish(event.qr)

        if event.status == "open":
            self.policy.reset()
            self.last_reason = None
            self._set_state(ConnectionState.CONNECTED)
            await self.qr_codes.clear()
            self._resolve_auth(AUTH_SUCCESS)
        elif event.status == "connecting":
            self._set_state(ConnectionState.CONNECTING)
        elif event.status == "close":
            self._handle_close(event.reason)

    def _handle_close(self, reason: Any) -> None:
        self.last_reason = str(reason) if reason else None
        if self._explicit_disconnect:
            self._set_state(ConnectionState.DISCONNECTED)
            self._fail_auth("Connection closed")
            return

        if close_reason_code(reason) == int(DisconnectReason.LOGGED_OUT):
            logger.info("connection closed: logged out")
            self._cancel_reconnect()
            self._set_state(ConnectionState.LOGGED_OUT)
            self._fail_auth("Authentication failed: logged out")
            return

        self._set_state(ConnectionState.DISCONNECTED)
        self._schedule_reconnect(reason)

    def _schedule_reconnect(self, reason: Any) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            logger.debug("reconnect already scheduled; ignoring close (%s)", reason)
            return
        delay = self.policy.record_failure(reason)
        if delay is None:
            logger.error(
                "giving up after %s consecutive connection failures: %s",
                self.policy.failures,
                self.policy.last_error,
            )
            self._set_state(ConnectionState.FAILED)
            self._fail_auth("Authentication failed: connection keeps failing")
            return
        logger.info(
            "connection closed (%s); reconnecting in %.1fs (%s/%s)",
            reason,
            delay,
            self.policy.failures,
            self.policy.max_attempts,
        )
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay, self._generation))

    async def _reconnect_after(self, delay: float, generation: int) -> None:
        await self._sleep(delay)
        if self._reconnect_task is asyncio.current_task():
            self._reconnect_task = None
        if self._explicit_disconnect:
            return
        try:
            await self._connect(None, generation)
        except Exception as exc:
            logger.warning("reconnect attempt failed: %s", exc)
            if not self._explicit_disconnect and generation == self._generation:
                self._schedule_reconnect(exc)

    def _cancel_reconnect(self) -> None:
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _handle_creds_update(self, creds: dict[str, Any]) -> None:
        await self.store.save_creds(self.session_id, creds)
        logger.debug("saved credentials for session %s", self.session_id)

    async def _handle_message(self, message: IncomingMessage) -> None:
        if self.on_message is None:
            return
        try:
            await self.on_message(message)
        except Exception:
            logger.exception("incoming message handler failed for %s", message.id)

    def _resolve_auth(self, token: str) -> None:
        waiter = self._auth_waiter
        if waiter is not None and not waiter.done():
            waiter.set_result(token)

    def _fail_auth(self, message: str) -> None:
        waiter = self._auth_waiter
        if waiter is not None and not waiter.done():
            waiter.set_exception(AuthenticationFailed(message))

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            logger.info("connection state %s -> %s", self._state.value, state.value)
            self._state = state

    @staticmethod
    def _detach(socket: SocketLike) -> None:
        socket.on_connection_update = None
        socket.on_creds_update = None
        socket.on_message = None
