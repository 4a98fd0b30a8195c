"""Seam between the connection manager and the protocol library."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Protocol

from wagate.core.events import ConnectionEvent, IncomingMessage
from wagate.infra.logger import ProtocolLogger

ConnectionUpdateHandler = Callable[[ConnectionEvent], Awaitable[None]]
CredsUpdateHandler = Callable[[dict[str, Any]], Awaitable[None]]
MessageHandler = Callable[[IncomingMessage], Awaitable[None]]


@dataclass
class SocketOptions:
    session_id: str
    session_dir: Path
    store_path: Path
    version: tuple[int, int, int]
    logger: ProtocolLogger
    creds: Optional[dict[str, Any]] = None
    browser: tuple[str, str, str] = ("WhatsApp API", "Chrome", "4.0.0")
    sync_full_history: bool = True
    extra: dict[str, Any] = field(default_factory=dict)


class SocketLike(Protocol):
    """What the connection manager needs from one protocol-library connection.

    The manager assigns the three handler attributes before calling
    :meth:`start`; the socket awaits them in the order events arrive.
    """

    on_connection_update: Optional[ConnectionUpdateHandler]
    on_creds_update: Optional[CredsUpdateHandler]
    on_message: Optional[MessageHandler]

    async def start(self) -> None: ...

    async def send_message(self, jid: str, content: dict[str, Any]) -> Any: ...

    async def end(self) -> None: ...


SocketFactory = Callable[[SocketOptions], SocketLike]


def default_socket_factory(options: SocketOptions) -> SocketLike:
    from wagate.infra.neonize_socket import NeonizeSocket

    return NeonizeSocket(options)
