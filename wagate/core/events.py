from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOGGED_OUT = "logged_out"
    FAILED = "failed"


@dataclass
class ConnectionEvent:
    status: str | None = None  # "connecting", "open", "close"
    qr: str | None = None
    reason: Any | None = None


@dataclass
class IncomingMessage:
    id: str
    chat_jid: str
    sender_jid: str
    from_me: bool = False
    text: str | None = None
    media_type: str | None = None
