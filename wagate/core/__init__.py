from .errors import (
    AuthenticationFailed,
    AuthenticationInProgress,
    ConnectionClosed,
    DisconnectReason,
    GatewayError,
    InvalidRequest,
    NotConnected,
    NotInitialized,
    QRTimeout,
    UpstreamFailure,
)
from .events import ConnectionEvent, ConnectionState, IncomingMessage
from .jid import Jid, S_WHATSAPP_NET, jid_decode, jid_encode, normalize_recipient, user_info

__all__ = [
    "AuthenticationFailed",
    "AuthenticationInProgress",
    "ConnectionClosed",
    "ConnectionEvent",
    "ConnectionState",
    "DisconnectReason",
    "GatewayError",
    "IncomingMessage",
    "InvalidRequest",
    "Jid",
    "NotConnected",
    "NotInitialized",
    "QRTimeout",
    "S_WHATSAPP_NET",
    "UpstreamFailure",
    "jid_decode",
    "jid_encode",
    "normalize_recipient",
    "user_info",
]
