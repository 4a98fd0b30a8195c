"""Error taxonomy shared by the connection manager, dispatcher and HTTP layer."""

from enum import IntEnum
from typing import Optional


class GatewayError(Exception):
    """Base exception for wagate.

    ``status_code`` is the HTTP status the error maps to at the API boundary.
    """

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class NotInitialized(GatewayError):
    """Raised when an operation needs a connection and none was ever created."""


class NotConnected(GatewayError):
    """Raised when a connection exists but is not in the connected state."""


class AuthenticationFailed(GatewayError):
    """Raised when the connection closes for good before reaching ``open``."""


class AuthenticationInProgress(GatewayError):
    status_code = 409


class InvalidRequest(GatewayError):
    """Raised for malformed send options, missing fields or unsupported media types."""

    status_code = 400


class QRTimeout(GatewayError):
    status_code = 408


class UpstreamFailure(GatewayError):
    """Raised when the protocol library's own connect or send call failed."""


class ConnectionClosed(GatewayError):
    """Close reason reported with a ``close`` connection update.

    ``reason_code`` carries the :class:`DisconnectReason` value, if known.
    """

    def __init__(self, message: str, reason_code: Optional[int] = None):
        super().__init__(message)
        self.reason_code = reason_code


class DisconnectReason(IntEnum):
    """Baileys-compatible close codes."""

    CONNECTION_CLOSED = 428
    CONNECTION_LOST = 408
    CONNECTION_REPLACED = 440
    LOGGED_OUT = 401
    BAD_SESSION = 500
    RESTART_REQUIRED = 515
    MULTIDEVICE_MISMATCH = 411
    TIMED_OUT = 408
    CONNECTION_ERROR = 429
