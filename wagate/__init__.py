"""HTTP gateway for sending WhatsApp messages."""

__version__ = "0.1.0"

__all__ = [
    "ConnectionManager",
    "MessageDispatcher",
    "send_bulk",
    "GatewayConfig",
    "GatewayError",
    "DisconnectReason",
    "create_app",
]


def __getattr__(name: str) -> object:
    """Lazy exports so importing the core does not pull in Flask or pandas."""
    if name in {"ConnectionManager", "MessageDispatcher", "send_bulk"}:
        from .client import ConnectionManager, MessageDispatcher, send_bulk

        return {
            "ConnectionManager": ConnectionManager,
            "MessageDispatcher": MessageDispatcher,
            "send_bulk": send_bulk,
        }[name]

    if name == "GatewayConfig":
        from .config import GatewayConfig

        return GatewayConfig

    if name in {"GatewayError", "DisconnectReason"}:
        from .core.errors import DisconnectReason, GatewayError

        return {"GatewayError": GatewayError, "DisconnectReason": DisconnectReason}[name]

    if name == "create_app":
        from .server.app import create_app

        return create_app

    raise AttributeError(f"module 'wagate' has no attribute {name!r}")
