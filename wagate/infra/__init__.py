from .logger import JsonFormatter, ProtocolLogger, get_logger
from .session_store import SessionStore

__all__ = ["JsonFormatter", "ProtocolLogger", "SessionStore", "get_logger"]
