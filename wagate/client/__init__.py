"""Client package public exports."""

from .bulk import send_bulk
from .connection import ConnectionManager
from .messages import MessageDispatcher

__all__ = ["ConnectionManager", "MessageDispatcher", "send_bulk"]
