"""Default constants and configuration values for wagate."""

from .config import DEFAULT_CONNECTION_CONFIG, FALLBACK_VERSION, SESSIONS_DIR

__all__ = ["DEFAULT_CONNECTION_CONFIG", "FALLBACK_VERSION", "SESSIONS_DIR"]
