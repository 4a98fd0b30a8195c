"""Runtime configuration for the HTTP gateway."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from wagate.defaults.config import DEFAULT_CONNECTION_CONFIG, SESSIONS_DIR


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default) not in {"0", "false", "False", ""}


@dataclass
class GatewayConfig:
    host: str = "0.0.0.0"
    port: int = 3000
    api_token: str | None = None
    session_id: str = "default"
    sessions_dir: str = SESSIONS_DIR
    url_prefix: str = "/api/whatsapp"
    qr_timeout_s: float = 20.0
    auth_timeout_s: float = 60.0
    request_timeout_s: float = 30.0
    reconnect_max_attempts: int = int(DEFAULT_CONNECTION_CONFIG["reconnect_max_attempts"])
    reconnect_base_delay_s: float = float(DEFAULT_CONNECTION_CONFIG["reconnect_base_delay"])
    reconnect_max_delay_s: float = float(DEFAULT_CONNECTION_CONFIG["reconnect_max_delay"])
    bulk_concurrency: int = 1
    ping_reply: bool = False
    log_level: str = "INFO"
    connection_overrides: dict[str, Any] = field(default_factory=dict)

    def connection_config(self) -> dict[str, Any]:
        return {
            "reconnect_max_attempts": self.reconnect_max_attempts,
            "reconnect_base_delay": self.reconnect_base_delay_s,
            "reconnect_max_delay": self.reconnect_max_delay_s,
            **self.connection_overrides,
        }


def config_from_env() -> GatewayConfig:
    return GatewayConfig(
        host=os.getenv("WAGATE_HOST", "0.0.0.0"),
        port=int(os.getenv("WAGATE_PORT", os.getenv("PORT", "3000"))),
        api_token=os.getenv("WAGATE_API_TOKEN") or None,
        session_id=os.getenv("WAGATE_SESSION_ID", "default"),
        sessions_dir=os.getenv("WAGATE_SESSIONS_DIR", SESSIONS_DIR),
        url_prefix=os.getenv("WAGATE_URL_PREFIX", "/api/whatsapp"),
        qr_timeout_s=float(os.getenv("WAGATE_QR_TIMEOUT", "20")),
        auth_timeout_s=float(os.getenv("WAGATE_AUTH_TIMEOUT", "60")),
        request_timeout_s=float(os.getenv("WAGATE_REQUEST_TIMEOUT", "30")),
        reconnect_max_attempts=int(os.getenv("WAGATE_RECONNECT_MAX_ATTEMPTS", "5")),
        reconnect_base_delay_s=float(os.getenv("WAGATE_RECONNECT_BASE_DELAY", "1")),
        reconnect_max_delay_s=float(os.getenv("WAGATE_RECONNECT_MAX_DELAY", "30")),
        bulk_concurrency=int(os.getenv("WAGATE_BULK_CONCURRENCY", "1")),
        ping_reply=_env_flag("WAGATE_PING_REPLY"),
        log_level=os.getenv("WAGATE_LOG_LEVEL", "INFO"),
    )
