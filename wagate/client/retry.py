"""Reconnect policy with exponential backoff and a circuit breaker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from wagate.defaults.config import DEFAULT_CONNECTION_CONFIG


@dataclass
class ReconnectPolicy:
    max_attempts: int = int(DEFAULT_CONNECTION_CONFIG["reconnect_max_attempts"])
    base_delay: float = float(DEFAULT_CONNECTION_CONFIG["reconnect_base_delay"])
    max_delay: float = float(DEFAULT_CONNECTION_CONFIG["reconnect_max_delay"])
    factor: float = float(DEFAULT_CONNECTION_CONFIG["reconnect_factor"])
    failures: int = field(default=0, init=False)
    last_error: str | None = field(default=None, init=False)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "ReconnectPolicy":
        return cls(
            max_attempts=int(config["reconnect_max_attempts"]),
            base_delay=float(config["reconnect_base_delay"]),
            max_delay=float(config["reconnect_max_delay"]),
            factor=float(config.get("reconnect_factor", 2.0)),
        )

    @property
    def tripped(self) -> bool:
        return self.failures >= self.max_attempts

    def record_failure(self, reason: object = None) -> float | None:
        """Counts one consecutive failure.

        Returns the delay before the next attempt, or ``None`` once the
        breaker has tripped.
        """
        self.failures += 1
        if reason is not None:
            self.last_error = str(reason)
        if self.tripped:
            return None
        return self.delay_for(self.failures)

    def delay_for(self, attempt: int) -> float:
        if attempt <= 0:
            return 0.0
        return min(self.max_delay, self.base_delay * (self.factor ** (attempt - 1)))

    def reset(self) -> None:
        self.failures = 0
        self.last_error = None
