"""Structured logger utilities."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_LEVEL_NAMES = {
    TRACE: "trace",
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "fatal",
}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        bindings = getattr(record, "bindings", None)
        if isinstance(bindings, dict):
            for key, value in bindings.items():
                payload.setdefault(key, value)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if not any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
    return logger


def parse_level(value: str | int) -> int:
    if isinstance(value, int):
        return value
    name = value.strip().upper()
    if name == "WARN":
        name = "WARNING"
    if name == "TRACE":
        return TRACE
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"unknown log level: {value!r}")
    return level


class ProtocolLogger(logging.LoggerAdapter):
    """Leveled logger in the shape protocol libraries expect.

    Bound fields given to :meth:`child` travel with every record and are
    rendered by :class:`JsonFormatter`.
    """

    def __init__(self, logger: logging.Logger, bindings: dict[str, Any] | None = None) -> None:
        super().__init__(logger, dict(bindings or {}))

    @property
    def level(self) -> str:
        effective = self.logger.getEffectiveLevel()
        for threshold in sorted(_LEVEL_NAMES, reverse=True):
            if effective >= threshold:
                return _LEVEL_NAMES[threshold]
        return "trace"

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        bindings = {**self.extra, **extra.pop("bindings", {})}
        extra["bindings"] = bindings
        kwargs["extra"] = extra
        return msg, kwargs

    def trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.log(TRACE, msg, *args, **kwargs)

    def warn(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        self.warning(msg, *args, **kwargs)

    def child(self, **bindings: Any) -> ProtocolLogger:
        return ProtocolLogger(self.logger, {**self.extra, **bindings})

    def bridge(self, library_logger: logging.Logger) -> logging.Logger:
        """Routes a library's own stdlib logger through this logger's handlers and level."""
        library_logger.setLevel(self.logger.getEffectiveLevel())
        source = self.logger
        while source is not None and not source.handlers and source.propagate:
            source = source.parent
        if source is not None:
            for handler in source.handlers:
                if handler not in library_logger.handlers:
                    library_logger.addHandler(handler)
        library_logger.propagate = False
        return library_logger
