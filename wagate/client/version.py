"""Protocol version lookup."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from wagate.defaults.config import DEFAULT_CONNECTION_CONFIG

logger = logging.getLogger(__name__)

Version = tuple[int, int, int]


def parse_version(value: Any) -> Version:
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        raise ValueError(f"version must have three parts, got {value!r}")
    parts = []
    for part in value:
        if isinstance(part, bool) or not isinstance(part, int) or part < 0:
            raise ValueError(f"invalid version part {part!r}")
        parts.append(part)
    return (parts[0], parts[1], parts[2])


async def fetch_latest_version(
    url: str | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> Version:
    """Fetches the current web client version published by the Baileys project."""
    target = url or str(DEFAULT_CONNECTION_CONFIG["version_url"])
    timeout_s = timeout if timeout is not None else float(DEFAULT_CONNECTION_CONFIG["version_timeout"])
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout_s)
    try:
        res = await http.get(target)
        res.raise_for_status()
        version = parse_version(res.json().get("version"))
    finally:
        if owns_client:
            await http.aclose()
    logger.debug("latest web version: %s", ".".join(str(part) for part in version))
    return version
