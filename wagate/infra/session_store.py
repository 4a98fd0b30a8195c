"""On-disk credential storage, one directory per session."""

from __future__ import annotations

import asyncio
import json
import os
import re
from pathlib import Path
from typing import Any

from wagate.core.errors import InvalidRequest
from wagate.defaults.config import CREDS_FILENAME, SESSIONS_DIR, STORE_FILENAME

_SESSION_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


def validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str) or not _SESSION_ID_RE.fullmatch(session_id) or session_id in {".", ".."}:
        raise InvalidRequest(f"Invalid session id: {session_id!r}")
    return session_id


class SessionStore:
    """JSON-backed credential store laid out as ``<root>/<session_id>/``.

    The credential bundle itself is opaque: whatever the protocol binding
    hands over on a credentials update is written as-is. Writes for one
    session are serialized so an older bundle never lands after a newer one.
    """

    def __init__(self, root: str | Path = SESSIONS_DIR) -> None:
        self.root = Path(root)
        self._locks: dict[str, asyncio.Lock] = {}

    def session_dir(self, session_id: str) -> Path:
        return self.root / validate_session_id(session_id)

    def creds_path(self, session_id: str) -> Path:
        return self.session_dir(session_id) / CREDS_FILENAME

    def store_path(self, session_id: str) -> Path:
        """Path the protocol binding keeps its own database at."""
        return self.session_dir(session_id) / STORE_FILENAME

    def _lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    async def ensure_session(self, session_id: str) -> Path:
        path = self.session_dir(session_id)
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        return path

    async def load_creds(self, session_id: str) -> dict[str, Any] | None:
        path = self.creds_path(session_id)
        async with self._lock(session_id):
            if not path.exists():
                return None
            raw = await asyncio.to_thread(path.read_text, "utf-8")
        return json.loads(raw)

    async def save_creds(self, session_id: str, creds: dict[str, Any]) -> None:
        path = self.creds_path(session_id)
        payload = json.dumps(creds, separators=(",", ":"), default=str)
        async with self._lock(session_id):
            await asyncio.to_thread(self._write_atomic, path, payload)

    def list_sessions(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(entry.name for entry in self.root.iterdir() if entry.is_dir())

    @staticmethod
    def _write_atomic(path: Path, payload: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(payload, "utf-8")
        os.replace(tmp_path, path)
