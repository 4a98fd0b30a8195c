"""Single-slot broadcast used for pairing codes."""

from __future__ import annotations

import asyncio
from typing import Generic, TypeVar

T = TypeVar("T")


class LatestValueBroadcast(Generic[T]):
    """Keeps the latest published value and wakes every current waiter.

    Values are superseded, never queued: a waiter that wakes after two
    publishes sees only the newer one. Callers that arrive after a publish
    read :attr:`latest` instead of waiting.
    """

    def __init__(self) -> None:
        self._latest: T | None = None
        self._version = 0
        self._cond = asyncio.Condition()

    @property
    def latest(self) -> T | None:
        return self._latest

    @property
    def version(self) -> int:
        return self._version

    async def publish(self, value: T) -> None:
        async with self._cond:
            self._latest = value
            self._version += 1
            self._cond.notify_all()

    async def clear(self) -> None:
        async with self._cond:
            self._latest = None

    async def next(self, timeout: float | None = None) -> T:
        """Waits for the next publish after this call; raises ``TimeoutError`` on timeout."""
        async with self._cond:
            seen = self._version
            await asyncio.wait_for(self._cond.wait_for(lambda: self._version != seen), timeout)
            return self._latest  # type: ignore[return-value]
