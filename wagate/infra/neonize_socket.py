"""Socket binding backed by neonize (Python bindings for whatsmeow).

neonize owns the protocol: pairing, encryption, media upload and its own
SQLite device store, kept at ``SocketOptions.store_path``. This module only
translates its events into :class:`ConnectionEvent` / :class:`IncomingMessage`
and Baileys-style content dicts into neonize send calls.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Optional

from neonize.aioze.client import NewAClient
from neonize.events import ConnectedEv, DisconnectedEv, LoggedOutEv, MessageEv, PairStatusEv
from neonize.utils import build_jid
from neonize.utils import log as neonize_log
from neonize.utils.jid import Jid2String

from wagate.core.errors import ConnectionClosed, DisconnectReason, InvalidRequest
from wagate.core.events import ConnectionEvent, IncomingMessage
from wagate.core.jid import user_info
from wagate.defaults.config import DEFAULT_CONNECTION_CONFIG
from wagate.infra.transport import (
    ConnectionUpdateHandler,
    CredsUpdateHandler,
    MessageHandler,
    SocketOptions,
)

logger = logging.getLogger(__name__)


def _message_text(message: Any) -> str | None:
    for candidate in (
        message.conversation,
        message.extendedTextMessage.text,
        message.imageMessage.caption,
        message.videoMessage.caption,
    ):
        if candidate:
            return candidate
    return None


class NeonizeSocket:
    def __init__(self, options: SocketOptions) -> None:
        self.options = options
        self.on_connection_update: Optional[ConnectionUpdateHandler] = None
        self.on_creds_update: Optional[CredsUpdateHandler] = None
        self.on_message: Optional[MessageHandler] = None

        options.logger.bridge(neonize_log)
        self._loop = asyncio.get_running_loop()
        self._client = NewAClient(str(options.store_path))
        self._connect_task: asyncio.Task[Any] | None = None
        self._closed = False

        self._client.qr(self._on_qr)
        self._client.event(ConnectedEv)(self._on_connected)
        self._client.event(PairStatusEv)(self._on_pair_status)
        self._client.event(LoggedOutEv)(self._on_logged_out)
        self._client.event(DisconnectedEv)(self._on_disconnected)
        self._client.event(MessageEv)(self._on_message)

    async def start(self) -> None:
        self.options.logger.info(
            "starting session %s (web version %s)",
            self.options.session_id,
            ".".join(str(part) for part in self.options.version),
        )
        self._closed = False
        await self._emit(self.on_connection_update, ConnectionEvent(status="connecting"))
        self._connect_task = asyncio.create_task(self._client.connect())
        self._connect_task.add_done_callback(self._on_connect_done)

    async def send_message(self, jid: str, content: dict[str, Any]) -> Any:
        decoded = user_info(jid)
        to = build_jid(decoded.user, decoded.server)

        if "text" in content:
            return await self._client.send_message(to, content["text"])
        if "image" in content:
            return await self._client.send_image(to, content["image"]["url"], caption=content.get("caption"))
        if "video" in content:
            return await self._client.send_video(to, content["video"]["url"], caption=content.get("caption"))
        if "audio" in content:
            message = await self._client.build_audio_message(content["audio"]["url"])
            message.audioMessage.mimetype = content.get("mimetype") or DEFAULT_CONNECTION_CONFIG["audio_mimetype"]
            return await self._client.send_message(to, message)
        if "sticker" in content:
            return await self._client.send_sticker(to, content["sticker"]["url"])
        raise InvalidRequest(f"Unsupported message content: {sorted(content)}")

    async def end(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._client.disconnect()
        finally:
            task = self._connect_task
            self._connect_task = None
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, Exception):
                    await task

    def _on_connect_done(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled() or self._closed:
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("neonize connect loop failed: %s", exc)
        reason = ConnectionClosed(str(exc), int(DisconnectReason.CONNECTION_ERROR))
        self._loop.create_task(self._emit(self.on_connection_update, ConnectionEvent(status="close", reason=reason)))

    async def _emit(self, handler: Any, payload: Any) -> None:
        if handler is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            await handler(payload)
            return
        await asyncio.wrap_future(asyncio.run_coroutine_threadsafe(handler(payload), self._loop))

    async def _on_qr(self, _: NewAClient, data_qr: bytes) -> None:
        qr = data_qr.decode("utf-8") if isinstance(data_qr, (bytes, bytearray)) else str(data_qr)
        await self._emit(self.on_connection_update, ConnectionEvent(status="connecting", qr=qr))

    async def _on_connected(self, _: NewAClient, __: ConnectedEv) -> None:
        await self._emit(self.on_connection_update, ConnectionEvent(status="open"))

    async def _on_pair_status(self, _: NewAClient, event: PairStatusEv) -> None:
        creds = {
            "me": {
                "id": Jid2String(event.ID),
                "business_name": event.BusinessName,
                "platform": event.Platform,
            },
            "registered": True,
        }
        await self._emit(self.on_creds_update, creds)

    async def _on_logged_out(self, _: NewAClient, event: LoggedOutEv) -> None:
        reason = ConnectionClosed(f"logged out ({event.Reason})", int(DisconnectReason.LOGGED_OUT))
        await self._emit(self.on_connection_update, ConnectionEvent(status="close", reason=reason))

    async def _on_disconnected(self, _: NewAClient, __: DisconnectedEv) -> None:
        if self._closed:
            return
        reason = ConnectionClosed("connection lost", int(DisconnectReason.CONNECTION_LOST))
        await self._emit(self.on_connection_update, ConnectionEvent(status="close", reason=reason))

    async def _on_message(self, _: NewAClient, event: MessageEv) -> None:
        source = event.Info.MessageSource
        text = _message_text(event.Message)
        incoming = IncomingMessage(
            id=event.Info.ID,
            chat_jid=Jid2String(source.Chat),
            sender_jid=Jid2String(source.Sender),
            from_me=bool(source.IsFromMe),
            text=text,
            media_type=None if text is not None else "media",
        )
        await self._emit(self.on_message, incoming)
