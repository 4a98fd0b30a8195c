from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from wagate.core.entities import MessageContent, TextContent, content_from_options
from wagate.core.errors import NotConnected
from wagate.core.jid import normalize_recipient

if TYPE_CHECKING:
    from wagate.client.connection import ConnectionManager
    from wagate.infra.transport import SocketLike

logger = logging.getLogger(__name__)


class MessageDispatcher:
    """Turns send requests into calls on the manager's active socket."""

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager

    def _active_socket(self) -> SocketLike:
        socket = self.manager.socket
        if socket is None or not self.manager.is_connected:
            raise NotConnected("WhatsApp client is not connected")
        return socket

    async def send_text(self, recipient: str, text: str) -> Any:
        """Sends a plain text message; upstream errors propagate unchanged."""
        return await self.send_message(recipient, TextContent(text))

    async def send_message(self, recipient: str, options: MessageContent | Mapping[str, Any]) -> Any:
        """Sends exactly one content variant to ``recipient``.

        ``recipient`` may be a bare phone number or a full JID. Raises
        :class:`InvalidRequest` for bad recipients or options and
        :class:`NotConnected` before touching the socket when offline.
        """
        content = content_from_options(options)
        jid = normalize_recipient(recipient)
        socket = self._active_socket()
        try:
            result = await socket.send_message(jid, content.to_payload())
        except Exception as exc:
            logger.error("error sending %s message to %s: %s", type(content).__name__, jid, exc)
            raise
        logger.info("message sent to %s", jid)
        return result
