from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wagate.core.events import IncomingMessage

if TYPE_CHECKING:
    from wagate.client.messages import MessageDispatcher

logger = logging.getLogger(__name__)


class IncomingMessageHandler:
    """Logs incoming messages and optionally answers ``ping``."""

    def __init__(self, dispatcher: MessageDispatcher, *, ping_reply: bool = False) -> None:
        self.dispatcher = dispatcher
        self.ping_reply = ping_reply

    async def __call__(self, message: IncomingMessage) -> None:
        if message.from_me or not message.chat_jid:
            return
        logger.info("New message from %s: %s", message.chat_jid, message.text or "[Media Message]")
        if self.ping_reply and message.text and message.text.strip().lower() == "ping":
            await self.dispatcher.send_text(message.chat_jid, "Pong!")
