"""Bulk dispatch over :class:`MessageDispatcher`."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Mapping

from wagate.core.entities import BulkSendOutcome, BulkSendResult, MessageContent, content_from_options
from wagate.core.jid import normalize_recipient

if TYPE_CHECKING:
    from wagate.client.messages import MessageDispatcher

logger = logging.getLogger(__name__)


async def send_bulk(
    dispatcher: MessageDispatcher,
    recipients: Iterable[str],
    content: MessageContent | Mapping[str, Any],
    *,
    concurrency: int = 1,
) -> BulkSendResult:
    """Sends ``content`` to every recipient, one outcome per recipient in input order.

    A failing recipient is recorded as ``error`` and never stops the batch.
    Each outcome names the normalized JID; only a recipient that cannot be
    normalized is reported as given.
    With ``concurrency`` above 1, up to that many sends run at once.
    """
    message = content_from_options(content)
    targets = list(recipients)
    limit = asyncio.Semaphore(max(1, int(concurrency)))

    async def _send_one(raw: str) -> BulkSendOutcome:
        async with limit:
            target = str(raw)
            try:
                target = normalize_recipient(raw)
                await dispatcher.send_message(target, message)
            except Exception as exc:
                logger.warning("bulk send to %r failed: %s", target, exc)
                return BulkSendOutcome(recipient=target, status="error", error=str(exc) or type(exc).__name__)
            return BulkSendOutcome(recipient=target, status="sent")

    outcomes = await asyncio.gather(*(_send_one(raw) for raw in targets))
    sent = sum(1 for outcome in outcomes if outcome.status == "sent")
    logger.info("bulk send finished: %s sent, %s failed", sent, len(outcomes) - sent)
    return tuple(outcomes)
