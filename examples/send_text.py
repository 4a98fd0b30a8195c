"""Pair a session and send one text message without the HTTP server.

    python examples/send_text.py 15551234567 "hello from wagate"

Scan the QR code printed on first run with WhatsApp > Linked devices.
"""

import asyncio
import logging
import sys

import qrcode

from wagate.client import ConnectionManager, MessageDispatcher
from wagate.infra import SessionStore, get_logger


async def main(recipient: str, text: str) -> None:
    get_logger("wagate", logging.INFO)
    manager = ConnectionManager(SessionStore("sessions"), "example")
    dispatcher = MessageDispatcher(manager)

    await manager.connect()
    pending = asyncio.create_task(manager.authenticate())
    shown = None
    while not pending.done():
        code = manager.latest_qr
        if code and code != shown:
            qr = qrcode.QRCode(border=1)
            qr.add_data(code)
            qr.print_ascii(invert=True)
            shown = code
        await asyncio.sleep(0.5)

    try:
        print(await pending)
        await dispatcher.send_text(recipient, text)
        print(f"sent to {recipient}")
    finally:
        await manager.disconnect()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(2)
    asyncio.run(main(sys.argv[1], sys.argv[2]))
