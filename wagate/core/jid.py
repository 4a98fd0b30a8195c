import re
from dataclasses import dataclass
from typing import Optional

from wagate.core.errors import InvalidRequest

S_WHATSAPP_NET = "s.whatsapp.net"
S_WHATSAPP_NET_GROUP = "g.us"

_BARE_ID_RE = re.compile(r"^\d{6,20}$")


@dataclass
class Jid:
    user: str
    server: str
    device: Optional[int] = None

    def __str__(self) -> str:
        return jid_encode(self.user, self.server, self.device)

    @property
    def is_group(self) -> bool:
        return self.server == S_WHATSAPP_NET_GROUP


def jid_decode(jid_str: str | None) -> Optional[Jid]:
    """Splits ``user[:device]@server``; a value without ``@`` is a bare server."""
    if not jid_str:
        return None
    head, sep, server = jid_str.partition("@")
    if not sep:
        return Jid(user="", server=head)
    user, _, device = head.partition(":")
    return Jid(user=user, server=server, device=int(device) if device.isdigit() else None)


def jid_encode(user: str, server: str, device: Optional[int] = None) -> str:
    if not user:
        return server
    if device is None:
        return f"{user}@{server}"
    return f"{user}:{device}@{server}"


def normalize_recipient(raw: str) -> str:
    """Expands a bare phone number into the canonical direct-chat JID.

    Anything that already carries a server part is returned unchanged, so
    group and LID addresses pass through as given.
    """
    if not isinstance(raw, str):
        raise InvalidRequest("Recipient must be a string")
    candidate = raw.strip()
    if "@" in candidate:
        return candidate
    if candidate.startswith("+"):
        candidate = candidate[1:]
    if not _BARE_ID_RE.fullmatch(candidate):
        raise InvalidRequest(f"Invalid recipient {raw!r}. Use digits only with optional '+' prefix.")
    return jid_encode(candidate, S_WHATSAPP_NET)


def user_info(jid_str: str) -> Jid:
    """Decodes a full JID, rejecting values without a user part."""
    decoded = jid_decode(jid_str)
    if not decoded or not decoded.user:
        raise InvalidRequest(f"Invalid JID: {jid_str!r}")
    return decoded
