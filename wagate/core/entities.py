"""Outgoing message content and bulk-send results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from wagate.core.errors import InvalidRequest
from wagate.defaults.config import DEFAULT_CONNECTION_CONFIG

MEDIA_TYPES = ("image", "video", "audio", "sticker")


@dataclass(frozen=True)
class TextContent:
    text: str

    def to_payload(self) -> dict[str, Any]:
        return {"text": self.text}


@dataclass(frozen=True)
class ImageContent:
    url: str
    caption: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"image": {"url": self.url}}
        if self.caption is not None:
            payload["caption"] = self.caption
        return payload


@dataclass(frozen=True)
class VideoContent:
    url: str
    caption: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"video": {"url": self.url}}
        if self.caption is not None:
            payload["caption"] = self.caption
        return payload


@dataclass(frozen=True)
class AudioContent:
    url: str

    def to_payload(self) -> dict[str, Any]:
        return {"audio": {"url": self.url}, "mimetype": DEFAULT_CONNECTION_CONFIG["audio_mimetype"]}


@dataclass(frozen=True)
class StickerContent:
    url: str

    def to_payload(self) -> dict[str, Any]:
        return {"sticker": {"url": self.url}}


MessageContent = Union[TextContent, ImageContent, VideoContent, AudioContent, StickerContent]

_CONTENT_TYPES = (TextContent, ImageContent, VideoContent, AudioContent, StickerContent)


def _require_url(kind: str, value: Any) -> str:
    url = value.get("url") if isinstance(value, Mapping) else None
    if not isinstance(url, str) or not url.strip():
        raise InvalidRequest(f"{kind} requires a url")
    return url.strip()


def content_from_options(options: MessageContent | Mapping[str, Any]) -> MessageContent:
    """Builds one content variant from send options.

    ``options`` is either a content object or a mapping with exactly one of
    ``text``, ``image``, ``video``, ``audio`` or ``sticker`` set.
    """
    if isinstance(options, _CONTENT_TYPES):
        return options
    if not isinstance(options, Mapping):
        raise InvalidRequest("Send options must be an object")

    present = [key for key in ("text", *MEDIA_TYPES) if options.get(key)]
    if not present:
        raise InvalidRequest("Exactly one of text, image, video, audio or sticker is required")
    if len(present) > 1:
        raise InvalidRequest(f"Only one message variant may be set, got: {', '.join(present)}")

    kind = present[0]
    value = options[kind]
    if kind == "text":
        if not isinstance(value, str):
            raise InvalidRequest("text must be a string")
        return TextContent(value)
    url = _require_url(kind, value)
    if kind == "image":
        return ImageContent(url, value.get("caption"))
    if kind == "video":
        return VideoContent(url, value.get("caption"))
    if kind == "audio":
        return AudioContent(url)
    return StickerContent(url)


def media_content(media_type: str, url: str, caption: Optional[str] = None) -> MessageContent:
    """Builds a media variant from the flat ``type``/``url``/``caption`` form used by the API."""
    kind = str(media_type or "").lower()
    if kind not in MEDIA_TYPES:
        raise InvalidRequest(f"Invalid media type. Supported types: {', '.join(MEDIA_TYPES)}")
    if kind == "image":
        return ImageContent(url, caption)
    if kind == "video":
        return VideoContent(url, caption)
    if kind == "audio":
        return AudioContent(url)
    return StickerContent(url)


@dataclass(frozen=True)
class BulkSendOutcome:
    recipient: str
    status: str  # "sent" | "error"
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"recipient": self.recipient, "status": self.status}
        if self.error is not None:
            data["error"] = self.error
        return data


BulkSendResult = tuple[BulkSendOutcome, ...]
