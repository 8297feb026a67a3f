"""Matrix-to-core event mapping adapter.

This keeps mautrix-specific details out of the bridge loop. The raw event
content is a loosely typed JSON object; it is turned into one of the core
content variants here and nowhere else.
"""

from __future__ import annotations

from typing import Any, Mapping

from core.identity_keys import strip_matrix_name
from core.models import (
    MEDIA_KINDS,
    TEXT_KINDS,
    EditContent,
    FileContent,
    InboundEvent,
    MalformedContent,
    MediaContent,
    MessageContent,
    MessageKind,
    TextContent,
    UnknownContent,
)


def _mimetype(raw: Mapping[str, Any]) -> "str | None":
    info = raw.get("info")
    if isinstance(info, Mapping) and isinstance(info.get("mimetype"), str):
        return info["mimetype"]
    return None


def parse_content(raw: Mapping[str, Any]) -> MessageContent:
    """Translate ``m.room.message`` content into a core content variant."""

    msgtype = str(raw.get("msgtype") or "")

    relates_to = raw.get("m.relates_to")
    if isinstance(relates_to, Mapping) and relates_to.get("rel_type") == "m.replace":
        replaces = relates_to.get("event_id")
        if not replaces:
            return MalformedContent(msgtype, "replacement without target event")
        new_content = raw.get("m.new_content")
        if not isinstance(new_content, Mapping):
            return EditContent(str(replaces), MalformedContent(msgtype, "replacement event without new content"))
        return EditContent(str(replaces), parse_content(new_content))

    try:
        kind = MessageKind(msgtype)
    except ValueError:
        return UnknownContent(msgtype)

    body = raw.get("body")
    if not isinstance(body, str):
        return MalformedContent(msgtype, "message without body")

    if kind in TEXT_KINDS:
        # Discord rejects blank webhook messages.
        if not body.strip():
            return MalformedContent(msgtype, "text message with empty body")
        return TextContent(kind=kind, body=body)

    url = raw.get("url")
    if not isinstance(url, str) or not url:
        return MalformedContent(msgtype, "media message without url")

    if kind in MEDIA_KINDS:
        return MediaContent(kind=kind, body=body, url=url, mimetype=_mimetype(raw))

    filename = raw.get("filename")
    return FileContent(
        body=body,
        url=url,
        filename=filename if isinstance(filename, str) and filename else body,
        mimetype=_mimetype(raw),
    )


def build_event(event: Any) -> InboundEvent:
    """Build a core InboundEvent from a mautrix MessageEvent."""

    content = event.content
    raw = content.serialize() if hasattr(content, "serialize") else dict(content)
    sender = str(event.sender)
    return InboundEvent(
        message_id=str(event.event_id),
        room_id=str(event.room_id),
        sender_id=sender,
        sender_name=strip_matrix_name(sender),
        timestamp=int(event.timestamp),
        content=parse_content(raw),
    )
