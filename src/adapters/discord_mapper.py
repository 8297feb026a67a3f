"""Discord-to-core event mapping adapter."""

from __future__ import annotations

from typing import Any, Optional

from core.models import Attachment, EditContent, InboundEvent, MessageKind, TextContent


def sender_id_from_message(message: Any) -> str:
    """Webhook messages are attributed to the webhook, not a user account."""

    webhook_id = getattr(message, "webhook_id", None)
    if webhook_id is not None:
        return str(webhook_id)
    return str(message.author.id)


def _timestamp_ms(message: Any) -> int:
    return int(message.created_at.timestamp() * 1000)


def _attachments(message: Any) -> tuple[Attachment, ...]:
    return tuple(
        Attachment(
            filename=attachment.filename,
            url=attachment.url,
            content_type=attachment.content_type or "application/octet-stream",
            size=int(attachment.size),
        )
        for attachment in getattr(message, "attachments", None) or []
    )


def build_message_event(message: Any) -> InboundEvent:
    """Build a core InboundEvent from a newly created discord.py Message."""

    return InboundEvent(
        message_id=str(message.id),
        room_id=str(message.channel.id),
        sender_id=sender_id_from_message(message),
        sender_name=message.author.name,
        timestamp=_timestamp_ms(message),
        content=TextContent(kind=MessageKind.TEXT, body=message.content or ""),
        attachments=_attachments(message),
    )


def build_edit_event(after: Any, before: Optional[Any] = None) -> Optional[InboundEvent]:
    """Build an edit event from the updated message, or None if nothing changed.

    ``before`` is the cached copy of the message when discord.py still has
    it. Discord also sends updates for embed unfurls; those carry no
    ``edited_at`` and, when cached, keep the same content.
    """

    if getattr(after, "edited_at", None) is None:
        return None
    if before is not None and (before.content or "") == (after.content or ""):
        return None
    return InboundEvent(
        message_id=str(after.id),
        room_id=str(after.channel.id),
        sender_id=sender_id_from_message(after),
        sender_name=after.author.name,
        timestamp=_timestamp_ms(after),
        content=EditContent(
            replaces=str(after.id),
            new_content=TextContent(kind=MessageKind.TEXT, body=after.content or ""),
        ),
    )
