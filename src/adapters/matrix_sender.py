"""Matrix room adapter.

Relayed Discord messages are posted by the bridge's own Matrix account with
the Discord author's name in the body.
"""

from __future__ import annotations

from typing import Any, Sequence

from mautrix.types import EventType, RoomID

from adapters.formatting import (
    HTML_FORMAT,
    attachment_event_content,
    edit_event_content,
    format_attachment_summary,
    text_event_content,
)
from adapters.media import MediaReader
from core.models import Attachment, MessageKind


class MatrixRoomSender:
    """Implements the MatrixPort contract on top of a mautrix Client."""

    def __init__(self, client: Any, media_reader: MediaReader) -> None:
        self._client = client
        self._media = media_reader

    async def _send(self, room_id: str, content: dict[str, Any]) -> str:
        event_id = await self._client.send_message_event(RoomID(room_id), EventType.ROOM_MESSAGE, content)
        return str(event_id)

    async def send_text(self, room_id: str, author: str, text: str) -> str:
        return await self._send(room_id, text_event_content(author, text))

    async def send_attachment(
        self, room_id: str, author: str, attachment: Attachment, msgtype: MessageKind
    ) -> str:
        data = await self._media.read(attachment.url)
        content_uri = await self._client.upload_media(
            data,
            mime_type=attachment.content_type,
            filename=attachment.filename,
            size=len(data),
        )
        return await self._send(
            room_id,
            attachment_event_content(author, attachment, msgtype, str(content_uri)),
        )

    async def send_attachment_summary(
        self, room_id: str, author: str, attachments: Sequence[Attachment]
    ) -> str:
        plain, html_body = format_attachment_summary(author, attachments)
        return await self._send(
            room_id,
            {
                "msgtype": MessageKind.TEXT.value,
                "body": plain,
                "format": HTML_FORMAT,
                "formatted_body": html_body,
            },
        )

    async def edit_text(self, room_id: str, event_id: str, author: str, text: str) -> None:
        await self._send(room_id, edit_event_content(author, text, event_id))
