"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to mautrix or discord.py types. Inbound message content is a tagged
variant: adapters translate the platform payload into exactly one of the
content classes below, and the bridge only ever branches on those.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


@dataclass(frozen=True)
class Credential:
    """Impersonation credential (a Discord webhook id + token)."""

    id: str
    token: str


@dataclass(frozen=True)
class CorrelationRecord:
    """One relayed message, seen from both platforms."""

    origin_id: str
    destination_id: str
    credential: Optional[Credential]
    origin_room: str


@dataclass(frozen=True)
class Attachment:
    """Attachment descriptor as announced by the origin platform."""

    filename: str
    url: str
    content_type: str
    size: int


class MessageKind(str, Enum):
    TEXT = "m.text"
    NOTICE = "m.notice"
    EMOTE = "m.emote"
    IMAGE = "m.image"
    AUDIO = "m.audio"
    VIDEO = "m.video"
    FILE = "m.file"


TEXT_KINDS = frozenset({MessageKind.TEXT, MessageKind.NOTICE, MessageKind.EMOTE})
MEDIA_KINDS = frozenset({MessageKind.IMAGE, MessageKind.AUDIO, MessageKind.VIDEO})


@dataclass(frozen=True)
class TextContent:
    kind: MessageKind
    body: str


@dataclass(frozen=True)
class MediaContent:
    kind: MessageKind
    body: str
    url: str
    mimetype: Optional[str]


@dataclass(frozen=True)
class FileContent:
    body: str
    url: str
    filename: str
    mimetype: Optional[str]


@dataclass(frozen=True)
class EditContent:
    """Replacement of a previously sent message."""

    replaces: str
    new_content: "MessageContent"


@dataclass(frozen=True)
class UnknownContent:
    """A message kind the bridge does not relay."""

    msgtype: str


@dataclass(frozen=True)
class MalformedContent:
    """A declared message kind that is missing fields it needs."""

    msgtype: str
    reason: str


MessageContent = Union[
    TextContent,
    MediaContent,
    FileContent,
    EditContent,
    UnknownContent,
    MalformedContent,
]


@dataclass(frozen=True)
class InboundEvent:
    """Normalized inbound event consumed by the bridge loop."""

    message_id: str
    room_id: str
    sender_id: str
    sender_name: str
    timestamp: int
    content: MessageContent
    attachments: tuple[Attachment, ...] = ()

    @property
    def replaces(self) -> Optional[str]:
        if isinstance(self.content, EditContent):
            return self.content.replaces
        return None


class Outcome(str, Enum):
    """Terminal state of one inbound event."""

    IGNORED = "ignored"
    NEW_RELAY = "new-relay"
    EDIT_RELAY = "edit-relay"
    DROPPED = "dropped"
