"""Attachment fan-out planning (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Union

from core.models import Attachment, MessageKind


@dataclass(frozen=True)
class SingleAttachment:
    """Relay one attachment as a typed, uploaded message."""

    attachment: Attachment
    msgtype: MessageKind


@dataclass(frozen=True)
class AttachmentSummary:
    """Relay a list of links and sizes instead of uploading."""

    attachments: tuple[Attachment, ...]


AttachmentPlan = Union[SingleAttachment, AttachmentSummary]


def plan_attachments(attachments: Sequence[Attachment], inline_max_bytes: int) -> Optional[AttachmentPlan]:
    """Pick how a message's attachments are relayed.

    Exactly one attachment no larger than ``inline_max_bytes`` is uploaded
    and sent as ``m.image`` or ``m.file``. Several attachments, or one that
    is too large, collapse into a single summary message.
    """

    if not attachments:
        return None
    if len(attachments) == 1 and attachments[0].size <= inline_max_bytes:
        attachment = attachments[0]
        if attachment.content_type.startswith("image/"):
            return SingleAttachment(attachment, MessageKind.IMAGE)
        return SingleAttachment(attachment, MessageKind.FILE)
    return AttachmentSummary(tuple(attachments))


def format_file_size(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    if size >= 1024:
        return f"{size / 1024:.1f} kB"
    return f"{size} B"
