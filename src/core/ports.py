"""Ports (interfaces) used by the bridge core.

Ports define the minimal contracts for the platform adapters so that the
core never imports mautrix or discord.py. Translation of content into each
platform's markup happens behind these ports.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from core.models import Attachment, Credential, MessageContent, MessageKind
from core.observability import ErrorKind


class IdentityProvisioner(Protocol):
    """Creates impersonation identities on the Discord side."""

    async def create_identity(self, channel_id: str, sender_id: str) -> Credential:
        ...


class DiscordPort(Protocol):
    """Outbound operations towards Discord (impersonated via webhooks)."""

    async def send(self, credential: Credential, sender_id: str, content: MessageContent) -> str:
        ...

    async def edit(
        self,
        credential: Credential,
        message_id: str,
        sender_id: str,
        content: MessageContent,
    ) -> None:
        ...


class MatrixPort(Protocol):
    """Outbound operations towards Matrix (posted by the bridge account)."""

    async def send_text(self, room_id: str, author: str, text: str) -> str:
        ...

    async def send_attachment(
        self, room_id: str, author: str, attachment: Attachment, msgtype: MessageKind
    ) -> str:
        ...

    async def send_attachment_summary(
        self, room_id: str, author: str, attachments: Sequence[Attachment]
    ) -> str:
        ...

    async def edit_text(self, room_id: str, event_id: str, author: str, text: str) -> None:
        ...


class BridgeObserver(Protocol):
    """Receives error incidents by kind."""

    def report(self, kind: ErrorKind, message: str, **fields: Any) -> None:
        ...
