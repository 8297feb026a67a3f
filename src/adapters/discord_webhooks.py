"""Discord webhook adapter.

Webhooks are the impersonation identities: one per (channel, Matrix sender),
named after the sender so relayed messages show who wrote them. This module
creates them for the identity cache and posts/edits messages through them.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

import discord

from adapters.formatting import matrix_to_discord_text, media_filename
from adapters.media import MediaReader
from core.identity_keys import strip_matrix_name
from core.models import Credential, FileContent, MediaContent, MessageContent

LOGGER = logging.getLogger(__name__)

# Discord limits webhook names to 80 characters.
WEBHOOK_NAME_MAX = 80


class DiscordWebhookRelay:
    """Implements the IdentityProvisioner and DiscordPort contracts."""

    def __init__(
        self,
        client: discord.Client,
        media_reader: MediaReader,
        avatar: Optional[bytes] = None,
    ) -> None:
        self._client = client
        self._media = media_reader
        self._avatar = avatar

    def _webhook(self, credential: Credential) -> discord.Webhook:
        return discord.Webhook.partial(int(credential.id), credential.token, client=self._client)

    async def create_identity(self, channel_id: str, sender_id: str) -> Credential:
        channel = self._client.get_channel(int(channel_id))
        if channel is None:
            channel = await self._client.fetch_channel(int(channel_id))
        name = strip_matrix_name(sender_id)[:WEBHOOK_NAME_MAX] or "matrix"
        webhook = await channel.create_webhook(name=name, avatar=self._avatar, reason="Matrix bridge")
        LOGGER.info("Created webhook %s in channel %s for %s", webhook.id, channel_id, sender_id)
        return Credential(id=str(webhook.id), token=webhook.token)

    async def send(self, credential: Credential, sender_id: str, content: MessageContent) -> str:
        webhook = self._webhook(credential)
        username = strip_matrix_name(sender_id)

        if isinstance(content, MediaContent):
            data = await self._media.read(content.url)
            file = discord.File(io.BytesIO(data), filename=media_filename(content))
            message = await webhook.send(file=file, username=username, wait=True)
        elif isinstance(content, FileContent):
            data = await self._media.read(content.url)
            file = discord.File(io.BytesIO(data), filename=content.filename)
            message = await webhook.send(file=file, username=username, wait=True)
        else:
            text = matrix_to_discord_text(sender_id, content)
            if not text:
                raise ValueError("Nothing to send for empty message")
            message = await webhook.send(content=text, username=username, wait=True)
        return str(message.id)

    async def edit(
        self,
        credential: Credential,
        message_id: str,
        sender_id: str,
        content: MessageContent,
    ) -> None:
        webhook = self._webhook(credential)
        await webhook.edit_message(int(message_id), content=matrix_to_discord_text(sender_id, content))
