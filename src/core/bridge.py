"""Bridge loop: the per-event relay state machine.

This module is integration-agnostic. It only relies on ports for the two
platforms and on the identity and correlation stores, so the same loop can
be driven by the real clients or by fakes in tests.

Every inbound event ends in exactly one ``Outcome``. Filters run in a fixed
order (replay, self-echo, impersonation echo, unmapped room) before any
store lookup or outbound call, which is what keeps relayed messages from
bouncing back to the platform they came from.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.attachments import AttachmentSummary, SingleAttachment, plan_attachments
from core.config import BridgeConfig, RelayConfig
from core.correlation_store import CorrelationStore
from core.identity_cache import IdentityCache
from core.models import (
    EditContent,
    InboundEvent,
    MalformedContent,
    MessageContent,
    Outcome,
    TextContent,
    UnknownContent,
)
from core.observability import ErrorKind, LoggingObserver
from core.ports import BridgeObserver, DiscordPort, MatrixPort

LOGGER = logging.getLogger(__name__)


class BridgeLoop:
    """Routes Matrix and Discord events to the opposite platform."""

    def __init__(
        self,
        config: BridgeConfig,
        identities: IdentityCache,
        correlations: CorrelationStore,
        discord: DiscordPort,
        matrix: MatrixPort,
        matrix_user_id: str,
        started_at: int,
        relay_config: Optional[RelayConfig] = None,
        observer: Optional[BridgeObserver] = None,
    ) -> None:
        self._config = config
        self._identities = identities
        self._correlations = correlations
        self._discord = discord
        self._matrix = matrix
        self._matrix_user_id = matrix_user_id
        self._started_at = started_at
        self._relay = relay_config or RelayConfig()
        self._observer = observer or LoggingObserver()
        self._discord_user_id: Optional[str] = None

    def bind_discord_account(self, user_id: str) -> None:
        """Record the bot account id once the Discord session is ready."""

        self._discord_user_id = user_id

    # Matrix -> Discord

    async def handle_matrix(self, event: InboundEvent) -> Outcome:
        # Anything older than our start is history we must not replay.
        if event.timestamp < self._started_at:
            return Outcome.IGNORED
        if event.sender_id == self._matrix_user_id:
            return Outcome.IGNORED

        channel_id = self._config.channel_for_room(event.room_id)
        if channel_id is None:
            return Outcome.IGNORED

        content = event.content
        if isinstance(content, EditContent):
            return await self._edit_on_discord(event, content.new_content)
        if isinstance(content, MalformedContent):
            self._observer.report(
                ErrorKind.MALFORMED_EVENT,
                content.reason,
                event_id=event.message_id,
                msgtype=content.msgtype,
            )
            return Outcome.DROPPED
        if isinstance(content, UnknownContent):
            LOGGER.debug("Ignoring %s from %s", content.msgtype, event.sender_id)
            return Outcome.IGNORED

        try:
            credential = await self._identities.resolve(channel_id, event.sender_id)
        except Exception as exc:
            self._observer.report(
                ErrorKind.REMOTE_FAILURE,
                "Failed to get webhook",
                channel_id=channel_id,
                sender=event.sender_id,
                error=exc,
            )
            return Outcome.DROPPED

        try:
            destination_id = await self._discord.send(credential, event.sender_id, content)
        except Exception as exc:
            self._observer.report(
                ErrorKind.REMOTE_FAILURE,
                "Failed to send webhook message",
                channel_id=channel_id,
                event_id=event.message_id,
                error=exc,
            )
            return Outcome.DROPPED

        self._correlations.record(event.message_id, destination_id, credential, event.room_id)
        LOGGER.info("Relayed %s -> discord %s", event.message_id, destination_id)
        return Outcome.NEW_RELAY

    async def _edit_on_discord(self, event: InboundEvent, new_content: MessageContent) -> Outcome:
        record = self._correlations.by_origin(event.replaces)
        if record is None or record.credential is None:
            self._observer.report(
                ErrorKind.UNRESOLVED_CORRELATION,
                "Edit of a message that was never relayed",
                event_id=event.message_id,
                replaces=event.replaces,
            )
            return Outcome.IGNORED

        if isinstance(new_content, (MalformedContent, UnknownContent, EditContent)):
            self._observer.report(
                ErrorKind.MALFORMED_EVENT,
                "Replacement without usable new content",
                event_id=event.message_id,
                replaces=event.replaces,
            )
            return Outcome.DROPPED

        try:
            await self._discord.edit(record.credential, record.destination_id, event.sender_id, new_content)
        except Exception as exc:
            self._observer.report(
                ErrorKind.REMOTE_FAILURE,
                "Failed to edit discord message",
                message_id=record.destination_id,
                error=exc,
            )
            return Outcome.DROPPED
        return Outcome.EDIT_RELAY

    # Discord -> Matrix

    async def handle_discord(self, event: InboundEvent) -> Outcome:
        if self._discord_user_id is not None and event.sender_id == self._discord_user_id:
            return Outcome.IGNORED
        # Our own webhooks: without this every relayed message would come back.
        if self._identities.is_owned_identity(event.sender_id):
            return Outcome.IGNORED

        room_id = self._config.room_for_channel(event.room_id)
        if room_id is None:
            return Outcome.IGNORED

        content = event.content
        if isinstance(content, EditContent):
            return await self._edit_on_matrix(event, room_id, content.new_content)
        if not isinstance(content, TextContent):
            LOGGER.debug("Ignoring discord content %r", content)
            return Outcome.IGNORED

        body = content.body
        if not body and not event.attachments:
            return Outcome.IGNORED

        relayed = False
        event_id: Optional[str] = None
        if body:
            try:
                event_id = await self._matrix.send_text(room_id, event.sender_name, body)
                relayed = True
            except Exception as exc:
                self._observer.report(
                    ErrorKind.REMOTE_FAILURE,
                    "Failed to send to matrix",
                    room_id=room_id,
                    message_id=event.message_id,
                    error=exc,
                )

        plan = plan_attachments(event.attachments, self._relay.inline_max_bytes)
        try:
            if isinstance(plan, SingleAttachment):
                await self._matrix.send_attachment(room_id, event.sender_name, plan.attachment, plan.msgtype)
                relayed = True
            elif isinstance(plan, AttachmentSummary):
                await self._matrix.send_attachment_summary(room_id, event.sender_name, plan.attachments)
                relayed = True
        except Exception as exc:
            self._observer.report(
                ErrorKind.REMOTE_FAILURE,
                "Failed to relay attachments to matrix",
                room_id=room_id,
                message_id=event.message_id,
                error=exc,
            )

        if event_id is not None:
            self._correlations.record(event.message_id, event_id, None, event.room_id)
            LOGGER.info("Relayed discord %s -> %s", event.message_id, event_id)
        return Outcome.NEW_RELAY if relayed else Outcome.DROPPED

    async def _edit_on_matrix(self, event: InboundEvent, room_id: str, new_content: MessageContent) -> Outcome:
        # Discord emits edits for many messages we never relayed; stay quiet.
        record = self._correlations.by_origin(event.replaces)
        if record is None:
            return Outcome.IGNORED

        if not isinstance(new_content, TextContent) or not new_content.body:
            return Outcome.IGNORED

        try:
            await self._matrix.edit_text(room_id, record.destination_id, event.sender_name, new_content.body)
        except Exception as exc:
            self._observer.report(
                ErrorKind.REMOTE_FAILURE,
                "Failed to edit matrix message",
                room_id=room_id,
                event_id=record.destination_id,
                error=exc,
            )
            return Outcome.DROPPED
        return Outcome.EDIT_RELAY
