"""Client factories for both platforms.

We explicitly manage the clients' lifecycles (start/close) in app.py so it
is obvious when sessions are created and when they end.
"""

from __future__ import annotations

import logging

import discord
from mautrix.client import Client
from mautrix.types import UserID

from settings import MatrixSettings


def build_matrix_client(config: MatrixSettings) -> Client:
    """Create a mautrix client authenticated with an access token."""

    logging.getLogger(__name__).info("Initializing Matrix client for %s", config.username)
    return Client(
        mxid=UserID(config.username),
        base_url=config.homeserver,
        token=config.access_token,
    )


def build_discord_client() -> discord.Client:
    """Create a discord.py client with the intents the bridge needs.

    Message content is a privileged intent; it must also be enabled for the
    bot in the Discord developer portal.
    """

    intents = discord.Intents.default()
    intents.message_content = True
    intents.webhooks = True
    return discord.Client(intents=intents)
