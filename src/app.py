"""Application entry point for the Matrix <-> Discord bridge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
import time
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from mautrix.types import EventType

import settings as settings_module
from adapters.discord_mapper import build_edit_event, build_message_event
from adapters.discord_webhooks import DiscordWebhookRelay
from adapters.matrix_mapper import build_event as build_matrix_event
from adapters.matrix_sender import MatrixRoomSender
from adapters.media import MediaReader
from client import build_discord_client, build_matrix_client
from core.bridge import BridgeLoop
from core.correlation_store import CorrelationStore
from core.identity_cache import IdentityCache
from core.observability import LoggingObserver
from settings import Settings, load_settings, write_default_config

NAME = "MXCORD"
FONT = "tarty-1"

IDENTITIES_FILE = "webhooks.json"
CORRELATIONS_FILE = "messages.json"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    """Masks access tokens in every formatted line, tracebacks included."""

    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        values = sorted({secret for secret in secrets if secret}, key=len, reverse=True)
        self._pattern = re.compile("|".join(re.escape(value) for value in values)) if values else None

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if self._pattern is None:
            return message
        return self._pattern.sub("***", message)


def _collect_redaction_values(config: dict, settings: Settings) -> list[str]:
    redact_cfg = config.get("redact", {})
    if not redact_cfg.get("enabled", True):
        return []
    values = list(settings.secrets)
    values.extend(os.getenv(name) or "" for name in redact_cfg.get("patterns", []))
    return [value for value in values if value]


def _apply_logger_levels(config: dict) -> None:
    # Library loggers get their own levels, independent of the bridge level.
    levels = config.get("loggers", settings_module.DEFAULT_LOGGER_LEVELS)
    for name, level_name in levels.items():
        logging.getLogger(name).setLevel(getattr(logging, str(level_name).upper(), logging.WARNING))


def _log_file_handler(file_cfg: dict, formatter: logging.Formatter) -> RotatingFileHandler:
    path = file_cfg.get("path", "logs/mxcord.log")
    if not os.path.isabs(path):
        path = os.path.join(settings_module.PROJECT_ROOT, path)
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    handler = RotatingFileHandler(
        path,
        maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
        backupCount=int(file_cfg.get("backup_count", 5)),
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    return handler


def _configure_logging(settings: Settings) -> None:
    config = settings.logging or {}
    if not config.get("enabled", True):
        return

    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    formatter = _RedactingFormatter(
        _collect_redaction_values(config, settings),
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list[logging.Handler] = []
    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        handlers.append(_log_file_handler(file_cfg, formatter))

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    _apply_logger_levels(config)


def _read_avatar(path: Optional[str]) -> Optional[bytes]:
    if not path:
        return None
    with open(path, "rb") as handle:
        return handle.read()


def _register_matrix_handlers(matrix_client, bridge: BridgeLoop) -> None:
    logger = logging.getLogger(__name__)
    # mautrix runs every event of a sync batch as its own task. The lock is
    # FIFO and tasks start in timeline order, so events are relayed one at a
    # time in that order and an edit never overtakes its original.
    stream_lock = asyncio.Lock()

    async def on_room_message(evt) -> None:
        async with stream_lock:
            try:
                await bridge.handle_matrix(build_matrix_event(evt))
            except Exception:
                logger.exception("Error while relaying matrix event")

    # wait_sync only holds back the next /sync until this batch is done.
    matrix_client.add_event_handler(EventType.ROOM_MESSAGE, on_room_message, wait_sync=True)


def _register_discord_handlers(discord_client, bridge: BridgeLoop) -> None:
    logger = logging.getLogger(__name__)
    # discord.py dispatches every event as its own task; serialize them.
    stream_lock = asyncio.Lock()

    @discord_client.event
    async def on_ready() -> None:
        bridge.bind_discord_account(str(discord_client.user.id))
        logger.info("Discord: %s", discord_client.user)

    @discord_client.event
    async def on_message(message) -> None:
        async with stream_lock:
            try:
                await bridge.handle_discord(build_message_event(message))
            except Exception:
                logger.exception("Error while relaying discord message")

    # The raw event fires for every edit, not only for messages still in
    # discord.py's message cache.
    @discord_client.event
    async def on_raw_message_edit(payload) -> None:
        event = build_edit_event(payload.message, payload.cached_message)
        if event is None:
            return
        async with stream_lock:
            try:
                await bridge.handle_discord(event)
            except Exception:
                logger.exception("Error while relaying discord edit")


async def _serve(settings: Settings) -> None:
    logger = logging.getLogger(__name__)
    os.makedirs(settings.state_dir, exist_ok=True)

    matrix_client = build_matrix_client(settings.matrix)
    discord_client = build_discord_client()
    media_reader = MediaReader(matrix_client)
    webhook_relay = DiscordWebhookRelay(
        discord_client,
        media_reader,
        avatar=_read_avatar(settings.discord.webhook_avatar),
    )

    # Corrupt state is fatal here, before either stream starts.
    observer = LoggingObserver()
    identities = IdentityCache(
        os.path.join(settings.state_dir, IDENTITIES_FILE),
        webhook_relay,
        observer,
    )
    correlations = CorrelationStore(os.path.join(settings.state_dir, CORRELATIONS_FILE), observer)

    bridge = BridgeLoop(
        config=settings.bridge,
        identities=identities,
        correlations=correlations,
        discord=webhook_relay,
        matrix=MatrixRoomSender(matrix_client, media_reader),
        matrix_user_id=settings.matrix.username,
        started_at=int(time.time() * 1000),
        relay_config=settings.relay,
        observer=observer,
    )
    _register_matrix_handlers(matrix_client, bridge)
    _register_discord_handlers(discord_client, bridge)

    logger.info("Matrix: %s", settings.matrix.username)
    try:
        await asyncio.gather(
            discord_client.start(settings.discord.token),
            matrix_client.start(None),
        )
    finally:
        matrix_client.stop()
        await discord_client.close()
        await matrix_client.api.session.close()


def _run(config_path: str) -> None:
    _print_banner()
    try:
        settings = load_settings(config_path)
    except FileNotFoundError:
        write_default_config(config_path)
        print(f"Wrote a default configuration to {config_path}. Edit it and start again.")
        return

    _configure_logging(settings)
    logger = logging.getLogger(__name__)
    logger.info("Starting bridge for %s channel(s)", len(settings.bridge.channel_to_room))

    try:
        asyncio.run(_serve(settings))
    except KeyboardInterrupt:
        logger.info("Bridge stopped")


def _init(config_path: str, force: bool) -> None:
    if os.path.exists(config_path) and not force:
        print(f"{config_path} already exists; use --force to overwrite it.")
        return
    write_default_config(config_path)
    print(f"Wrote a default configuration to {config_path}.")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="mxcord")
    parser.add_argument(
        "--config",
        default=settings_module.CONFIG_PATH,
        help="Path to configuration file",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the bridge")
    init_parser = subparsers.add_parser("init", help="Write a default configuration file")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing file")

    args = parser.parse_args(argv)
    if args.command == "init":
        _init(args.config, args.force)
        return
    _run(args.config)


if __name__ == "__main__":
    main()
