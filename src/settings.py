"""Static configuration for the bridge.

All user-editable settings (accounts, channel mapping, attachments, logging)
live in a single JSON file. Tokens may instead come from the environment so
they can stay out of the file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from dotenv import load_dotenv

from core.config import DEFAULT_INLINE_MAX_BYTES, BridgeConfig, RelayConfig

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Default location of the config file, overridable with --config.
CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

# Environment variables that take precedence over tokens in config.json.
MATRIX_TOKEN_ENV = "MATRIX_ACCESS_TOKEN"
DISCORD_TOKEN_ENV = "DISCORD_TOKEN"

# Library loggers that are too chatty at the root level.
DEFAULT_LOGGER_LEVELS: dict[str, str] = {
    "mau": "WARNING",
    "discord": "WARNING",
    "aiohttp": "WARNING",
}

DEFAULT_CONFIG: dict[str, Any] = {
    "matrix": {
        "homeserver": "https://matrix-client.matrix.org",
        "username": "@username:matrix.org",
        "access_token": "access.token",
    },
    "discord": {
        "token": "some.bot.token",
        "webhook_avatar": None,
    },
    # Discord channel id -> Matrix room id.
    "bridge": {
        "1235678930234": "!roomid.Aefdy5f:matrix.org",
    },
    "state_dir": "bridgedata",
    "attachments": {
        "inline_max_bytes": DEFAULT_INLINE_MAX_BYTES,
    },
    "logging": {
        "enabled": True,
        "level": "INFO",
        "console": True,
        "file": {"enabled": False, "path": "logs/mxcord.log"},
        "redact": {"enabled": True, "patterns": [MATRIX_TOKEN_ENV, DISCORD_TOKEN_ENV]},
        "loggers": DEFAULT_LOGGER_LEVELS,
    },
}


@dataclass(frozen=True)
class MatrixSettings:
    homeserver: str
    username: str
    access_token: str


@dataclass(frozen=True)
class DiscordSettings:
    token: str
    webhook_avatar: Optional[str] = None


@dataclass(frozen=True)
class Settings:
    matrix: MatrixSettings
    discord: DiscordSettings
    bridge: BridgeConfig
    relay: RelayConfig
    state_dir: str
    logging: dict[str, Any] = field(default_factory=dict)

    @property
    def secrets(self) -> list[str]:
        """Values that must never show up in logs."""

        return [value for value in (self.matrix.access_token, self.discord.token) if value]


def write_default_config(path: Union[str, Path]) -> None:
    """Write a template config the user is expected to edit."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        json.dump(DEFAULT_CONFIG, handle, indent="\t")
        handle.write("\n")


def _load_json_config(path: Path) -> dict:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except ValueError as exc:
        raise RuntimeError(f"Invalid configuration file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise RuntimeError(f"Invalid configuration file {path}: expected a JSON object")
    return data


def _require(section: dict, key: str, name: str) -> str:
    value = section.get(key)
    if not value or not isinstance(value, str):
        raise RuntimeError(f"{name} is required in the configuration")
    return value


def _resolve_path(value: str) -> str:
    if os.path.isabs(value):
        return value
    return os.path.join(PROJECT_ROOT, value)


def load_settings(config_path: Union[str, Path] = CONFIG_PATH) -> Settings:
    """Load and validate config.json, applying environment token overrides."""

    load_dotenv()
    config = _load_json_config(Path(config_path))

    matrix_cfg = config.get("matrix", {})
    discord_cfg = config.get("discord", {})

    # Tokens from the environment win so config.json can be shared safely.
    matrix_token = os.getenv(MATRIX_TOKEN_ENV) or matrix_cfg.get("access_token")
    discord_token = os.getenv(DISCORD_TOKEN_ENV) or discord_cfg.get("token")

    matrix = MatrixSettings(
        homeserver=_require(matrix_cfg, "homeserver", "matrix.homeserver").rstrip("/"),
        username=_require(matrix_cfg, "username", "matrix.username"),
        access_token=_require({"access_token": matrix_token}, "access_token", "matrix.access_token"),
    )

    avatar = discord_cfg.get("webhook_avatar")
    discord = DiscordSettings(
        token=_require({"token": discord_token}, "token", "discord.token"),
        webhook_avatar=_resolve_path(avatar) if avatar else None,
    )

    raw_bridge = config.get("bridge", {})
    if not isinstance(raw_bridge, dict):
        raise RuntimeError("bridge must map discord channel ids to matrix room ids")
    bridge = BridgeConfig(channel_to_room=raw_bridge)

    attachments = config.get("attachments", {})
    relay = RelayConfig(inline_max_bytes=int(attachments.get("inline_max_bytes", DEFAULT_INLINE_MAX_BYTES)))

    return Settings(
        matrix=matrix,
        discord=discord,
        bridge=bridge,
        relay=relay,
        state_dir=_resolve_path(str(config.get("state_dir", "bridgedata"))),
        logging=config.get("logging", {}),
    )
