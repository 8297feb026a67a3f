"""Helpers for impersonation identity keys and Matrix user ids."""

from __future__ import annotations

from typing import Tuple

KEY_SEPARATOR = " | "


def build_identity_key(channel_id: str, sender_id: str) -> str:
    """Return the persisted key for a (channel, sender) pair."""

    return f"{channel_id}{KEY_SEPARATOR}{sender_id}"


def split_identity_key(identity_key: str) -> Tuple[str, str]:
    """Split an identity key into (channel_id, sender_id)."""

    channel_id, sep, sender_id = identity_key.partition(KEY_SEPARATOR)
    if not sep or not channel_id or not sender_id:
        raise ValueError(f"Invalid identity key: {identity_key!r}")
    return channel_id, sender_id


def strip_matrix_name(user_id: str) -> str:
    """Return the localpart of a Matrix user id (``@alice:hs`` -> ``alice``)."""

    localpart, _, _ = user_id.partition(":")
    return localpart[1:] if localpart.startswith("@") else localpart
