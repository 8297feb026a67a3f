"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_INLINE_MAX_BYTES = 64 * 1024


@dataclass(frozen=True)
class BridgeConfig:
    """Static Discord channel -> Matrix room table.

    The reverse table is derived once here and never rebuilt; the mapping
    is read-only for the process lifetime.
    """

    channel_to_room: Mapping[str, str]
    room_to_channel: Mapping[str, str] = field(init=False)

    def __post_init__(self) -> None:
        channel_to_room = {str(k): str(v) for k, v in self.channel_to_room.items()}
        object.__setattr__(self, "channel_to_room", channel_to_room)
        object.__setattr__(
            self,
            "room_to_channel",
            {room: channel for channel, room in channel_to_room.items()},
        )

    def room_for_channel(self, channel_id: str) -> Optional[str]:
        return self.channel_to_room.get(channel_id)

    def channel_for_room(self, room_id: str) -> Optional[str]:
        return self.room_to_channel.get(room_id)


@dataclass(frozen=True)
class RelayConfig:
    """Relay tuning consumed by the bridge loop."""

    inline_max_bytes: int = DEFAULT_INLINE_MAX_BYTES
