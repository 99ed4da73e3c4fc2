"""Enumerations shared by the cast session lifecycle components."""

import enum
from enum import unique


# ---------------------------------------------------------------------------
#  Control channel
# ---------------------------------------------------------------------------


@unique
class ConnectionState(enum.Enum):
    """State of the supervised control channel."""

    DISCONNECTED = enum.auto()
    """No channel object exists (or the last one has been torn down)."""

    CONNECTING = enum.auto()
    """A channel has been created and is being opened."""

    CONNECTED = enum.auto()
    """The channel is open and its sub-layers are ready."""


# ---------------------------------------------------------------------------
#  Media player
# ---------------------------------------------------------------------------


@unique
class PlayerState(str, enum.Enum):
    """``playerState`` values reported by a media session."""

    PLAYING = "PLAYING"
    BUFFERING = "BUFFERING"
    PAUSED = "PAUSED"
    IDLE = "IDLE"
    UNKNOWN = "UNKNOWN"


#: Player states that count as "casting".
ACTIVE_PLAYER_STATES = frozenset(
    {PlayerState.PLAYING.value, PlayerState.BUFFERING.value}
)
