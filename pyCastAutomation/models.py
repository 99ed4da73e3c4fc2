"""Data model for the cast session lifecycle manager.

Status payloads arrive from the control channel in the JSON shape used
by Cast receivers::

    {
        "applications": [
            {"appId": "CC1AD845", "sessionId": "8e2f...",
             "transportId": "8e2f...", "displayName": "Default Media Receiver",
             "namespaces": [{"name": "urn:x-cast:com.google.cast.media"}]}
        ],
        "volume": {"level": 0.35, "muted": false}
    }

and for media sessions::

    {"playerState": "PLAYING", "mediaSessionId": 1, ...}

:meth:`ReceiverStatus.from_dict` and :meth:`MediaStatus.from_dict` turn
them into immutable value objects.  They are the entry point for
:class:`~pyCastAutomation.channel.ControlChannel` implementations that
receive the raw JSON; the ``pychromecast`` channel builds the same
objects from its own status classes.  A receiver status whose
``applications`` key is missing keeps ``applications=None``; that is a
different signal from an empty list (the device stopped casting
outright).  An explicit ``null`` is read as an empty list.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from pyCastAutomation.enums import ACTIVE_PLAYER_STATES, ConnectionState
from pyCastAutomation.timers import SingleShotTimer

if TYPE_CHECKING:
    from pyCastAutomation.channel import ControlChannel, MediaHandle


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def name_matches(name: Optional[str], target: str) -> bool:
    """``True`` when *name* equals *target*, ignoring case."""
    if not name:
        return False
    return name.casefold() == target.casefold()


@dataclass(frozen=True)
class DeviceAnnouncement:
    """A cast device seen on the network.

    ``name``, ``model`` and ``device_id`` come from the TXT record keys
    ``fn``, ``md`` and ``id``.
    """

    name: str
    addresses: Tuple[str, ...]
    port: int
    model: str = ""
    device_id: Optional[str] = None
    properties: Dict[str, str] = field(default_factory=dict)

    @property
    def host(self) -> Optional[str]:
        """The first advertised address (often IPv4 first)."""
        return self.addresses[0] if self.addresses else None

    @classmethod
    def from_txt(
        cls,
        addresses: List[str],
        port: int,
        properties: Mapping[str, str],
    ) -> "DeviceAnnouncement":
        """Build an announcement from decoded TXT record properties."""
        props = dict(properties)
        return cls(
            name=props.get("fn", ""),
            addresses=tuple(addresses),
            port=int(port),
            model=props.get("md") or "",
            device_id=props.get("id") or None,
            properties=props,
        )


@dataclass
class DeviceIdentity:
    """The one target device an instance manages."""

    target_name: str
    host: Optional[str] = None
    port: Optional[int] = None
    device_type: Optional[str] = None
    device_id: Optional[str] = None

    @property
    def has_address(self) -> bool:
        return self.host is not None and self.port is not None

    @property
    def address(self) -> Optional[str]:
        """``"host:port"`` or ``None`` when the address is unknown."""
        if not self.has_address:
            return None
        return f"{self.host}:{self.port}"

    def record(self, announcement: DeviceAnnouncement) -> None:
        self.host = announcement.host
        self.port = announcement.port
        self.device_type = announcement.model
        self.device_id = announcement.device_id

    def clear_address(self) -> None:
        self.host = None
        self.port = None


# ---------------------------------------------------------------------------
# Status payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApplicationInfo:
    """One entry of a receiver status ``applications`` list."""

    session_id: Optional[str]
    transport_id: Optional[str] = None
    app_id: Optional[str] = None
    display_name: Optional[str] = None
    namespaces: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ApplicationInfo":
        namespaces = tuple(
            ns.get("name", "") if isinstance(ns, Mapping) else str(ns)
            for ns in data.get("namespaces") or ()
        )
        return cls(
            session_id=data.get("sessionId"),
            transport_id=data.get("transportId"),
            app_id=data.get("appId"),
            display_name=data.get("displayName"),
            namespaces=namespaces,
        )

    def with_transport_id(self, transport_id: Optional[str]) -> "ApplicationInfo":
        return replace(self, transport_id=transport_id)


@dataclass(frozen=True)
class ReceiverStatus:
    """Device-level status.

    ``applications`` is ``None`` when the payload has no
    ``applications`` field at all.
    """

    applications: Optional[Tuple[ApplicationInfo, ...]] = None
    volume_level: Optional[float] = None
    volume_muted: Optional[bool] = None

    @property
    def current_application(self) -> Optional[ApplicationInfo]:
        if not self.applications:
            return None
        return self.applications[0]

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ReceiverStatus":
        data = data or {}
        # Some senders wrap the payload in a "status" object.
        if "status" in data and isinstance(data["status"], Mapping):
            data = data["status"]

        applications: Optional[Tuple[ApplicationInfo, ...]] = None
        # Only a missing key means "stopped"; null counts as an empty list.
        if "applications" in data:
            applications = tuple(
                ApplicationInfo.from_dict(app)
                for app in data["applications"] or ()
            )

        volume_level: Optional[float] = None
        volume_muted: Optional[bool] = None
        volume = data.get("volume")
        if isinstance(volume, Mapping):
            if volume.get("level") is not None:
                volume_level = float(volume["level"])
            if volume.get("muted") is not None:
                volume_muted = bool(volume["muted"])

        return cls(
            applications=applications,
            volume_level=volume_level,
            volume_muted=volume_muted,
        )


@dataclass(frozen=True)
class MediaStatus:
    """Status of an attached media session."""

    player_state: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_active(self) -> bool:
        """``True`` while playing or buffering."""
        return self.player_state in ACTIVE_PLAYER_STATES

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "MediaStatus":
        data = dict(data or {})
        # GET_STATUS responses carry a list of media statuses.
        entries = data.get("status")
        if isinstance(entries, list):
            data = dict(entries[0]) if entries else {}
        return cls(player_state=data.get("playerState") or None, raw=data)


# ---------------------------------------------------------------------------
# Session / lifecycle state
# ---------------------------------------------------------------------------


@dataclass
class ApplicationSession:
    """A tracked application session and its attached media handle."""

    application: ApplicationInfo
    media: Optional["MediaHandle"] = None

    @property
    def session_id(self) -> Optional[str]:
        return self.application.session_id


@dataclass
class ReconnectState:
    """Consecutive reconnect bookkeeping."""

    attempts: int = 0
    timer: SingleShotTimer = field(
        default_factory=lambda: SingleShotTimer("reconnect")
    )
    #: Incremented whenever a scheduled retry is superseded.
    ticket: int = 0
    stop_requested: bool = False


@dataclass
class CastingState:
    """Externally visible casting state."""

    is_casting: bool = False
    volume_level: float = 0.0
    off_delay_timer: SingleShotTimer = field(
        default_factory=lambda: SingleShotTimer("switch-off delay")
    )


@dataclass
class ConnectionInfo:
    """The control channel currently owned by the supervisor."""

    state: ConnectionState = ConnectionState.DISCONNECTED
    channel: Optional["ControlChannel"] = None
    generation: int = 0


@dataclass(frozen=True)
class TransitionRecord:
    """One dispatched event and the state it left behind."""

    event: str
    connection_state: ConnectionState
    reconnect_attempts: int
    is_casting: bool
    timestamp: float = field(default_factory=time.monotonic)
