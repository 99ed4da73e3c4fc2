"""Control-channel and media-session collaborator interfaces.

The session lifecycle manager does not speak the Cast wire protocol
itself.  It drives a :class:`ControlChannel` (one persistent connection
to the device) and, through it, :class:`MediaHandle` objects attached
to the device's current application session.

A channel reports what happens on the connection to a
:class:`ChannelListener`:

* ``on_status``: a device status push (also used for the reply to an
  explicit :meth:`ControlChannel.get_status`);
* ``on_timeout``: a channel, connection or heartbeat timeout; purely
  observational;
* ``on_disconnect``: the transport went away;
* ``on_error``: a fatal protocol error.

Implementations may invoke listener methods from any thread; the
supervisor's listener marshals them onto its event loop.

See :mod:`pyCastAutomation.cast_channel` for the ``pychromecast``
implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional

from pyCastAutomation.models import ApplicationInfo, MediaStatus, ReceiverStatus


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ChannelError(ConnectionError):
    """The control channel failed or is not usable."""


class JoinError(ChannelError):
    """Attaching to an application's media session failed."""


# ---------------------------------------------------------------------------
# Callback types
# ---------------------------------------------------------------------------

#: Receives every media status pushed by an attached media session.
MediaStatusCallback = Callable[[MediaStatus], None]


# ---------------------------------------------------------------------------
# Interfaces
# ---------------------------------------------------------------------------


class ChannelListener(ABC):
    """Receiver of control-channel lifecycle events."""

    @abstractmethod
    def on_status(self, status: ReceiverStatus) -> None:
        """A device status push."""

    @abstractmethod
    def on_timeout(self, source: str) -> None:
        """A timeout was observed at *source* (``"channel"``,
        ``"connection"`` or ``"heartbeat"``)."""

    @abstractmethod
    def on_disconnect(self, reason: Optional[str] = None) -> None:
        """The transport disconnected."""

    @abstractmethod
    def on_error(self, error: BaseException) -> None:
        """A fatal protocol error occurred."""


class MediaHandle(ABC):
    """Playback control surface of one application session."""

    @abstractmethod
    async def get_status(self) -> MediaStatus:
        """Query the current media status."""

    @abstractmethod
    def set_listener(self, callback: Optional[MediaStatusCallback]) -> None:
        """Install (or remove with ``None``) the media status callback."""

    @abstractmethod
    async def play(self) -> None:
        """Resume playback."""

    @abstractmethod
    async def pause(self) -> None:
        """Pause playback."""


class ControlChannel(ABC):
    """One persistent control connection to a cast device."""

    @abstractmethod
    async def connect(
        self,
        host: str,
        port: int,
        listener: ChannelListener,
    ) -> None:
        """Open the connection.

        Returns once the connection, heartbeat and receiver layers are
        ready.  Raises :class:`ChannelError` (or any ``OSError``) on
        failure.
        """

    @abstractmethod
    async def get_status(self) -> ReceiverStatus:
        """Query the device status explicitly."""

    @abstractmethod
    async def join(self, application: ApplicationInfo) -> MediaHandle:
        """Attach to *application*'s media session.

        Raises :class:`JoinError` when the session cannot be joined.
        """

    @abstractmethod
    async def set_volume(self, level: float) -> None:
        """Set the device volume (``0.0`` to ``1.0``)."""

    @abstractmethod
    async def close(self) -> None:
        """Close the connection.  Safe to call more than once."""


#: Creates a fresh, unconnected channel for every connection attempt.
ChannelFactory = Callable[[], ControlChannel]
