"""Control channel implementation backed by ``pychromecast``.

``pychromecast`` owns the Cast v2 protocol (TLS socket, protobuf
framing, heartbeat and the receiver / media namespaces).  This module
adapts one :class:`pychromecast.Chromecast` object to the
:class:`~pyCastAutomation.channel.ControlChannel` interface:

* the blocking ``pychromecast`` calls run in a worker thread via
  :func:`asyncio.to_thread`;
* ``pychromecast`` status, connection and media listeners are turned
  into :class:`~pyCastAutomation.channel.ChannelListener` calls (from
  the socket thread; the supervisor marshals them);
* ``CastStatus`` / ``MediaStatus`` objects are mapped onto the package
  value types.

``pychromecast``'s own reconnect logic is disabled (``tries=1``): a lost
connection is reported and the supervisor decides when to retry.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from typing import Any, Optional

import pychromecast
from pychromecast import IDLE_APP_ID
from pychromecast.controllers.media import MediaStatusListener
from pychromecast.controllers.receiver import CastStatusListener
from pychromecast.socket_client import (
    CONNECTION_STATUS_DISCONNECTED,
    CONNECTION_STATUS_FAILED,
    CONNECTION_STATUS_FAILED_RESOLVE,
    CONNECTION_STATUS_LOST,
    ConnectionStatusListener,
)

from pyCastAutomation.channel import (
    ChannelError,
    ChannelListener,
    ControlChannel,
    JoinError,
    MediaHandle,
    MediaStatusCallback,
)
from pyCastAutomation.config import DEFAULT_CONNECT_TIMEOUT
from pyCastAutomation.models import ApplicationInfo, MediaStatus, ReceiverStatus

logger = logging.getLogger(__name__)

#: Namespace an application must support to be controlled as media.
MEDIA_NAMESPACE: str = "urn:x-cast:com.google.cast.media"


# ---------------------------------------------------------------------------
# Mapping helpers
# ---------------------------------------------------------------------------


def receiver_status_from_cast(status: Any) -> ReceiverStatus:
    """Map a ``pychromecast`` ``CastStatus`` to :class:`ReceiverStatus`.

    The idle screen (backdrop) counts as "no application running".
    """
    if status is None:
        return ReceiverStatus()

    applications = None
    app_id = getattr(status, "app_id", None)
    if app_id is not None and app_id != IDLE_APP_ID:
        applications = (
            ApplicationInfo(
                session_id=status.session_id,
                transport_id=status.transport_id,
                app_id=app_id,
                display_name=status.display_name,
                namespaces=tuple(status.namespaces or ()),
            ),
        )

    return ReceiverStatus(
        applications=applications,
        volume_level=status.volume_level,
        volume_muted=status.volume_muted,
    )


def media_status_from_cast(status: Any) -> MediaStatus:
    """Map a ``pychromecast`` ``MediaStatus`` to :class:`MediaStatus`."""
    if status is None:
        return MediaStatus()
    player_state = getattr(status, "player_state", None)
    raw = {
        "playerState": player_state,
        "mediaSessionId": getattr(status, "media_session_id", None),
        "contentId": getattr(status, "content_id", None),
        "title": getattr(status, "title", None),
    }
    return MediaStatus(player_state=player_state or None, raw=raw)


def _parse_uuid(device_id: Optional[str]) -> Optional[uuid.UUID]:
    if not device_id:
        return None
    try:
        return uuid.UUID(device_id)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# pychromecast listener bridge
# ---------------------------------------------------------------------------


class _ListenerBridge(
    CastStatusListener, ConnectionStatusListener, MediaStatusListener
):
    """Receives every ``pychromecast`` callback for one channel."""

    def __init__(self, channel: "PyChromecastChannel") -> None:
        self._channel = channel

    def new_cast_status(self, status: Any) -> None:
        listener = self._channel.listener
        if listener is not None:
            listener.on_status(receiver_status_from_cast(status))

    def new_connection_status(self, status: Any) -> None:
        listener = self._channel.listener
        if listener is None:
            return
        state = status.status
        if state == CONNECTION_STATUS_LOST:
            listener.on_timeout("heartbeat")
            listener.on_disconnect("connection lost")
        elif state == CONNECTION_STATUS_DISCONNECTED:
            listener.on_disconnect("disconnected")
        elif state in (CONNECTION_STATUS_FAILED, CONNECTION_STATUS_FAILED_RESOLVE):
            listener.on_error(ChannelError(f"connection {state.lower()}"))
        else:
            logger.debug("Connection status %s", state)

    def new_media_status(self, status: Any) -> None:
        callback = self._channel.media_callback
        if callback is not None:
            callback(media_status_from_cast(status))

    def load_media_failed(self, queue_item_id: int, error_code: int) -> None:
        logger.debug(
            "Media load failed (item %s, error %s)", queue_item_id, error_code
        )


# ---------------------------------------------------------------------------
# Media handle
# ---------------------------------------------------------------------------


class _CastMediaHandle(MediaHandle):
    """Media control for the application session joined by a channel."""

    def __init__(
        self,
        channel: "PyChromecastChannel",
        cast: Any,
        application: ApplicationInfo,
    ) -> None:
        self._channel = channel
        self._cast = cast
        self._application = application

    @property
    def application(self) -> ApplicationInfo:
        return self._application

    @property
    def supports_media(self) -> bool:
        namespaces = self._application.namespaces
        return not namespaces or MEDIA_NAMESPACE in namespaces

    async def get_status(self) -> MediaStatus:
        if not self.supports_media:
            return MediaStatus()
        controller = self._cast.media_controller
        done = threading.Event()

        def _request() -> None:
            controller.update_status(
                callback_function=lambda *_args: done.set()
            )
            done.wait(self._channel.timeout)

        await asyncio.to_thread(_request)
        return media_status_from_cast(controller.status)

    def set_listener(self, callback: Optional[MediaStatusCallback]) -> None:
        self._channel.media_callback = callback

    async def play(self) -> None:
        await asyncio.to_thread(self._cast.media_controller.play)

    async def pause(self) -> None:
        await asyncio.to_thread(self._cast.media_controller.pause)

    def __repr__(self) -> str:
        return f"_CastMediaHandle(session={self._application.session_id!r})"


# ---------------------------------------------------------------------------
# PyChromecastChannel
# ---------------------------------------------------------------------------


class PyChromecastChannel(ControlChannel):
    """:class:`ControlChannel` for one device, via ``pychromecast``.

    Parameters
    ----------
    timeout:
        Seconds allowed for the socket connect and for each request.
    device_id:
        Optional device UUID (TXT ``id``) passed on to ``pychromecast``.
    friendly_name / model_name:
        Optional descriptive values passed on to ``pychromecast``.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
        *,
        device_id: Optional[str] = None,
        friendly_name: Optional[str] = None,
        model_name: Optional[str] = None,
    ) -> None:
        self._timeout = timeout
        self._device_id = device_id
        self._friendly_name = friendly_name
        self._model_name = model_name
        self._cast: Optional[Any] = None
        # Cast object of a connect still running in the worker thread.
        self._pending: Optional[Any] = None
        self._closed = False
        self._lock = threading.Lock()
        self._bridge = _ListenerBridge(self)
        self.listener: Optional[ChannelListener] = None
        self.media_callback: Optional[MediaStatusCallback] = None

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def is_open(self) -> bool:
        return self._cast is not None

    # ---- ControlChannel ----------------------------------------------

    async def connect(
        self,
        host: str,
        port: int,
        listener: ChannelListener,
    ) -> None:
        """Open the connection in a worker thread.

        The worker hands the connected cast over to the channel itself,
        so a caller that gives up waiting (timeout, cancellation) can
        still release it with :meth:`close`.
        """
        with self._lock:
            if self._closed:
                raise ChannelError("Channel is closed")
            if self._cast is not None or self._pending is not None:
                raise ChannelError("Channel is already connected")
        self.listener = listener
        await asyncio.to_thread(self._open, host, port)

    def _open(self, host: str, port: int) -> None:
        cast = pychromecast.get_chromecast_from_host(
            (
                host,
                port,
                _parse_uuid(self._device_id),
                self._model_name,
                self._friendly_name,
            ),
            tries=1,
            timeout=self._timeout,
        )
        with self._lock:
            closed = self._closed
            if not closed:
                self._pending = cast
        if closed:
            cast.disconnect(timeout=self._timeout)
            raise ChannelError(f"Channel closed while connecting to {host}:{port}")

        cast.register_status_listener(self._bridge)
        cast.register_connection_listener(self._bridge)
        cast.media_controller.register_status_listener(self._bridge)

        try:
            # Newer pychromecast releases raise RequestTimeout here.
            cast.wait(timeout=self._timeout)
        except Exception as exc:  # noqa: BLE001
            self._abandon(cast)
            raise ChannelError(f"Could not connect to {host}:{port}") from exc
        if cast.status is None:
            self._abandon(cast)
            raise ChannelError(f"Timed out connecting to {host}:{port}")

        with self._lock:
            owned = self._pending is cast
            if owned:
                self._pending = None
                self._cast = cast
        if not owned:
            # close() took the cast over and disconnects it.
            raise ChannelError(f"Channel closed while connecting to {host}:{port}")
        logger.debug("Connected to %s:%d", host, port)

    def _abandon(self, cast: Any) -> None:
        with self._lock:
            owned = self._pending is cast
            if owned:
                self._pending = None
        if owned:
            cast.disconnect(timeout=self._timeout)

    async def get_status(self) -> ReceiverStatus:
        cast = self._require()
        done = threading.Event()

        def _request() -> None:
            cast.socket_client.receiver_controller.update_status(
                callback_function=lambda *_args: done.set()
            )
            done.wait(self._timeout)

        await asyncio.to_thread(_request)
        return receiver_status_from_cast(cast.status)

    async def join(self, application: ApplicationInfo) -> MediaHandle:
        cast = self._require()
        if cast.status is None:
            raise JoinError("No receiver status available")
        if application.session_id != cast.status.session_id:
            raise JoinError(
                f"Session {application.session_id} is no longer running"
            )
        self.media_callback = None
        return _CastMediaHandle(self, cast, application)

    async def set_volume(self, level: float) -> None:
        cast = self._require()
        level = max(0.0, min(1.0, float(level)))
        await asyncio.to_thread(cast.set_volume, level)

    async def close(self) -> None:
        """Disconnect, including a connect still running in the worker."""
        with self._lock:
            self._closed = True
            cast = self._cast if self._cast is not None else self._pending
            self._cast = None
            self._pending = None
        self.media_callback = None
        if cast is None:
            return
        await asyncio.to_thread(cast.disconnect, self._timeout)
        self.listener = None

    # ---- internal ----------------------------------------------------

    def _require(self) -> Any:
        if self._cast is None:
            raise ChannelError("Channel is not connected")
        return self._cast

    def __repr__(self) -> str:
        state = "open" if self._cast is not None else "closed"
        return f"PyChromecastChannel({state})"
