"""Shared in-memory doubles for the discovery and channel collaborators."""

from typing import List, Optional

import pytest

from pyCastAutomation.channel import (
    ChannelError,
    ControlChannel,
    JoinError,
    MediaHandle,
)
from pyCastAutomation.config import AccessoryConfig
from pyCastAutomation.discovery import DiscoveryBrowser
from pyCastAutomation.models import (
    ApplicationInfo,
    DeviceAnnouncement,
    MediaStatus,
    ReceiverStatus,
)


DEVICE_NAME = "Living Room"
DEVICE_HOST = "192.168.1.20"
DEVICE_PORT = 8009


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class FakeBrowser(DiscoveryBrowser):
    """Records start/stop calls; :meth:`announce` plays an mDNS result."""

    def __init__(self):
        self.on_found = None
        self.service_type = None
        self.starts = 0
        self.stops = 0

    async def start(self, service_type, on_found):
        self.starts += 1
        self.service_type = service_type
        self.on_found = on_found

    async def stop(self):
        self.stops += 1
        self.on_found = None

    def announce(
        self,
        name=DEVICE_NAME,
        host=DEVICE_HOST,
        port=DEVICE_PORT,
        model="Chromecast",
        device_id="0123456789abcdef0123456789abcdef",
    ):
        assert self.on_found is not None, "browser is not running"
        self.on_found(
            DeviceAnnouncement(
                name=name,
                addresses=(host,),
                port=port,
                model=model,
                device_id=device_id,
            )
        )


# ---------------------------------------------------------------------------
# Control channel / media
# ---------------------------------------------------------------------------


class FakeMedia(MediaHandle):

    def __init__(self, status: Optional[MediaStatus] = None):
        self.status = status or MediaStatus()
        self.callback = None
        self.plays = 0
        self.pauses = 0

    async def get_status(self):
        return self.status

    def set_listener(self, callback):
        self.callback = callback

    async def play(self):
        self.plays += 1

    async def pause(self):
        self.pauses += 1

    def push(self, player_state):
        """Simulate a media status push."""
        self.callback(MediaStatus(player_state=player_state))


class FakeChannel(ControlChannel):

    def __init__(
        self,
        *,
        fail_connect=False,
        fail_join=False,
        fail_volume=False,
        status: Optional[ReceiverStatus] = None,
        media_status: Optional[MediaStatus] = None,
    ):
        self.fail_connect = fail_connect
        self.fail_join = fail_join
        self.fail_volume = fail_volume
        self.status = status or ReceiverStatus()
        self.media_status = media_status
        self.listener = None
        self.host = None
        self.port = None
        self.closed = False
        self.status_queries = 0
        self.joined: List[ApplicationInfo] = []
        self.media: Optional[FakeMedia] = None
        self.volumes: List[float] = []

    async def connect(self, host, port, listener):
        self.host = host
        self.port = port
        self.listener = listener
        if self.fail_connect:
            raise ChannelError("connection refused")

    async def get_status(self):
        self.status_queries += 1
        return self.status

    async def join(self, application):
        self.joined.append(application)
        if self.fail_join:
            raise JoinError("join failed")
        self.media = FakeMedia(self.media_status)
        return self.media

    async def set_volume(self, level):
        self.volumes.append(level)
        if self.fail_volume:
            raise ChannelError("volume failed")

    async def close(self):
        self.closed = True


class FakeChannelFactory:
    """Creates :class:`FakeChannel` objects with the current settings."""

    def __init__(self):
        self.fail_connect = False
        self.fail_join = False
        self.fail_volume = False
        self.status: Optional[ReceiverStatus] = None
        self.media_status: Optional[MediaStatus] = None
        self.channels: List[FakeChannel] = []

    def __call__(self):
        channel = FakeChannel(
            fail_connect=self.fail_connect,
            fail_join=self.fail_join,
            fail_volume=self.fail_volume,
            status=self.status,
            media_status=self.media_status,
        )
        self.channels.append(channel)
        return channel

    @property
    def last(self) -> FakeChannel:
        return self.channels[-1]


# ---------------------------------------------------------------------------
# Status helpers
# ---------------------------------------------------------------------------


def receiver(session_id=None, *, volume=None, empty=False):
    """Build a receiver status.

    ``session_id=None`` leaves the ``applications`` field absent,
    ``empty=True`` reports an empty application list.
    """
    if empty:
        applications = ()
    elif session_id is None:
        applications = None
    else:
        applications = (
            ApplicationInfo(
                session_id=session_id,
                transport_id=f"transport-{session_id}",
                app_id="CC1AD845",
                display_name="Default Media Receiver",
            ),
        )
    return ReceiverStatus(applications=applications, volume_level=volume)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def browser():
    return FakeBrowser()


@pytest.fixture
def channel_factory():
    return FakeChannelFactory()


@pytest.fixture
def make_receiver():
    return receiver


@pytest.fixture
def make_media():
    return FakeMedia


@pytest.fixture
def config():
    """Reconnect retries never fire on their own; tests trigger them."""
    return AccessoryConfig(
        name="Living Room TV",
        device_name=DEVICE_NAME,
        reconnect_interval=60.0,
        rediscovery_interval=3600.0,
        connect_timeout=1.0,
    )
