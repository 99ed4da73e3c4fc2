"""Tests for the data model value objects."""

import pytest

from pyCastAutomation.enums import ConnectionState
from pyCastAutomation.models import (
    ApplicationInfo,
    ConnectionInfo,
    DeviceAnnouncement,
    DeviceIdentity,
    MediaStatus,
    ReceiverStatus,
    ReconnectState,
    name_matches,
)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

class TestNameMatching:

    @pytest.mark.parametrize(
        "name", ["Living Room", "living room", "LIVING ROOM", "LiViNg RoOm"]
    )
    def test_case_insensitive(self, name):
        assert name_matches(name, "Living Room")

    @pytest.mark.parametrize("name", ["Living Room 2", "Kitchen", "", None])
    def test_mismatch(self, name):
        assert not name_matches(name, "Living Room")


class TestDeviceAnnouncement:

    def test_from_txt(self):
        ann = DeviceAnnouncement.from_txt(
            ["192.168.1.20", "fe80::1"],
            8009,
            {"fn": "Living Room", "md": "Chromecast Ultra", "id": "abc123"},
        )
        assert ann.name == "Living Room"
        assert ann.host == "192.168.1.20"
        assert ann.port == 8009
        assert ann.model == "Chromecast Ultra"
        assert ann.device_id == "abc123"

    def test_from_txt_defaults(self):
        ann = DeviceAnnouncement.from_txt(["10.0.0.2"], 8009, {"fn": "TV"})
        assert ann.model == ""
        assert ann.device_id is None

    def test_host_without_addresses(self):
        ann = DeviceAnnouncement(name="TV", addresses=(), port=8009)
        assert ann.host is None


class TestDeviceIdentity:

    def test_record_and_clear(self):
        identity = DeviceIdentity(target_name="Living Room")
        assert not identity.has_address
        assert identity.address is None

        identity.record(
            DeviceAnnouncement(
                name="living room",
                addresses=("192.168.1.20",),
                port=8009,
                model="Chromecast",
                device_id="abc",
            )
        )
        assert identity.address == "192.168.1.20:8009"
        assert identity.device_type == "Chromecast"
        assert identity.device_id == "abc"

        identity.clear_address()
        assert identity.address is None
        assert identity.device_type == "Chromecast"


# ---------------------------------------------------------------------------
# Status payloads
# ---------------------------------------------------------------------------

class TestReceiverStatus:

    def test_from_dict(self):
        status = ReceiverStatus.from_dict({
            "applications": [{
                "appId": "CC1AD845",
                "sessionId": "s1",
                "transportId": "t1",
                "displayName": "Default Media Receiver",
                "namespaces": [{"name": "urn:x-cast:com.google.cast.media"}],
            }],
            "volume": {"level": 0.35, "muted": False},
        })
        app = status.current_application
        assert app == ApplicationInfo(
            session_id="s1",
            transport_id="t1",
            app_id="CC1AD845",
            display_name="Default Media Receiver",
            namespaces=("urn:x-cast:com.google.cast.media",),
        )
        assert status.volume_level == 0.35
        assert status.volume_muted is False

    def test_absent_applications_stay_none(self):
        status = ReceiverStatus.from_dict({"volume": {"level": 0.5}})
        assert status.applications is None
        assert status.current_application is None

    def test_empty_applications(self):
        status = ReceiverStatus.from_dict({"applications": []})
        assert status.applications == ()
        assert status.current_application is None

    def test_null_applications_are_empty(self):
        status = ReceiverStatus.from_dict({"applications": None})
        assert status.applications == ()
        assert status.current_application is None

    def test_status_wrapper(self):
        status = ReceiverStatus.from_dict(
            {"status": {"applications": [{"sessionId": "s9"}]}}
        )
        assert status.current_application.session_id == "s9"

    def test_none_payload(self):
        status = ReceiverStatus.from_dict(None)
        assert status == ReceiverStatus()

    def test_with_transport_id(self):
        app = ApplicationInfo(session_id="s1", transport_id="t1")
        aliased = app.with_transport_id("s1")
        assert aliased.transport_id == "s1"
        assert app.transport_id == "t1"


class TestMediaStatus:

    def test_from_dict(self):
        status = MediaStatus.from_dict({"playerState": "PLAYING"})
        assert status.player_state == "PLAYING"
        assert status.is_active

    def test_status_list(self):
        status = MediaStatus.from_dict(
            {"status": [{"playerState": "BUFFERING", "mediaSessionId": 3}]}
        )
        assert status.player_state == "BUFFERING"
        assert status.raw["mediaSessionId"] == 3
        assert status.is_active

    def test_empty_status_list(self):
        assert MediaStatus.from_dict({"status": []}).player_state is None

    @pytest.mark.parametrize("state", ["PAUSED", "IDLE", "UNKNOWN", None])
    def test_inactive_states(self, state):
        assert not MediaStatus(player_state=state).is_active


# ---------------------------------------------------------------------------
# Lifecycle state
# ---------------------------------------------------------------------------

class TestLifecycleState:

    def test_defaults(self):
        info = ConnectionInfo()
        assert info.state is ConnectionState.DISCONNECTED
        assert info.channel is None
        assert info.generation == 0

        reconnect = ReconnectState()
        assert reconnect.attempts == 0
        assert not reconnect.timer.pending
        assert not reconnect.stop_requested

    def test_timers_are_not_shared(self):
        assert ReconnectState().timer is not ReconnectState().timer
