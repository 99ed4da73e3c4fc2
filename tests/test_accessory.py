"""Tests for the CastAccessory boundary."""

import pytest

import pyCastAutomation
from pyCastAutomation.accessory import MANUFACTURER, CastAccessory
from pyCastAutomation.cast_channel import PyChromecastChannel
from pyCastAutomation.enums import ConnectionState
from pyCastAutomation.models import MediaStatus


class TestInformation:

    def test_information_before_discovery(self, config, browser):
        accessory = CastAccessory(config, browser=browser)
        info = accessory.information

        assert info.name == "Living Room TV"
        assert info.manufacturer == MANUFACTURER
        assert info.model == "Chromecast"
        assert info.serial_number == "n/a"
        assert info.firmware_revision == pyCastAutomation.__version__
        assert info.hardware_revision == pyCastAutomation.__version__

    def test_initial_state(self, config, browser):
        accessory = CastAccessory(config, browser=browser)
        assert not accessory.is_casting
        assert not accessory.motion_detected
        assert accessory.volume == 0
        assert accessory.device_address is None
        assert accessory.device_type is None
        assert accessory.device_id is None
        assert accessory.connection_state is ConnectionState.DISCONNECTED

    def test_default_channel_factory(self, config, browser):
        accessory = CastAccessory(config, browser=browser)
        channel = accessory._create_channel()
        assert isinstance(channel, PyChromecastChannel)
        assert channel.timeout == config.connect_timeout


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_context_manager(self, config, browser, channel_factory):
        async with CastAccessory(
            config, browser=browser, channel_factory=channel_factory
        ) as accessory:
            assert accessory.supervisor.is_running
            assert browser.starts == 1
        assert not accessory.supervisor.is_running
        assert browser.stops == 1

    @pytest.mark.asyncio
    async def test_device_details_after_discovery(
        self, config, browser, channel_factory
    ):
        accessory = CastAccessory(
            config, browser=browser, channel_factory=channel_factory
        )
        await accessory.start()
        browser.announce(model="Chromecast Ultra", device_id="abc")
        await accessory.supervisor.wait_idle()

        assert accessory.device_address == "192.168.1.20:8009"
        assert accessory.device_type == "Chromecast Ultra"
        assert accessory.device_id == "abc"
        assert accessory.information.model == "Chromecast Ultra"
        assert accessory.connection_state is ConnectionState.CONNECTED
        await accessory.stop()


class TestCharacteristics:

    @pytest.mark.asyncio
    async def test_listeners_receive_changes(
        self, config, browser, channel_factory, make_receiver
    ):
        channel_factory.status = make_receiver("s1", volume=0.25)
        channel_factory.media_status = MediaStatus(player_state="PLAYING")
        accessory = CastAccessory(
            config, browser=browser, channel_factory=channel_factory
        )
        switch_a, switch_b, motion = [], [], []
        accessory.subscribe(on_switch=switch_a.append, on_motion=motion.append)
        accessory.subscribe(on_switch=switch_b.append)

        await accessory.start()
        browser.announce()
        await accessory.supervisor.wait_idle()

        assert accessory.is_casting
        assert accessory.motion_detected
        assert accessory.volume == 25
        assert switch_a == switch_b == [True]
        assert motion == [True]
        await accessory.stop()

    @pytest.mark.asyncio
    async def test_broken_listener_does_not_block_others(
        self, config, browser, channel_factory
    ):
        def broken(_value):
            raise RuntimeError("listener failed")

        received = []
        accessory = CastAccessory(
            config, browser=browser, channel_factory=channel_factory
        )
        accessory.subscribe(on_switch=broken)
        accessory.subscribe(on_switch=received.append)

        await accessory.set_casting(True)

        assert received == [True]

    @pytest.mark.asyncio
    async def test_unsubscribe(self, config, browser, channel_factory):
        received = []
        accessory = CastAccessory(
            config, browser=browser, channel_factory=channel_factory
        )
        accessory.subscribe(on_switch=received.append)
        accessory.unsubscribe(on_switch=received.append)

        await accessory.set_casting(True)

        assert received == []

    @pytest.mark.asyncio
    async def test_set_volume(self, config, browser, channel_factory):
        accessory = CastAccessory(
            config, browser=browser, channel_factory=channel_factory
        )
        await accessory.start()
        browser.announce()
        await accessory.supervisor.wait_idle()

        await accessory.set_volume(60)

        assert channel_factory.last.volumes == [0.6]
        await accessory.stop()

    def test_repr(self, config, browser):
        accessory = CastAccessory(config, browser=browser)
        assert repr(accessory) == (
            "CastAccessory(name='Living Room TV', device='Living Room')"
        )
