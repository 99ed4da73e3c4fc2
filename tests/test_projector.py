"""Tests for the StateProjector (switch / motion presentations, volume)."""

import asyncio

import pytest

from pyCastAutomation.projector import StateProjector


def _projector(delay=0):
    switch, motion = [], []
    projector = StateProjector(
        delay, on_switch=switch.append, on_motion=motion.append
    )
    return projector, switch, motion


# ---------------------------------------------------------------------------
# Casting state
# ---------------------------------------------------------------------------

class TestSetCasting:

    def test_initially_not_casting(self):
        projector, switch, motion = _projector()
        assert not projector.is_casting
        assert not projector.switch_on
        assert not projector.motion_detected
        assert switch == [] and motion == []

    def test_transition_pushes_both_presentations(self):
        projector, switch, motion = _projector()

        assert projector.set_casting(True) is True

        assert projector.is_casting
        assert switch == [True]
        assert motion == [True]

    def test_same_value_is_noop(self):
        projector, switch, motion = _projector()
        projector.set_casting(True)

        assert projector.set_casting(True) is False
        assert projector.set_casting(1) is False

        assert switch == [True]
        assert motion == [True]

    def test_stop_without_delay_is_immediate(self):
        projector, switch, motion = _projector()
        projector.set_casting(True)
        projector.set_casting(False)

        assert switch == [True, False]
        assert motion == [True, False]
        assert not projector.motion_update_pending

    def test_stop_when_already_stopped(self):
        projector, switch, motion = _projector(delay=1000)
        assert projector.set_casting(False) is False
        assert switch == []

    def test_sink_errors_are_swallowed(self):
        def broken(_value):
            raise RuntimeError("sink failed")

        projector = StateProjector(on_switch=broken, on_motion=broken)
        assert projector.set_casting(True) is True
        assert projector.switch_on
        assert projector.motion_detected


# ---------------------------------------------------------------------------
# Switch-off delay
# ---------------------------------------------------------------------------

class TestSwitchOffDelay:

    @pytest.mark.asyncio
    async def test_motion_follows_after_delay(self):
        projector, switch, motion = _projector(delay=20)
        projector.set_casting(True)
        projector.set_casting(False)

        assert switch == [True, False]
        assert motion == [True]
        assert projector.motion_detected
        assert projector.motion_update_pending

        await asyncio.sleep(0.1)

        assert motion == [True, False]
        assert not projector.motion_detected
        assert not projector.motion_update_pending

    @pytest.mark.asyncio
    async def test_restart_within_delay_cancels_update(self):
        projector, switch, motion = _projector(delay=20)
        projector.set_casting(True)
        projector.set_casting(False)
        projector.set_casting(True)

        assert not projector.motion_update_pending
        await asyncio.sleep(0.1)

        assert switch == [True, False, True]
        assert motion == [True, True]
        assert projector.motion_detected

    @pytest.mark.asyncio
    async def test_close_cancels_pending_update(self):
        projector, _switch, motion = _projector(delay=20)
        projector.set_casting(True)
        projector.set_casting(False)

        projector.close()
        await asyncio.sleep(0.1)

        assert motion == [True]

    def test_delay_is_clamped(self):
        projector = StateProjector(-5)
        assert projector.switch_off_delay == 0


# ---------------------------------------------------------------------------
# Volume
# ---------------------------------------------------------------------------

class TestVolume:

    @pytest.mark.parametrize(
        "level, expected",
        [
            (0.0, 0),
            (0.567, 56),
            (0.57, 57),
            (0.29, 29),
            (0.999, 99),
            (1.0, 100),
        ],
    )
    def test_volume_is_floored(self, level, expected):
        projector = StateProjector()
        projector.update_volume(level)
        assert projector.volume == expected
        assert projector.volume_level == level

    def test_volume_does_not_touch_casting(self):
        projector, switch, motion = _projector()
        projector.update_volume(0.8)
        assert not projector.is_casting
        assert switch == [] and motion == []

    def test_repr(self):
        projector = StateProjector()
        projector.update_volume(0.4)
        assert repr(projector) == "StateProjector(casting=False, volume=40)"
