"""Tests for the SingleShotTimer."""

import asyncio

import pytest

from pyCastAutomation.timers import SingleShotTimer


class TestSingleShotTimer:

    @pytest.mark.asyncio
    async def test_fires_once(self):
        fired = []
        timer = SingleShotTimer("test")
        timer.schedule(0.01, fired.append, "a")
        assert timer.pending
        assert timer.when is not None

        await asyncio.sleep(0.05)

        assert fired == ["a"]
        assert not timer.pending
        assert timer.when is None

    @pytest.mark.asyncio
    async def test_schedule_replaces_pending_call(self):
        fired = []
        timer = SingleShotTimer("test")
        timer.schedule(0.01, fired.append, "first")
        timer.schedule(0.01, fired.append, "second")

        await asyncio.sleep(0.05)

        assert fired == ["second"]

    @pytest.mark.asyncio
    async def test_cancel(self):
        fired = []
        timer = SingleShotTimer("test")
        timer.schedule(0.01, fired.append, "a")

        assert timer.cancel() is True
        assert timer.cancel() is False
        await asyncio.sleep(0.05)

        assert fired == []

    @pytest.mark.asyncio
    async def test_reschedule_from_callback(self):
        fired = []
        timer = SingleShotTimer("test")

        def again(n):
            fired.append(n)
            if n < 2:
                timer.schedule(0.001, again, n + 1)

        timer.schedule(0.001, again, 0)
        await asyncio.sleep(0.05)

        assert fired == [0, 1, 2]
        assert not timer.pending

    def test_cancel_without_loop(self):
        timer = SingleShotTimer("idle")
        assert timer.cancel() is False

    def test_repr(self):
        assert repr(SingleShotTimer("reconnect")) == (
            "SingleShotTimer('reconnect', idle)"
        )
