"""Cast accessory: the boundary towards a home-automation framework.

A :class:`CastAccessory` exposes one cast device as a *switch* (is
something casting?) and a *motion sensor* (the same signal, with an
optional switch-off delay), plus a volume characteristic.  The
framework reads the getters, calls the async setters and registers
listeners for value changes with :meth:`CastAccessory.subscribe`.

Usage::

    config = load_config("living-room.yaml")

    async with CastAccessory(config) as accessory:
        accessory.subscribe(
            on_switch=lambda on: print("switch", on),
            on_motion=lambda on: print("motion", on),
        )
        await asyncio.Event().wait()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from pyCastAutomation.cast_channel import PyChromecastChannel
from pyCastAutomation.channel import ChannelFactory, ControlChannel
from pyCastAutomation.config import AccessoryConfig
from pyCastAutomation.discovery import DiscoveryBrowser, ZeroconfBrowser
from pyCastAutomation.enums import ConnectionState
from pyCastAutomation.projector import PresentationCallback
from pyCastAutomation.supervisor import CastSupervisor

logger = logging.getLogger(__name__)

#: Manufacturer reported in the accessory information.
MANUFACTURER: str = "pyCastAutomation"


@dataclass(frozen=True)
class AccessoryInformation:
    """Static accessory information shown by the framework."""

    name: str
    manufacturer: str
    model: str
    serial_number: str
    firmware_revision: str
    hardware_revision: str


class CastAccessory:
    """A cast device presented as switch, motion sensor and volume.

    Parameters
    ----------
    config:
        The accessory configuration.
    browser:
        Discovery collaborator.  Defaults to a :class:`ZeroconfBrowser`.
    channel_factory:
        Creates control channels.  Defaults to a
        :class:`PyChromecastChannel` for the discovered device.
    """

    def __init__(
        self,
        config: AccessoryConfig,
        *,
        browser: Optional[DiscoveryBrowser] = None,
        channel_factory: Optional[ChannelFactory] = None,
    ) -> None:
        self._config = config
        self._switch_listeners: List[PresentationCallback] = []
        self._motion_listeners: List[PresentationCallback] = []
        self._supervisor = CastSupervisor(
            config,
            browser if browser is not None else ZeroconfBrowser(),
            channel_factory or self._create_channel,
            on_switch=self._notify_switch,
            on_motion=self._notify_motion,
        )

    # ---- public properties -------------------------------------------

    @property
    def config(self) -> AccessoryConfig:
        return self._config

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def supervisor(self) -> CastSupervisor:
        return self._supervisor

    @property
    def is_casting(self) -> bool:
        """Switch characteristic: ``True`` while the device is casting."""
        return self._supervisor.is_casting

    @property
    def motion_detected(self) -> bool:
        """Motion characteristic (follows casting, possibly delayed)."""
        return self._supervisor.projector.motion_detected

    @property
    def volume(self) -> int:
        """Volume characteristic on a ``0`` to ``100`` scale."""
        return self._supervisor.volume

    @property
    def device_type(self) -> Optional[str]:
        return self._supervisor.identity.device_type

    @property
    def device_address(self) -> Optional[str]:
        return self._supervisor.identity.address

    @property
    def device_id(self) -> Optional[str]:
        return self._supervisor.identity.device_id

    @property
    def connection_state(self) -> ConnectionState:
        return self._supervisor.connection_state

    @property
    def information(self) -> AccessoryInformation:
        from pyCastAutomation import __version__

        return AccessoryInformation(
            name=self._config.name,
            manufacturer=MANUFACTURER,
            model=self.device_type or "Chromecast",
            serial_number="n/a",
            firmware_revision=__version__,
            hardware_revision=__version__,
        )

    # ---- commands ----------------------------------------------------

    async def set_casting(self, on: bool) -> None:
        """Switch setter: resume (``True``) or pause (``False``) playback."""
        await self._supervisor.set_casting(on)

    async def set_volume(self, level: int) -> None:
        """Volume setter (``0`` to ``100``)."""
        await self._supervisor.set_volume(level)

    # ---- listeners ---------------------------------------------------

    def subscribe(
        self,
        on_switch: Optional[PresentationCallback] = None,
        on_motion: Optional[PresentationCallback] = None,
    ) -> None:
        """Register listeners for switch and/or motion value changes."""
        if on_switch is not None:
            self._switch_listeners.append(on_switch)
        if on_motion is not None:
            self._motion_listeners.append(on_motion)

    def unsubscribe(
        self,
        on_switch: Optional[PresentationCallback] = None,
        on_motion: Optional[PresentationCallback] = None,
    ) -> None:
        """Remove listeners registered with :meth:`subscribe`."""
        if on_switch in self._switch_listeners:
            self._switch_listeners.remove(on_switch)
        if on_motion in self._motion_listeners:
            self._motion_listeners.remove(on_motion)

    def _notify_switch(self, value: bool) -> None:
        for listener in list(self._switch_listeners):
            try:
                listener(value)
            except Exception:  # noqa: BLE001
                logger.exception("Error in switch listener %r", listener)

    def _notify_motion(self, value: bool) -> None:
        for listener in list(self._motion_listeners):
            try:
                listener(value)
            except Exception:  # noqa: BLE001
                logger.exception("Error in motion listener %r", listener)

    # ---- lifecycle ---------------------------------------------------

    async def start(self) -> None:
        logger.info(
            'Starting accessory "%s" for Chromecast "%s"',
            self._config.name,
            self._config.device_name,
        )
        await self._supervisor.start()

    async def stop(self) -> None:
        await self._supervisor.stop()

    async def __aenter__(self) -> "CastAccessory":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # ---- internal ----------------------------------------------------

    def _create_channel(self) -> ControlChannel:
        identity = self._supervisor.identity
        return PyChromecastChannel(
            self._config.connect_timeout,
            device_id=identity.device_id,
            friendly_name=identity.target_name,
            model_name=identity.device_type or None,
        )

    def __repr__(self) -> str:
        return (
            f"CastAccessory(name={self._config.name!r}, "
            f"device={self._config.device_name!r})"
        )
