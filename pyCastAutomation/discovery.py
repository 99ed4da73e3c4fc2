"""Discovery of the target cast device via DNS-SD (mDNS / Bonjour).

Two layers live here:

* :class:`DiscoveryBrowser`: the collaborator interface: scan for a
  service type and report every device announcement.
  :class:`ZeroconfBrowser` implements it with the ``zeroconf`` library.
* :class:`DiscoveryWatcher`: filters announcements down to the one
  device whose friendly name matches the configured target (ignoring
  case) and restarts the scan on a fixed interval so that a stale
  listener never silently misses future announcements.

Usage::

    watcher = DiscoveryWatcher(
        ZeroconfBrowser(),
        "Living Room",
        on_match=supervisor.device_found,
        on_restart=supervisor.rediscovery_due,
    )
    await watcher.start()
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Set

from zeroconf import ServiceStateChange
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from pyCastAutomation.config import CAST_SERVICE_TYPE, DEFAULT_REDISCOVERY_INTERVAL
from pyCastAutomation.models import DeviceAnnouncement, name_matches
from pyCastAutomation.timers import SingleShotTimer

logger = logging.getLogger(__name__)

#: Milliseconds to wait for a service to resolve.
RESOLVE_TIMEOUT_MS: int = 3000

#: Called with every announcement seen by a browser.
AnnouncementCallback = Callable[[DeviceAnnouncement], None]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def decode_properties(
    props: Optional[Dict[bytes, Optional[bytes]]],
) -> Dict[str, str]:
    """Decode a zeroconf TXT property dict to ``str`` keys and values."""
    out: Dict[str, str] = {}
    if not props:
        return out
    for key, value in props.items():
        if isinstance(key, bytes):
            key = key.decode("utf-8", errors="ignore")
        if value is None:
            value = ""
        elif isinstance(value, bytes):
            value = value.decode("utf-8", errors="ignore")
        out[str(key)] = str(value)
    return out


# ---------------------------------------------------------------------------
# Browser interface
# ---------------------------------------------------------------------------


class DiscoveryBrowser(ABC):
    """Scans the network for devices advertising a service type."""

    @abstractmethod
    async def start(
        self,
        service_type: str,
        on_found: AnnouncementCallback,
    ) -> None:
        """Begin an unbounded scan.

        *on_found* is called on the event loop for every resolved
        announcement.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop scanning and release resources.  Safe to call twice."""


class ZeroconfBrowser(DiscoveryBrowser):
    """:class:`DiscoveryBrowser` backed by ``zeroconf.asyncio``.

    Only ``Added`` state changes count as announcements: cast devices
    update their TXT record whenever playback starts or stops, and those
    updates must not look like a new device.
    """

    def __init__(self, resolve_timeout_ms: int = RESOLVE_TIMEOUT_MS) -> None:
        self._resolve_timeout_ms = resolve_timeout_ms
        self._aiozc: Optional[AsyncZeroconf] = None
        self._browser: Optional[AsyncServiceBrowser] = None
        self._on_found: Optional[AnnouncementCallback] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    async def start(
        self,
        service_type: str,
        on_found: AnnouncementCallback,
    ) -> None:
        if self._browser is not None:
            logger.debug("Browser already running, skipping start.")
            return

        self._on_found = on_found
        self._aiozc = AsyncZeroconf()

        # zeroconf calls handlers using keyword args, so the parameter
        # names below are fixed.
        def _on_state_change(
            zeroconf, service_type: str, name: str, state_change: ServiceStateChange
        ) -> None:
            if state_change is not ServiceStateChange.Added:
                return
            task = asyncio.get_running_loop().create_task(
                self._resolve(zeroconf, service_type, name)
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        self._browser = AsyncServiceBrowser(
            self._aiozc.zeroconf,
            service_type,
            handlers=[_on_state_change],
        )
        logger.debug("Browsing for %s", service_type)

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

        if self._browser is not None:
            try:
                await self._browser.async_cancel()
            except Exception:  # noqa: BLE001
                logger.debug("Error cancelling browser", exc_info=True)
            self._browser = None

        if self._aiozc is not None:
            await self._aiozc.async_close()
            self._aiozc = None
        self._on_found = None

    async def _resolve(self, zeroconf, service_type: str, name: str) -> None:
        try:
            info = AsyncServiceInfo(service_type, name)
            ok = await info.async_request(zeroconf, self._resolve_timeout_ms)
            if not ok:
                logger.debug("Could not resolve %s", name)
                return

            addresses = info.parsed_addresses()
            if not addresses or info.port is None:
                logger.debug("No address for %s", name)
                return

            announcement = DeviceAnnouncement.from_txt(
                addresses, info.port, decode_properties(info.properties)
            )
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.debug("Discovery error for %s", name, exc_info=True)
            return

        if self._on_found is not None:
            self._on_found(announcement)


# ---------------------------------------------------------------------------
# Watcher
# ---------------------------------------------------------------------------


class DiscoveryWatcher:
    """Watches for the one device named *target_name*.

    Parameters
    ----------
    browser:
        The :class:`DiscoveryBrowser` to scan with.
    target_name:
        Advertised friendly name of the device (compared ignoring case).
    on_match:
        Called with the announcement of every matching device.
    on_restart:
        Called when the periodic restart is due.  The owner decides what
        a restart involves; it normally ends by calling :meth:`restart`.
    service_type:
        DNS-SD service type to browse.
    restart_interval:
        Seconds between periodic restarts.
    """

    def __init__(
        self,
        browser: DiscoveryBrowser,
        target_name: str,
        on_match: AnnouncementCallback,
        on_restart: Callable[[], None],
        *,
        service_type: str = CAST_SERVICE_TYPE,
        restart_interval: float = DEFAULT_REDISCOVERY_INTERVAL,
    ) -> None:
        self._browser = browser
        self._target_name = target_name
        self._on_match = on_match
        self._on_restart = on_restart
        self._service_type = service_type
        self._restart_interval = restart_interval
        self._restart_timer = SingleShotTimer("discovery restart")
        self._running = False
        self._lock = asyncio.Lock()

    # ---- public properties -------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def target_name(self) -> str:
        return self._target_name

    @property
    def restart_pending(self) -> bool:
        return self._restart_timer.pending

    # ---- lifecycle ---------------------------------------------------

    async def start(self) -> None:
        """Start scanning and arm the periodic restart."""
        async with self._lock:
            await self._start()

    async def stop(self) -> None:
        """Stop scanning and cancel the periodic restart."""
        async with self._lock:
            await self._stop()

    async def restart(self) -> None:
        """Stop and start again from scratch.

        Overlapping restarts run one after the other, so the browser is
        never started while a previous stop is still in progress.
        """
        logger.debug("Restarting discovery browser")
        async with self._lock:
            await self._stop()
            await self._start()

    async def _start(self) -> None:
        if self._running:
            return
        await self._browser.start(self._service_type, self._on_announcement)
        self._running = True
        self._restart_timer.schedule(
            self._restart_interval, self._on_restart_due
        )
        logger.info(
            'Searching for Chromecast device named "%s"', self._target_name
        )

    async def _stop(self) -> None:
        self._restart_timer.cancel()
        if not self._running:
            return
        self._running = False
        await self._browser.stop()

    # ---- callbacks ---------------------------------------------------

    def _on_announcement(self, announcement: DeviceAnnouncement) -> None:
        if not self._running:
            return
        if not name_matches(announcement.name, self._target_name):
            logger.debug(
                "Ignoring cast device %r at %s:%d",
                announcement.name,
                announcement.host,
                announcement.port,
            )
            return
        self._on_match(announcement)

    def _on_restart_due(self) -> None:
        self._on_restart()

    # ---- dunder ------------------------------------------------------

    def __repr__(self) -> str:
        state = "running" if self._running else "stopped"
        return f"DiscoveryWatcher({self._target_name!r}, {state})"
