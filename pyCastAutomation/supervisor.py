"""Cast supervisor: lifecycle manager for one cast device.

A :class:`CastSupervisor` discovers the configured device, keeps one
control channel open to it, follows its application / media sessions
and recovers from failures at every layer:

1. **Discovery**: a :class:`~pyCastAutomation.discovery.DiscoveryWatcher`
   reports the device; the supervisor performs a hard reset, records the
   announced address and connects.  The watcher restarts itself every
   30 minutes; a restart drops the connection without reconnect intent.
2. **Connection**: once the channel is ready the reconnect counter is
   reset and the device status is queried explicitly, so a device that
   is already casting is picked up without waiting for its next push.
   A transport disconnect or protocol error tears the channel down and
   schedules a retry after 2 seconds.  More than 150 consecutive
   retries escalate to a fresh discovery (the address may have changed).
3. **Sessions**: status pushes go through the
   :class:`~pyCastAutomation.session_tracker.SessionTracker`; new
   application sessions are joined and their media status drives the
   :class:`~pyCastAutomation.projector.StateProjector`.

Event dispatch
~~~~~~~~~~~~~~

Every input (discovery matches, timer expiries, channel callbacks,
completions of network operations and accessory commands) is posted to
one queue as an event object and handled by a single dispatcher task.
Handlers are synchronous: network work is started as a task whose
completion is posted back as another event.  Two handlers therefore
never interleave, and each handled event is appended to a bounded
transition log (:attr:`CastSupervisor.transitions`).

Each channel gets a new *generation* number.  Events stamped with an
older generation belong to a channel that has been torn down and are
dropped.

Usage (normally wrapped by :class:`~pyCastAutomation.accessory.CastAccessory`)::

    supervisor = CastSupervisor(
        config,
        browser=ZeroconfBrowser(),
        channel_factory=PyChromecastChannel,
        on_switch=print,
    )
    await supervisor.start()
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Deque, Optional, Set, Tuple

from pyCastAutomation.channel import (
    ChannelFactory,
    ChannelListener,
    ControlChannel,
    MediaHandle,
)
from pyCastAutomation.config import AccessoryConfig
from pyCastAutomation.discovery import DiscoveryBrowser, DiscoveryWatcher
from pyCastAutomation.enums import ConnectionState
from pyCastAutomation.models import (
    ApplicationInfo,
    ConnectionInfo,
    DeviceAnnouncement,
    DeviceIdentity,
    MediaStatus,
    ReceiverStatus,
    ReconnectState,
    TransitionRecord,
)
from pyCastAutomation.projector import PresentationCallback, StateProjector
from pyCastAutomation.session_tracker import SessionTracker

logger = logging.getLogger(__name__)

#: Number of dispatched events kept in the transition log.
TRANSITION_LOG_SIZE: int = 256


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SupervisorEvent:
    """Base class of everything the dispatcher handles."""

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class DeviceFound(SupervisorEvent):
    announcement: DeviceAnnouncement


@dataclass(frozen=True)
class RediscoveryDue(SupervisorEvent):
    pass


@dataclass(frozen=True)
class ReconnectDue(SupervisorEvent):
    ticket: int


@dataclass(frozen=True)
class ChannelOpened(SupervisorEvent):
    generation: int


@dataclass(frozen=True)
class ChannelOpenFailed(SupervisorEvent):
    generation: int
    error: BaseException


@dataclass(frozen=True)
class ChannelTimedOut(SupervisorEvent):
    generation: int
    source: str


@dataclass(frozen=True)
class ChannelDisconnected(SupervisorEvent):
    generation: int
    reason: Optional[str] = None


@dataclass(frozen=True)
class ChannelFailed(SupervisorEvent):
    generation: int
    error: BaseException


@dataclass(frozen=True)
class DeviceStatusReceived(SupervisorEvent):
    generation: int
    status: ReceiverStatus


@dataclass(frozen=True)
class MediaAttached(SupervisorEvent):
    generation: int
    session_id: Optional[str]
    media: MediaHandle


@dataclass(frozen=True)
class MediaAttachFailed(SupervisorEvent):
    generation: int
    session_id: Optional[str]
    error: BaseException


@dataclass(frozen=True)
class MediaStatusReceived(SupervisorEvent):
    generation: int
    session_id: Optional[str]
    status: MediaStatus


@dataclass(frozen=True)
class CastingRequested(SupervisorEvent):
    on: bool
    done: Optional["asyncio.Future[None]"] = field(default=None, compare=False)


@dataclass(frozen=True)
class VolumeRequested(SupervisorEvent):
    level: int
    done: Optional["asyncio.Future[None]"] = field(default=None, compare=False)


# ---------------------------------------------------------------------------
# Channel listener
# ---------------------------------------------------------------------------


class _ChannelEventForwarder(ChannelListener):
    """Turns channel callbacks into events stamped with a generation."""

    def __init__(self, supervisor: "CastSupervisor", generation: int) -> None:
        self._supervisor = supervisor
        self._generation = generation

    def on_status(self, status: ReceiverStatus) -> None:
        self._supervisor.post_threadsafe(
            DeviceStatusReceived(self._generation, status)
        )

    def on_timeout(self, source: str) -> None:
        self._supervisor.post_threadsafe(
            ChannelTimedOut(self._generation, source)
        )

    def on_disconnect(self, reason: Optional[str] = None) -> None:
        self._supervisor.post_threadsafe(
            ChannelDisconnected(self._generation, reason)
        )

    def on_error(self, error: BaseException) -> None:
        self._supervisor.post_threadsafe(ChannelFailed(self._generation, error))


# ---------------------------------------------------------------------------
# CastSupervisor
# ---------------------------------------------------------------------------


class CastSupervisor:
    """Owns discovery, connection and session state for one device.

    Parameters
    ----------
    config:
        The accessory configuration.
    browser:
        Discovery collaborator used by the internal watcher.
    channel_factory:
        Creates a fresh :class:`ControlChannel` for every connection
        attempt.
    on_switch / on_motion:
        Presentation callbacks forwarded to the
        :class:`StateProjector`.
    """

    def __init__(
        self,
        config: AccessoryConfig,
        browser: DiscoveryBrowser,
        channel_factory: ChannelFactory,
        *,
        on_switch: Optional[PresentationCallback] = None,
        on_motion: Optional[PresentationCallback] = None,
    ) -> None:
        self._config = config
        self._channel_factory = channel_factory

        self._identity = DeviceIdentity(target_name=config.device_name)
        self._connection = ConnectionInfo()
        self._reconnect = ReconnectState()
        self._tracker = SessionTracker()
        self._projector = StateProjector(
            config.switch_off_delay,
            on_switch=on_switch,
            on_motion=on_motion,
        )
        self._watcher = DiscoveryWatcher(
            browser,
            config.device_name,
            on_match=self.device_found,
            on_restart=self.rediscovery_due,
            service_type=config.service_type,
            restart_interval=config.rediscovery_interval,
        )

        self._queue: "asyncio.Queue[SupervisorEvent]" = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._transitions: Deque[TransitionRecord] = deque(
            maxlen=TRANSITION_LOG_SIZE
        )

    # ---- public properties -------------------------------------------

    @property
    def config(self) -> AccessoryConfig:
        return self._config

    @property
    def identity(self) -> DeviceIdentity:
        return self._identity

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection.state

    @property
    def channel(self) -> Optional[ControlChannel]:
        return self._connection.channel

    @property
    def generation(self) -> int:
        return self._connection.generation

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect.attempts

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect.timer.pending

    @property
    def watcher(self) -> DiscoveryWatcher:
        return self._watcher

    @property
    def tracker(self) -> SessionTracker:
        return self._tracker

    @property
    def projector(self) -> StateProjector:
        return self._projector

    @property
    def is_casting(self) -> bool:
        return self._projector.is_casting

    @property
    def volume(self) -> int:
        return self._projector.volume

    @property
    def is_running(self) -> bool:
        return self._dispatcher is not None and not self._dispatcher.done()

    @property
    def transitions(self) -> Tuple[TransitionRecord, ...]:
        """Most recent dispatched events, oldest first."""
        return tuple(self._transitions)

    # ---- lifecycle ---------------------------------------------------

    async def start(self) -> None:
        """Start the dispatcher and begin discovery."""
        if self.is_running:
            logger.debug("Supervisor already running, skipping start.")
            return
        self._loop = asyncio.get_running_loop()
        self._reconnect.stop_requested = False
        self._dispatcher = self._loop.create_task(self._run())
        await self._watcher.start()

    async def stop(self) -> None:
        """Stop discovery, cancel timers and tasks, close the channel."""
        self._reconnect.stop_requested = True
        self._reconnect.timer.cancel()

        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass
            self._dispatcher = None

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        await self._watcher.stop()

        # Release callers still waiting on queued commands.
        while not self._queue.empty():
            event = self._queue.get_nowait()
            _resolve(getattr(event, "done", None))
            self._queue.task_done()

        channel = self._connection.channel
        self._connection.channel = None
        self._connection.generation += 1
        self._connection.state = ConnectionState.DISCONNECTED
        self._tracker.reset()
        self._projector.close()

        if channel is not None:
            await self._close_quietly(channel)
        logger.info('Stopped supervising "%s"', self._config.device_name)

    async def wait_idle(self) -> None:
        """Wait until the queue is drained and no network task is running."""
        while True:
            await self._queue.join()
            pending = [task for task in self._tasks if not task.done()]
            if pending:
                await asyncio.wait(pending)
                continue
            if self._queue.empty():
                return

    # ---- event posting -----------------------------------------------

    def post(self, event: SupervisorEvent) -> None:
        """Queue *event* (must be called on the event loop)."""
        self._queue.put_nowait(event)

    def post_threadsafe(self, event: SupervisorEvent) -> None:
        """Queue *event* from any thread."""
        loop = self._loop
        if loop is None:
            self.post(event)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            self.post(event)
        else:
            loop.call_soon_threadsafe(self.post, event)

    def device_found(self, announcement: DeviceAnnouncement) -> None:
        """Watcher callback: the target device was announced."""
        self.post_threadsafe(DeviceFound(announcement))

    def rediscovery_due(self) -> None:
        """Watcher callback: the periodic discovery restart is due."""
        self.post_threadsafe(RediscoveryDue())

    # ---- accessory commands ------------------------------------------

    async def set_casting(self, on: bool) -> None:
        """Start or stop playback; the casting state updates at once."""
        await self._request(CastingRequested(bool(on), self._new_future()))

    async def set_volume(self, level: int) -> None:
        """Set the device volume on a ``0`` to ``100`` scale.

        Best effort: completes even if the command fails or no device is
        connected.
        """
        await self._request(VolumeRequested(int(level), self._new_future()))

    def _new_future(self) -> "asyncio.Future[None]":
        return asyncio.get_running_loop().create_future()

    async def _request(self, event: SupervisorEvent) -> None:
        if self.is_running:
            self.post(event)
        else:
            self._handle(event)
        done = getattr(event, "done", None)
        if done is not None:
            await done

    # ---- dispatcher --------------------------------------------------

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                self._handle(event)
            finally:
                self._queue.task_done()

    def _handle(self, event: SupervisorEvent) -> None:
        handler = getattr(self, f"_on_{_snake(event.name)}", None)
        try:
            if handler is None:
                logger.debug("No handler for %s, ignoring", event.name)
            else:
                handler(event)
        except Exception:  # noqa: BLE001
            logger.exception("Error handling %s", event.name)
            _resolve(getattr(event, "done", None))
        finally:
            self._transitions.append(
                TransitionRecord(
                    event=event.name,
                    connection_state=self._connection.state,
                    reconnect_attempts=self._reconnect.attempts,
                    is_casting=self._projector.is_casting,
                )
            )

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_current(self, generation: int) -> bool:
        current = (
            self._connection.channel is not None
            and generation == self._connection.generation
        )
        if not current:
            logger.debug("Dropping event from stale channel #%d", generation)
        return current

    # ---- discovery handlers ------------------------------------------

    def _on_device_found(self, event: DeviceFound) -> None:
        announcement = event.announcement
        self._hard_reset()
        self._identity.record(announcement)
        logger.info(
            "Chromecast found on %s:%d", announcement.host, announcement.port
        )
        self._connect()

    def _on_rediscovery_due(self, event: RediscoveryDue) -> None:
        logger.debug("Restarting mdns browser")
        self._disconnect(reconnect=False)
        self._hard_reset()
        self._spawn(self._watcher.restart())

    def _on_reconnect_due(self, event: ReconnectDue) -> None:
        if self._reconnect.stop_requested or event.ticket != self._reconnect.ticket:
            logger.debug("Dropping superseded reconnect #%d", event.ticket)
            return
        self._reconnect.attempts += 1
        self._connect()

    # ---- connection handlers -----------------------------------------

    def _on_channel_opened(self, event: ChannelOpened) -> None:
        if not self._is_current(event.generation):
            return
        self._connection.state = ConnectionState.CONNECTED
        self._reconnect.attempts = 0
        logger.info("Chromecast connection: connected")
        self._spawn(
            self._query_status(self._connection.channel, event.generation)
        )

    def _on_channel_open_failed(self, event: ChannelOpenFailed) -> None:
        if not self._is_current(event.generation):
            return
        logger.info("Chromecast client error - %s", event.error or "connect failed")
        self._disconnect(reconnect=True)

    def _on_channel_timed_out(self, event: ChannelTimedOut) -> None:
        logger.debug("Chromecast %s - timeout", event.source)

    def _on_channel_disconnected(self, event: ChannelDisconnected) -> None:
        if not self._is_current(event.generation):
            return
        if event.reason:
            logger.debug("Channel disconnected: %s", event.reason)
        self._disconnect(reconnect=True)

    def _on_channel_failed(self, event: ChannelFailed) -> None:
        if not self._is_current(event.generation):
            return
        logger.info("Chromecast client error - %s", event.error)
        self._disconnect(reconnect=True)

    # ---- session handlers --------------------------------------------

    def _on_device_status_received(self, event: DeviceStatusReceived) -> None:
        if not self._is_current(event.generation):
            return
        logger.debug("Received client status %s", event.status)

        outcome = self._tracker.on_device_status(event.status)
        if outcome.attach is not None:
            self._spawn(
                self._join(
                    self._connection.channel, event.generation, outcome.attach
                )
            )
        if outcome.stopped:
            self._projector.set_casting(False)
        if outcome.volume is not None:
            self._projector.update_volume(outcome.volume)

    def _on_media_attached(self, event: MediaAttached) -> None:
        if not self._is_current(event.generation):
            return
        if not self._tracker.attached(event.session_id, event.media):
            return

        generation = event.generation
        session_id = event.session_id

        def _forward(status: MediaStatus) -> None:
            self.post_threadsafe(
                MediaStatusReceived(generation, session_id, status)
            )

        event.media.set_listener(_forward)
        self._spawn(self._query_media_status(event.media, generation, session_id))

    def _on_media_attach_failed(self, event: MediaAttachFailed) -> None:
        if not self._is_current(event.generation):
            return
        logger.debug(
            "Joining session %s failed: %s", event.session_id, event.error
        )
        self._disconnect(reconnect=True)

    def _on_media_status_received(self, event: MediaStatusReceived) -> None:
        if not self._is_current(event.generation):
            return
        logger.debug("Received media status %s", event.status)
        casting = self._tracker.on_media_status(event.session_id, event.status)
        if casting is not None:
            self._projector.set_casting(casting)

    # ---- command handlers --------------------------------------------

    def _on_casting_requested(self, event: CastingRequested) -> None:
        currently_casting = self._projector.is_casting
        self._projector.set_casting(event.on)
        logger.debug(
            "setCasting() - Current status: %s - New status: %s",
            currently_casting,
            event.on,
        )

        media = self._tracker.media
        if media is not None:
            if event.on and not currently_casting:
                logger.debug("setCasting() - Play")
                self._spawn(self._media_command(media.play(), "play"))
            elif not event.on and currently_casting:
                logger.debug("setCasting() - Pause")
                self._spawn(self._media_command(media.pause(), "pause"))
        _resolve(event.done)

    def _on_volume_requested(self, event: VolumeRequested) -> None:
        target = max(0, min(100, event.level))
        logger.debug(
            "setVolume() - Current status: %s - New status: %s",
            self._projector.volume,
            target,
        )
        channel = self._connection.channel
        if channel is None or self._connection.state is not ConnectionState.CONNECTED:
            logger.debug("setVolume() - Not connected, ignoring")
            _resolve(event.done)
            return
        self._spawn(self._send_volume(channel, target, event.done))

    # ---- state transitions -------------------------------------------

    def _connect(self) -> None:
        if not self._identity.has_address:
            logger.debug("connect() without a known address, ignoring")
            return

        self._close_channel()
        self._tracker.reset()

        channel = self._channel_factory()
        self._connection.generation += 1
        self._connection.channel = channel
        self._connection.state = ConnectionState.CONNECTING
        generation = self._connection.generation

        logger.info("Connecting to Chromecast on %s", self._identity.address)
        self._spawn(
            self._open_channel(
                channel,
                generation,
                self._identity.host,
                self._identity.port,
            )
        )

    def _disconnect(self, *, reconnect: bool) -> None:
        logger.info("Chromecast connection: disconnected")

        self._projector.set_casting(False)
        self._close_channel()
        self._tracker.reset()
        self._reconnect.timer.cancel()

        if not reconnect or self._reconnect.stop_requested:
            return

        if self._reconnect.attempts > self._config.max_reconnect_attempts:
            logger.info(
                "Chromecast reconnection: backoff, searching again for Chromecast"
            )
            self._hard_reset()
            self._spawn(self._watcher.restart())
            return

        logger.info(
            "Waiting %g seconds before reconnecting",
            self._config.reconnect_interval,
        )
        self._reconnect.ticket += 1
        self._reconnect.timer.schedule(
            self._config.reconnect_interval,
            self.post,
            ReconnectDue(self._reconnect.ticket),
        )

    def _hard_reset(self) -> None:
        """Clear address, channel and session state for a fresh start."""
        self._reconnect.timer.cancel()
        self._reconnect.ticket += 1
        self._close_channel()
        self._tracker.reset()
        self._identity.clear_address()
        self._reconnect.attempts = 0

    def _close_channel(self) -> None:
        channel = self._connection.channel
        self._connection.channel = None
        self._connection.state = ConnectionState.DISCONNECTED
        if channel is None:
            return
        # Events still in flight from this channel become stale.
        self._connection.generation += 1
        self._spawn(self._close_quietly(channel))

    # ---- network tasks -----------------------------------------------

    async def _open_channel(
        self,
        channel: ControlChannel,
        generation: int,
        host: Optional[str],
        port: Optional[int],
    ) -> None:
        listener = _ChannelEventForwarder(self, generation)
        try:
            await asyncio.wait_for(
                channel.connect(host, port, listener),
                timeout=self._config.connect_timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self.post(ChannelOpenFailed(generation, exc))
            return
        self.post(ChannelOpened(generation))

    async def _query_status(
        self, channel: Optional[ControlChannel], generation: int
    ) -> None:
        if channel is None:
            return
        try:
            status = await channel.get_status()
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.debug("Status query failed", exc_info=True)
            return
        self.post(DeviceStatusReceived(generation, status))

    async def _join(
        self,
        channel: Optional[ControlChannel],
        generation: int,
        application: ApplicationInfo,
    ) -> None:
        if channel is None:
            return
        try:
            media = await channel.join(application)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            self.post(MediaAttachFailed(generation, application.session_id, exc))
            return
        self.post(MediaAttached(generation, application.session_id, media))

    async def _query_media_status(
        self,
        media: MediaHandle,
        generation: int,
        session_id: Optional[str],
    ) -> None:
        try:
            status = await media.get_status()
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.debug("Media status query failed", exc_info=True)
            return
        self.post(MediaStatusReceived(generation, session_id, status))

    async def _media_command(self, command: Awaitable[None], name: str) -> None:
        try:
            await command
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.debug("setCasting() - %s failed", name, exc_info=True)

    async def _send_volume(
        self,
        channel: ControlChannel,
        target: int,
        done: Optional["asyncio.Future[None]"],
    ) -> None:
        try:
            await channel.set_volume(target / 100)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.debug("setVolume() - Reported error", exc_info=True)
        finally:
            _resolve(done)

    @staticmethod
    async def _close_quietly(channel: ControlChannel) -> None:
        try:
            await channel.close()
        except Exception:  # noqa: BLE001
            logger.debug("Error closing channel", exc_info=True)

    # ---- dunder ------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"CastSupervisor(device={self._config.device_name!r}, "
            f"state={self._connection.state.name}, "
            f"casting={self._projector.is_casting})"
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve(future: Optional["asyncio.Future[None]"]) -> None:
    if future is not None and not future.done():
        future.set_result(None)


def _snake(name: str) -> str:
    """``"DeviceFound"`` → ``"device_found"``."""
    out = []
    for index, char in enumerate(name):
        if char.isupper() and index:
            out.append("_")
        out.append(char.lower())
    return "".join(out)
