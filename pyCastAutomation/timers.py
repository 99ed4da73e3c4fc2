"""Single-slot timers for the asyncio event loop.

The supervisor and the state projector each own a handful of timers
(reconnect retry, motion off-delay, periodic discovery restart) that
must never have more than one pending expiry.  :class:`SingleShotTimer`
models such a timer as an owned resource: scheduling again replaces the
pending call, and the handle is dropped once the callback has run.

Usage::

    timer = SingleShotTimer("reconnect")
    timer.schedule(2.0, supervisor.reconnect_due)
    timer.schedule(2.0, supervisor.reconnect_due)  # replaces the first
    timer.cancel()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class SingleShotTimer:
    """A cancel-and-replace timer with at most one pending call.

    Parameters
    ----------
    name:
        Label used in log messages.
    loop:
        Event loop to schedule on.  Defaults to the running loop at the
        time of :meth:`schedule`.
    """

    def __init__(
        self,
        name: str,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._name = name
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    # ---- public properties -------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def pending(self) -> bool:
        """``True`` while a scheduled call has not yet fired."""
        return self._handle is not None

    @property
    def when(self) -> Optional[float]:
        """Loop time of the pending expiry, or ``None``."""
        if self._handle is None:
            return None
        return self._handle.when()

    # ---- scheduling --------------------------------------------------

    def schedule(
        self,
        delay: float,
        callback: Callable[..., Any],
        *args: Any,
    ) -> None:
        """Run *callback(*args)* after *delay* seconds.

        A call that is still pending is cancelled first, so the timer
        never holds more than one expiry.
        """
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback, args)
        logger.debug("Timer %s armed for %.3fs", self._name, delay)

    def cancel(self) -> bool:
        """Cancel the pending call.  Returns ``True`` if one was pending."""
        handle = self._handle
        if handle is None:
            return False
        self._handle = None
        handle.cancel()
        logger.debug("Timer %s cancelled", self._name)
        return True

    def _fire(self, callback: Callable[..., Any], args: tuple) -> None:
        self._handle = None
        callback(*args)

    # ---- dunder ------------------------------------------------------

    def __repr__(self) -> str:
        state = "pending" if self.pending else "idle"
        return f"SingleShotTimer({self._name!r}, {state})"
