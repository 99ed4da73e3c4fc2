"""State projector: the externally visible casting state.

The projector owns the :class:`~pyCastAutomation.models.CastingState`
and drives two presentations of it:

* the **switch** presentation follows the casting state immediately;
* the **motion** presentation follows it too, except that the
  transition to "stopped" can be held back by a configurable off-delay.
  Occupancy-style automations then get a grace period before they see
  "no activity" (e.g. between two episodes).

Only one delayed motion update is ever pending: a new stop transition
replaces it and a start transition cancels it, so an expired delay can
never report a value that is no longer current.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional

from pyCastAutomation.models import CastingState

logger = logging.getLogger(__name__)

#: Receives the new value of a presentation.
PresentationCallback = Callable[[bool], None]


class StateProjector:
    """Derives and presents the casting state.

    Parameters
    ----------
    switch_off_delay:
        Delay in **milliseconds** before the motion presentation follows
        a stop transition.  ``0`` disables the delay.
    on_switch:
        Called with the new switch value on every transition.
    on_motion:
        Called with the new motion value (possibly delayed).
    """

    def __init__(
        self,
        switch_off_delay: int = 0,
        on_switch: Optional[PresentationCallback] = None,
        on_motion: Optional[PresentationCallback] = None,
    ) -> None:
        self._switch_off_delay = max(0, int(switch_off_delay or 0))
        self._on_switch = on_switch
        self._on_motion = on_motion
        self._state = CastingState()
        self._switch_on = False
        self._motion_detected = False

    # ---- public properties -------------------------------------------

    @property
    def is_casting(self) -> bool:
        return self._state.is_casting

    @property
    def switch_on(self) -> bool:
        """Last value pushed to the switch presentation."""
        return self._switch_on

    @property
    def motion_detected(self) -> bool:
        """Last value pushed to the motion presentation."""
        return self._motion_detected

    @property
    def motion_update_pending(self) -> bool:
        return self._state.off_delay_timer.pending

    @property
    def switch_off_delay(self) -> int:
        return self._switch_off_delay

    @property
    def volume_level(self) -> float:
        """Last known volume as a fraction (``0.0`` to ``1.0``)."""
        return self._state.volume_level

    @property
    def volume(self) -> int:
        """Last known volume on a ``0`` to ``100`` scale (rounded down)."""
        # Round away binary float noise first: 0.57 * 100 is 56.99...
        return int(math.floor(round(self._state.volume_level * 100, 6)))

    # ---- state updates -----------------------------------------------

    def update_volume(self, level: float) -> None:
        """Store a reported volume level.  Never affects casting state."""
        self._state.volume_level = float(level)

    def set_casting(self, value: bool) -> bool:
        """Apply a new casting state.

        Returns ``False`` without side effects when *value* equals the
        current state.
        """
        value = bool(value)
        if value == self._state.is_casting:
            return False

        self._state.is_casting = value
        if value:
            logger.info("Chromecast is now playing")
        else:
            logger.info("Chromecast is now stopped")

        self._present_switch(value)

        timer = self._state.off_delay_timer
        if not value and self._switch_off_delay > 0:
            timer.schedule(
                self._switch_off_delay / 1000.0, self._present_motion, value
            )
        else:
            timer.cancel()
            self._present_motion(value)
        return True

    def close(self) -> None:
        """Cancel a pending delayed motion update."""
        self._state.off_delay_timer.cancel()

    # ---- presentations -----------------------------------------------

    def _present_switch(self, value: bool) -> None:
        self._switch_on = value
        if self._on_switch is None:
            return
        try:
            self._on_switch(value)
        except Exception:  # noqa: BLE001
            logger.exception("Error in switch presentation callback")

    def _present_motion(self, value: bool) -> None:
        self._motion_detected = value
        logger.info(
            "Motion sensor %s",
            "is detecting movements" if value else "stopped detecting movements",
        )
        if self._on_motion is None:
            return
        try:
            self._on_motion(value)
        except Exception:  # noqa: BLE001
            logger.exception("Error in motion presentation callback")

    # ---- dunder ------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"StateProjector(casting={self._state.is_casting}, "
            f"volume={self.volume})"
        )
