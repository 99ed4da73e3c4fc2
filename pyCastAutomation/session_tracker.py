"""Session tracker: follows the device's application and media sessions.

Every device status push names the applications currently running on
the receiver.  The tracker keeps the session of the first one and tells
its owner when a *new* session appeared (its identifier changed), when
the applications went away, and when the device stopped casting
outright (the ``applications`` field is missing from the payload).

The tracker performs no I/O.  :meth:`SessionTracker.on_device_status`
returns a :class:`StatusOutcome` describing what the owner has to do;
the supervisor then joins the new session through the control channel
and reports the resulting media handle back with :meth:`attached`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pyCastAutomation.channel import MediaHandle
from pyCastAutomation.models import (
    ApplicationInfo,
    ApplicationSession,
    MediaStatus,
    ReceiverStatus,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusOutcome:
    """What a device status push asks the owner to do.

    Attributes
    ----------
    attach:
        A new application session to join, with its transport id
        already aliased to its session id.
    stopped:
        The ``applications`` field was absent; force casting off.
    volume:
        The reported volume level (``0.0`` to ``1.0``), if any.
    """

    attach: Optional[ApplicationInfo] = None
    stopped: bool = False
    volume: Optional[float] = None


class SessionTracker:
    """Tracks the current :class:`ApplicationSession`."""

    def __init__(self) -> None:
        self._session: Optional[ApplicationSession] = None

    # ---- public properties -------------------------------------------

    @property
    def session(self) -> Optional[ApplicationSession]:
        return self._session

    @property
    def session_id(self) -> Optional[str]:
        return self._session.session_id if self._session else None

    @property
    def media(self) -> Optional[MediaHandle]:
        return self._session.media if self._session else None

    # ---- device status -----------------------------------------------

    def on_device_status(self, status: ReceiverStatus) -> StatusOutcome:
        """Interpret a device status push."""
        attach: Optional[ApplicationInfo] = None

        current = status.current_application
        if current is not None:
            if current.session_id != self.session_id:
                # Speaker groups may omit a distinct transport id; the
                # session id doubles as one so the session can be joined.
                application = current.with_transport_id(current.session_id)
                self._session = ApplicationSession(application=application)
                attach = application
                logger.debug(
                    "New application session %s (%s)",
                    application.session_id,
                    application.display_name or application.app_id,
                )
        else:
            if self._session is not None:
                logger.debug(
                    "Application session %s ended, reset media",
                    self._session.session_id,
                )
            self._session = None

        stopped = status.applications is None
        if stopped:
            logger.debug("Device reports no applications, stopped casting")

        return StatusOutcome(
            attach=attach,
            stopped=stopped,
            volume=status.volume_level,
        )

    # ---- media session -----------------------------------------------

    def attached(self, session_id: Optional[str], media: MediaHandle) -> bool:
        """Record *media* as the handle of session *session_id*.

        Returns ``False`` (and records nothing) when that session is no
        longer the tracked one.
        """
        if self._session is None or self._session.session_id != session_id:
            logger.debug(
                "Media attached for stale session %s, ignoring", session_id
            )
            return False
        self._session.media = media
        logger.debug("New media for session %s", session_id)
        return True

    def on_media_status(
        self,
        session_id: Optional[str],
        status: Optional[MediaStatus],
    ) -> Optional[bool]:
        """Derive the casting state from a media status push.

        Returns ``True`` while playing or buffering, ``False`` for any
        other player state, and ``None`` when the push carries no player
        state or belongs to a session that is no longer tracked.
        """
        if session_id != self.session_id:
            logger.debug(
                "Media status for stale session %s, ignoring", session_id
            )
            return None
        if status is None or not status.player_state:
            return None
        return status.is_active

    # ---- reset -------------------------------------------------------

    def reset(self) -> None:
        """Drop the tracked session and its media handle."""
        self._session = None
