"""pyCastAutomation - Chromecast session lifecycle for home automation."""

__version__ = "0.1.0"

from pyCastAutomation.enums import (  # noqa: F401
    ACTIVE_PLAYER_STATES,
    ConnectionState,
    PlayerState,
)

from pyCastAutomation.config import (  # noqa: F401
    CAST_SERVICE_TYPE,
    AccessoryConfig,
    ConfigError,
    load_config,
)

from pyCastAutomation.models import (  # noqa: F401
    ApplicationInfo,
    ApplicationSession,
    DeviceAnnouncement,
    DeviceIdentity,
    MediaStatus,
    ReceiverStatus,
    TransitionRecord,
)

from pyCastAutomation.timers import SingleShotTimer  # noqa: F401

from pyCastAutomation.channel import (  # noqa: F401
    ChannelError,
    ChannelFactory,
    ChannelListener,
    ControlChannel,
    JoinError,
    MediaHandle,
)

from pyCastAutomation.discovery import (  # noqa: F401
    DiscoveryBrowser,
    DiscoveryWatcher,
    ZeroconfBrowser,
)

from pyCastAutomation.session_tracker import (  # noqa: F401
    SessionTracker,
    StatusOutcome,
)

from pyCastAutomation.projector import StateProjector  # noqa: F401

from pyCastAutomation.supervisor import CastSupervisor  # noqa: F401

from pyCastAutomation.cast_channel import PyChromecastChannel  # noqa: F401

from pyCastAutomation.accessory import (  # noqa: F401
    AccessoryInformation,
    CastAccessory,
)
