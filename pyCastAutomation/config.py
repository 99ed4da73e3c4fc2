"""Accessory configuration.

An accessory is configured with the name it is shown under, the
advertised name of the cast device to follow, and an optional delay
before the motion presentation reports "stopped".  The remaining
settings tune the reconnect and discovery policy and rarely need to be
touched.

Configuration can be built directly, from a dict, or from a YAML file::

    # living-room.yaml
    name: Living Room TV
    chromecastDeviceName: Living Room
    switchOffDelay: 30000   # milliseconds

    config = load_config("living-room.yaml")

Keys are accepted in camelCase (the accessory configuration format) or
snake_case.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml

logger = logging.getLogger(__name__)

#: DNS-SD service type advertised by cast devices.
CAST_SERVICE_TYPE: str = "_googlecast._tcp.local."

#: Seconds between two reconnect attempts.
DEFAULT_RECONNECT_INTERVAL: float = 2.0

#: Consecutive reconnect attempts before falling back to re-discovery
#: (about five minutes at the default interval).
DEFAULT_MAX_RECONNECT_ATTEMPTS: int = 150

#: Seconds after which the discovery browser is restarted from scratch.
DEFAULT_REDISCOVERY_INTERVAL: float = 30 * 60.0

#: Seconds to wait for a control channel to become ready.
DEFAULT_CONNECT_TIMEOUT: float = 10.0

# camelCase key → attribute name
_KEY_ALIASES: Dict[str, str] = {
    "chromecastDeviceName": "device_name",
    "deviceName": "device_name",
    "switchOffDelay": "switch_off_delay",
    "reconnectInterval": "reconnect_interval",
    "maxReconnectAttempts": "max_reconnect_attempts",
    "rediscoveryInterval": "rediscovery_interval",
    "connectTimeout": "connect_timeout",
    "serviceType": "service_type",
}


class ConfigError(ValueError):
    """The accessory configuration is missing or invalid."""


@dataclass
class AccessoryConfig:
    """Settings for one cast accessory."""

    name: str
    device_name: str
    switch_off_delay: int = 0  # milliseconds
    reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL
    max_reconnect_attempts: int = DEFAULT_MAX_RECONNECT_ATTEMPTS
    rediscovery_interval: float = DEFAULT_REDISCOVERY_INTERVAL
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    service_type: str = CAST_SERVICE_TYPE

    def __post_init__(self) -> None:
        if not self.name or not str(self.name).strip():
            raise ConfigError("'name' must be a non-empty string")
        if not self.device_name or not str(self.device_name).strip():
            raise ConfigError(
                "'chromecastDeviceName' must be a non-empty string"
            )
        try:
            self.switch_off_delay = int(self.switch_off_delay or 0)
            self.reconnect_interval = float(self.reconnect_interval)
            self.max_reconnect_attempts = int(self.max_reconnect_attempts)
            self.rediscovery_interval = float(self.rediscovery_interval)
            self.connect_timeout = float(self.connect_timeout)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid numeric setting: {exc}") from exc

        if self.switch_off_delay < 0:
            raise ConfigError("'switchOffDelay' must not be negative")
        if self.reconnect_interval <= 0:
            raise ConfigError("'reconnectInterval' must be positive")
        if self.max_reconnect_attempts < 0:
            raise ConfigError("'maxReconnectAttempts' must not be negative")
        if self.rediscovery_interval <= 0:
            raise ConfigError("'rediscoveryInterval' must be positive")
        if self.connect_timeout <= 0:
            raise ConfigError("'connectTimeout' must be positive")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AccessoryConfig":
        """Create a config from a mapping with camelCase or snake_case keys.

        Unknown keys (e.g. an ``accessory`` type tag) are ignored.
        """
        if not isinstance(data, Mapping):
            raise ConfigError(
                f"Configuration must be a mapping, got {type(data).__name__}"
            )
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            attr = _KEY_ALIASES.get(key, key)
            if attr in known:
                kwargs[attr] = value
            else:
                logger.debug("Ignoring unknown configuration key %r", key)

        for required in ("name", "device_name"):
            if required not in kwargs:
                raise ConfigError(f"Missing required setting '{required}'")
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """Return the configuration with camelCase keys."""
        return {
            "name": self.name,
            "chromecastDeviceName": self.device_name,
            "switchOffDelay": self.switch_off_delay,
            "reconnectInterval": self.reconnect_interval,
            "maxReconnectAttempts": self.max_reconnect_attempts,
            "rediscoveryInterval": self.rediscovery_interval,
            "connectTimeout": self.connect_timeout,
            "serviceType": self.service_type,
        }


def load_config(path: Union[str, Path]) -> AccessoryConfig:
    """Load an :class:`AccessoryConfig` from a YAML file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ConfigError
        If the file is not valid YAML or the settings are invalid.
    """
    config_path = Path(path)
    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh)
    except FileNotFoundError:
        logger.critical("Configuration file not found at: %s", config_path)
        raise
    except yaml.YAMLError as exc:
        raise ConfigError(
            f"Error parsing configuration file {config_path}: {exc}"
        ) from exc

    if raw is None:
        raise ConfigError(f"Configuration file {config_path} is empty")

    config = AccessoryConfig.from_dict(raw)
    logger.info("Loaded configuration from %s", config_path)
    return config
