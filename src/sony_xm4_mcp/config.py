"""Server configuration with defaults, loadable from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

# Sony headphones control service
SONY_SERVICE_UUID = "96CC203E-5068-46AD-B32D-E316F5E069BA"


@dataclass
class DeviceConfig:
    address: str = ""
    channel: int | None = None
    auto_connect: bool = True
    cycle_modes: list[str] = field(
        default_factory=lambda: ["noiseCancelling", "ambient", "off"]
    )


@dataclass
class SessionConfig:
    notification_cooldown_s: float = 3.0
    initial_status_delay_s: float = 0.5
    status_step_delay_s: float = 0.1
    battery_query: str = "single"  # "single" or "dual"


@dataclass
class DiscoveryConfig:
    service_uuid: str = SONY_SERVICE_UUID
    preferred_channel: int = 9
    minimum_channel: int = 2
    default_channel: int = 9


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class XM4Config:
    device: DeviceConfig = field(default_factory=DeviceConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_SECTIONS = ("device", "session", "discovery", "logging")


def load_config(path: str | Path | None = None) -> XM4Config:
    """Load config from YAML file, falling back to defaults."""
    if path is None:
        return XM4Config()

    path = Path(path)
    if not path.exists():
        log.warning("config file not found: %s, using defaults", path)
        return XM4Config()

    try:
        import yaml

        with open(path) as f:
            raw = yaml.safe_load(f) or {}

        cfg = XM4Config()
        for name in _SECTIONS:
            section = getattr(cfg, name)
            for k, v in (raw.get(name) or {}).items():
                if not hasattr(section, k):
                    log.warning("unknown config key %s.%s ignored", name, k)
                    continue
                setattr(section, k, v)

        log.info("config loaded from %s", path)
        return cfg
    except Exception as e:
        log.warning("config load error: %s, using defaults", e)
        return XM4Config()
