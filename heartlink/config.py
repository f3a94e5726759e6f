"""Configuration file loading and defaults."""

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PATHS = (
    Path("config.toml"),
    Path("~/.config/heartlink/config.toml"),
)


@dataclass
class ServerConfig:
    """WebSocket endpoint and log verbosity."""

    host: str = "127.0.0.1"
    port: int = 8765
    broadcast_timeout: float = 0.5
    log_level: str = "INFO"


@dataclass
class BLEConfig:
    """Radio timings, all in seconds."""

    scan_timeout: float = 5.0
    connect_timeout: float = 10.0
    adapter_poll_interval: float = 5.0
    # Must stay ordered: disconnect < scan restart < session recreate
    disconnect_restart_delay: float = 0.1
    scan_restart_delay: float = 0.5
    session_recreate_delay: float = 0.6


@dataclass
class DeviceConfig:
    # Selected automatically once discovered; empty means wait for a client
    address: str = ""


@dataclass
class Config:
    server: ServerConfig = field(default_factory=ServerConfig)
    ble: BLEConfig = field(default_factory=BLEConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)


def find_config(path: Path | None = None) -> Path | None:
    """Return the config file to read, or None to use defaults.

    An explicit ``path`` is returned as is; otherwise the first existing
    file among DEFAULT_PATHS wins.
    """
    if path is not None:
        return path
    for candidate in DEFAULT_PATHS:
        candidate = candidate.expanduser()
        if candidate.exists():
            return candidate
    return None


def load_config(path: Path | None = None) -> Config:
    """Load config from file, with defaults for missing values.

    Any problem with the file (missing, malformed, unknown keys) is logged
    and the defaults are used instead.
    """
    source = find_config(path)
    if source is None:
        return Config()

    try:
        with open(source, "rb") as f:
            data = tomllib.load(f)
        config = _parse_config(data)
    except FileNotFoundError:
        logger.warning("Config file '%s' not found. Using defaults.", source)
        return Config()
    except (tomllib.TOMLDecodeError, TypeError) as e:
        logger.warning("Failed to parse config '%s': %s. Using defaults.", source, e)
        return Config()

    logger.debug("Loaded config from %s", source)
    return config


def _parse_config(data: dict) -> Config:
    """Parse TOML dict into Config dataclass.

    Uses dataclass defaults for missing values. Unknown keys raise TypeError.
    """
    return Config(
        server=ServerConfig(**data.get("server", {})),
        ble=BLEConfig(**data.get("ble", {})),
        device=DeviceConfig(**data.get("device", {})),
    )
