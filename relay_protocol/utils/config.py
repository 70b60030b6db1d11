"""Relay Protocol configuration

One dataclass holds every tunable of the hub, the peers and the logging
setup. Values come from defaults, runtime updates, or environment variables.
Precedence: environment variables > runtime updates > defaults.
"""

import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Optional, Tuple

from ..protocol.types import DEFAULT_HOST, DEFAULT_PORT


ENV_PREFIX = "RELAY_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class RelayConfig:
    """Relay Protocol configuration"""

    # Hub endpoint
    hub_host: str = DEFAULT_HOST
    hub_port: int = DEFAULT_PORT

    # WebSocket transport
    ws_ping_interval: float = 20.0
    ws_ping_timeout: float = 20.0
    ws_open_timeout: float = 10.0
    max_frame_size: int = 1024 * 1024

    # Peer connect policy
    max_connect_attempts: int = 5
    connect_backoff: float = 0.05

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    enable_rich_logging: bool = True

    custom: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "RelayConfig":
        """Build a configuration from RELAY_<FIELD> environment variables

        Returns:
            configuration with every set variable applied over the defaults

        Raises:
            ValueError: when a numeric variable cannot be parsed
        """
        config = cls()

        for f in fields(cls):
            if f.name == "custom":
                continue
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue

            default = getattr(config, f.name)
            if isinstance(default, bool):
                value: Any = _env_bool(raw)
            elif isinstance(default, int):
                value = int(raw)
            elif isinstance(default, float):
                value = float(raw)
            else:
                value = raw
            setattr(config, f.name, value)

        return config

    def update(self, **kwargs) -> None:
        """Update settings; unknown keys go to ``custom``"""
        for key, value in kwargs.items():
            if key != "custom" and hasattr(self, key):
                setattr(self, key, value)
            else:
                self.custom[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        if key != "custom" and hasattr(self, key):
            return getattr(self, key)
        return self.custom.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self) if f.name != "custom"}
        result.update(self.custom)
        return result


def parse_bind_address(
    address: Optional[str],
    default_host: str = DEFAULT_HOST,
    default_port: int = DEFAULT_PORT,
) -> Tuple[str, int]:
    """Parse a ``host:port`` bind address

    Either part may be left out (``":9000"``, ``"0.0.0.0"``); the missing
    part falls back to the default.

    Args:
        address: address string, or None for the defaults

    Returns:
        (host, port)

    Raises:
        ValueError: when the port is not a number in 0..65535
    """
    if not address:
        return default_host, default_port

    host, sep, port_str = address.rpartition(":")
    if not sep:
        # no colon at all, the whole string is the host
        return address, default_port

    host = host or default_host
    if not port_str:
        return host, default_port

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in bind address: {address!r}")
    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range in bind address: {address!r}")
    return host, port
