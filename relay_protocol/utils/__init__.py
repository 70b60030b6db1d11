"""Relay Protocol utilities

- configuration (RelayConfig, parse_bind_address)
- logging (configure_logging, get_logger)
"""

from .config import RelayConfig, parse_bind_address
from .logger import configure_logging, get_logger

__all__ = [
    # configuration
    "RelayConfig",
    "parse_bind_address",
    # logging
    "configure_logging",
    "get_logger",
]
