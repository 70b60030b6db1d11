"""
Relay Protocol - Python SDK

Minimal message relay: peers discover each other by name through a central
hub, exchange tell/reply requests and receive shout broadcasts.
"""

__version__ = "1.0.0"
__description__ = "Minimal name-based message relay over a single hub"

# Protocol core
from .protocol import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    Method,
    ErrorCode,
    Message,
    MessageBuilder,
    FrameDecoder,
    encode,
    decode,
)

# Peers
from .client import Peer, PeerState, Event, CorrelationTable, ReconnectPolicy

# Hub
from .hub import HubServer, ConnectionManager, MessageRouter, start_hub_server

# Utilities
from .utils import RelayConfig, configure_logging, get_logger

# Exceptions
from .exceptions import (
    RelayProtocolError,
    ConnectError,
    PeerStateError,
    AddressFormatError,
    InvalidNameError,
    HubError,
    UnknownNodeError,
)

__all__ = [
    # Version info
    "__version__",
    "__description__",
    # Protocol core
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "Method",
    "ErrorCode",
    "Message",
    "MessageBuilder",
    "FrameDecoder",
    "encode",
    "decode",
    # Peers
    "Peer",
    "PeerState",
    "Event",
    "CorrelationTable",
    "ReconnectPolicy",
    # Hub
    "HubServer",
    "ConnectionManager",
    "MessageRouter",
    "start_hub_server",
    # Utils
    "RelayConfig",
    "configure_logging",
    "get_logger",
    # Exceptions
    "RelayProtocolError",
    "ConnectError",
    "PeerStateError",
    "AddressFormatError",
    "InvalidNameError",
    "HubError",
    "UnknownNodeError",
    # Factories
    "create_hub",
    "create_peer",
]


def get_version() -> str:
    """Get the current version of the Relay Protocol SDK."""
    return __version__


def create_hub(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, **kwargs) -> HubServer:
    """Create a new hub instance (call ``await hub.start()`` to listen)."""
    return HubServer(host, port, **kwargs)


def create_peer(name=None, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT, **kwargs) -> Peer:
    """Create a new peer (call ``await peer.connect()`` or ``peer.start()``)."""
    return Peer(name, host, port, **kwargs)


# Aliases
Hub = HubServer
Node = Peer
