"""
Hub module

Central relay: connection registry, message routing, WebSocket server.
"""

from .server import HubServer, start_hub_server
from .router import MessageRouter
from .manager import ConnectionManager, Connection, ConnectionState

__all__ = [
    "HubServer",
    "start_hub_server",
    "MessageRouter",
    "ConnectionManager",
    "Connection",
    "ConnectionState",
]
