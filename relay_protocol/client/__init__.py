"""
Client module

Peer-side connection, identity, correlation and local event delivery.
"""

from .peer import Peer, PeerState, ReplySink, parse_address, CLOSE_EVENT, ERROR_EVENT
from .events import Event, EventHandler, EventRegistry
from .correlation import CorrelationTable, ReplyHandler
from .retry import ReconnectPolicy

__all__ = [
    "Peer",
    "PeerState",
    "ReplySink",
    "parse_address",
    "CLOSE_EVENT",
    "ERROR_EVENT",
    "Event",
    "EventHandler",
    "EventRegistry",
    "CorrelationTable",
    "ReplyHandler",
    "ReconnectPolicy",
]
