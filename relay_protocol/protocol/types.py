"""Relay Protocol type definitions

Method and error-indicator enums shared by the hub and the peers, plus the
identifier pattern that peer names and event names must match.
"""

import re
from enum import Enum


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8221

# Peer names and tell event names
NAME_PATTERN = re.compile(r"^[\w-]+$")


class Method(Enum):
    """Message method

    The closed set of variants a wire record can carry.
    """

    IDENT = "IDENT"
    TELL = "TELL"
    SHOUT = "SHOUT"
    ACK = "ACK"
    CLOSE = "CLOSE"
    LEAVE = "LEAVE"


class ErrorCode(Enum):
    """Error indicators

    Errors cross the wire only as these plain strings inside ACK data.
    """

    DUPLICATE_NODE = "duplicate-node"
    UNKNOWN_NODE = "unknown-node"
    # never sent by the hub, handed to the connect callback locally
    CONNECT_FAILED = "connect-failed"


def is_valid_name(name: object) -> bool:
    """Check a peer or event name against NAME_PATTERN"""
    return isinstance(name, str) and NAME_PATTERN.fullmatch(name) is not None
