"""
Relay Protocol Exceptions

Local exception classes. Errors never cross the wire as exceptions; the hub
only sends plain indicator strings inside ACK data (see ErrorCode).
"""


class RelayProtocolError(Exception):
    """Base Relay Protocol exception"""

    def __init__(self, message: str, error_code: str = "RELAY000", details: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert to dictionary format"""
        return {
            "error_code": self.error_code,
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


# Connection errors
class ConnectError(RelayProtocolError):
    """The peer could not join the hub

    ``reason`` holds the wire indicator, e.g. ``duplicate-node`` or
    ``connect-failed``.
    """

    def __init__(self, reason: str, details: dict = None):
        super().__init__(f"Could not join hub: {reason}", "CONN001", details)
        self.reason = reason


class PeerStateError(RelayProtocolError):
    """Operation needs an open transport but the peer has none"""

    def __init__(self, message: str = "Peer is not connected", details: dict = None):
        super().__init__(message, "CONN002", details)


# API misuse
class AddressFormatError(RelayProtocolError, ValueError):
    """Tell address is not ``name:event``"""

    def __init__(self, address, details: dict = None):
        super().__init__(
            f"Invalid tell address {address!r}, expected 'node_name:event_name'",
            "API001",
            details,
        )
        self.address = address


class InvalidNameError(RelayProtocolError, ValueError):
    """Peer name does not match the identifier pattern"""

    def __init__(self, name, details: dict = None):
        super().__init__(f"Invalid peer name: {name!r}", "API002", details)
        self.name = name


class UnknownNodeError(RelayProtocolError):
    """The hub has no node registered under the addressed name"""

    def __init__(self, address, details: dict = None):
        super().__init__(f"No node for tell address {address!r}", "API003", details)
        self.address = address


# Hub errors
class HubError(RelayProtocolError):
    """Hub failed to start or bind"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "HUB001", details)
