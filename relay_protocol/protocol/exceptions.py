"""Relay Protocol codec exceptions

Errors raised while turning wire records into messages and back. The codec
catches these per record, so they never reach the hub or peer loops.
"""


class ProtocolException(Exception):
    """Base class for protocol-level errors"""

    pass


class ValidationException(ProtocolException):
    """Raised when a record does not have the shape of a message"""

    pass


class SerializationException(ProtocolException):
    """Raised when a record cannot be serialized or parsed as JSON"""

    pass
