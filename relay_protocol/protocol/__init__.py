"""Relay Protocol core: message record, methods and wire codec"""

from .types import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    NAME_PATTERN,
    Method,
    ErrorCode,
    is_valid_name,
)
from .exceptions import (
    ProtocolException,
    ValidationException,
    SerializationException,
)
from .messages import Message, MessageBuilder, new_message_id
from .codec import DELIMITER, FrameDecoder, encode, decode

__all__ = [
    # types
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "NAME_PATTERN",
    "Method",
    "ErrorCode",
    "is_valid_name",
    # exceptions
    "ProtocolException",
    "ValidationException",
    "SerializationException",
    # messages
    "Message",
    "MessageBuilder",
    "new_message_id",
    # codec
    "DELIMITER",
    "FrameDecoder",
    "encode",
    "decode",
]
