"""Relay Protocol message format

Defines the single wire record exchanged between peers and the hub, and a
builder with one constructor per method so the data layouts live in one
place.
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .types import Method
from .exceptions import SerializationException, ValidationException


def new_message_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Message:
    """Wire record

    Attributes:
        method: message variant
        data: ordered payload, interpreted per method
        id: unique id, used as the correlation id for replies
        origin_name: sender identity, attached right before sending
    """

    method: Method
    data: List[Any] = field(default_factory=list)
    id: str = field(default_factory=new_message_id)
    origin_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire dictionary

        Returns:
            dict with ``id``, ``method``, ``data`` and, when set, ``originName``
        """
        result = {
            "id": self.id,
            "method": self.method.value,
            "data": self.data,
        }
        if self.origin_name is not None:
            result["originName"] = self.origin_name
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Build a message from a wire dictionary

        Args:
            data: decoded JSON object

        Returns:
            Message instance

        Raises:
            ValidationException: when a field is missing or has the wrong type,
                or the method is not one of the known variants
        """
        if not isinstance(data, dict):
            raise ValidationException("Message record must be a JSON object")

        try:
            message_id = data["id"]
            method = Method(data["method"])
            payload = data["data"]
        except KeyError as e:
            raise ValidationException(f"Missing message field: {e}")
        except ValueError as e:
            raise ValidationException(f"Unrecognized method: {e}")

        origin_name = data.get("originName")

        if not isinstance(message_id, str) or not message_id:
            raise ValidationException("id must be a non-empty string")
        if not isinstance(payload, list):
            raise ValidationException("data must be an array")
        if origin_name is not None and not isinstance(origin_name, str):
            raise ValidationException("originName must be a string")

        return cls(
            method=method, data=payload, id=message_id, origin_name=origin_name
        )

    def to_json(self) -> str:
        """Serialize to a compact JSON string (no delimiter)"""
        try:
            return json.dumps(
                self.to_dict(), ensure_ascii=False, separators=(",", ":")
            )
        except (TypeError, ValueError) as e:
            raise SerializationException(f"Failed to serialize message: {e}")

    @classmethod
    def from_json(cls, json_str: str) -> "Message":
        """Parse a single JSON record (no delimiter)"""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise SerializationException(f"Invalid JSON format: {e}")
        return cls.from_dict(data)


class MessageBuilder:
    """Message constructors, one per wire layout"""

    @staticmethod
    def create_ident(name: str) -> Message:
        """IDENT, the name travels in originName"""
        return Message(Method.IDENT, [], origin_name=name)

    @staticmethod
    def create_tell(destination: str, event: str, args: List[Any]) -> Message:
        """TELL as sent by a peer: [destination, event, args]"""
        return Message(Method.TELL, [destination, event, list(args)])

    @staticmethod
    def create_routed_tell(
        sender: Optional[str], correlation_id: str, event: str, args: List[Any]
    ) -> Message:
        """TELL as forwarded by the hub: [sender, correlation_id, event, args]"""
        return Message(Method.TELL, [sender, correlation_id, event, args])

    @staticmethod
    def create_shout(event: str, args: List[Any]) -> Message:
        """SHOUT: [event, *args]"""
        return Message(Method.SHOUT, [event, *args])

    @staticmethod
    def create_reply(destination: str, correlation_id: str, args: List[Any]) -> Message:
        """ACK as sent by a peer answering a tell: [destination, correlation_id, args]"""
        return Message(Method.ACK, [destination, correlation_id, list(args)])

    @staticmethod
    def create_ack(correlation_id: str, args: List[Any]) -> Message:
        """ACK as delivered by the hub: [correlation_id, args]"""
        return Message(Method.ACK, [correlation_id, list(args)])

    @staticmethod
    def create_leave() -> Message:
        return Message(Method.LEAVE, [])

    @staticmethod
    def create_close(close_data: Optional[List[Any]] = None) -> Message:
        """CLOSE carrying the hub's parting payload"""
        if not isinstance(close_data, (list, tuple)):
            close_data = []
        return Message(Method.CLOSE, list(close_data))
