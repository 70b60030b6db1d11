"""Relay Protocol wire codec

Each message is serialized to compact JSON and terminated by a single null
character. Several records may share one transport read, and one record may
be split across reads; FrameDecoder buffers the incomplete tail until its
delimiter arrives.

Records that fail to parse are logged and dropped. Corruption never escapes
the codec.
"""

from typing import List, Optional, Union

from .messages import Message
from .exceptions import ProtocolException
from ..utils.logger import get_logger


DELIMITER = "\0"
_DELIMITER_BYTE = DELIMITER.encode("ascii")

logger = get_logger("relay_protocol.protocol.codec")


def encode(message: Message) -> str:
    """Serialize a message into one delimiter-terminated frame

    Raises:
        SerializationException: when the data is not JSON-serializable
    """
    return message.to_json() + DELIMITER


def _parse_record(record: bytes) -> Optional[Message]:
    try:
        return Message.from_json(record.decode("utf-8"))
    except UnicodeDecodeError as e:
        logger.debug(f"Dropping record with invalid UTF-8: {e}")
        return None
    except ProtocolException as e:
        logger.debug(f"Dropping malformed record: {e}")
        return None


class FrameDecoder:
    """Stateful frame decoder for one transport connection

    The buffer holds UTF-8 bytes. Records are split on the NUL byte first
    and only complete records are decoded, so a multi-byte character cut
    across two reads is rejoined before decoding.
    """

    def __init__(self, max_buffer_size: Optional[int] = None):
        self.max_buffer_size = max_buffer_size
        self._buffer = b""

    @property
    def pending(self) -> int:
        """Size in bytes of the buffered, still incomplete record"""
        return len(self._buffer)

    def feed(self, chunk: Union[str, bytes, bytearray]) -> List[Message]:
        """Add a chunk read from the transport

        Args:
            chunk: text or UTF-8 bytes as received

        Returns:
            every complete, well-formed message now available, in order
        """
        if isinstance(chunk, str):
            chunk = chunk.encode("utf-8", errors="surrogatepass")

        self._buffer += bytes(chunk)
        *records, self._buffer = self._buffer.split(_DELIMITER_BYTE)

        if self.max_buffer_size is not None and len(self._buffer) > self.max_buffer_size:
            logger.warning(
                f"Discarding {len(self._buffer)} buffered bytes, "
                f"record exceeds {self.max_buffer_size}"
            )
            self._buffer = b""

        messages = []
        for record in records:
            if not record:
                continue
            message = _parse_record(record)
            if message is not None:
                messages.append(message)
        return messages

    def reset(self) -> None:
        self._buffer = b""


def decode(buffer) -> List[Message]:
    """Decode one or more concatenated frames

    A trailing record without its delimiter is incomplete and is not
    returned. Use FrameDecoder to keep it for the next read.
    """
    return FrameDecoder().feed(buffer)
