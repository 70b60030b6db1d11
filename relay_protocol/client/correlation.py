"""Reply correlation table

Maps the id of an outstanding message to the one-shot handler waiting for
its ACK. An entry is removed before its handler runs, so a handler fires at
most once even if the hub delivers a stray second ACK.
"""

from typing import Any, Callable, Dict, Optional


ReplyHandler = Callable[..., Any]


class CorrelationTable:
    """Pending replies keyed by message id"""

    def __init__(self):
        self._waiters: Dict[str, ReplyHandler] = {}

    def register(self, message_id: str, handler: ReplyHandler) -> None:
        """Wait for the ACK of message_id

        Raises:
            ValueError: when the id already has a pending handler
        """
        if message_id in self._waiters:
            raise ValueError(f"Message id already pending: {message_id}")
        self._waiters[message_id] = handler

    def pop(self, message_id: str) -> Optional[ReplyHandler]:
        """Remove and return the handler for message_id, if any"""
        return self._waiters.pop(message_id, None)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._waiters

    def __len__(self) -> int:
        return len(self._waiters)
