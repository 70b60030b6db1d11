"""Local event delivery for peers"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ..utils import get_logger


@dataclass
class Event:
    """Envelope handed to every event handler

    Attributes:
        name: event name
        args: event arguments
        reply: one-shot reply sink, set for events delivered by a tell
        sender: name of the originating node, when known
    """

    name: str
    args: List[Any] = field(default_factory=list)
    reply: Optional[Callable[..., None]] = None
    sender: Optional[str] = None


EventHandler = Callable[[Event], Any]


class EventRegistry:
    """Event name -> handler list

    Handlers may be plain functions or coroutine functions. Coroutines run
    as tasks so a handler can await a reply without blocking delivery of
    that reply.
    """

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._tasks: Set[asyncio.Task] = set()
        self.logger = get_logger("relay_protocol.client.events")

    def on(self, name: str, handler: EventHandler) -> EventHandler:
        self._handlers.setdefault(name, []).append(handler)
        return handler

    def off(self, name: str, handler: Optional[EventHandler] = None) -> None:
        """Remove one handler, or every handler of the event"""
        if handler is None:
            self._handlers.pop(name, None)
            return

        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._handlers.pop(name, None)

    def handlers(self, name: str) -> List[EventHandler]:
        return list(self._handlers.get(name, []))

    def has_handlers(self, name: str) -> bool:
        return bool(self._handlers.get(name))

    def emit(self, event: Event) -> int:
        """Deliver an event to its handlers

        Returns:
            number of handlers invoked
        """
        handlers = self.handlers(event.name)
        for handler in handlers:
            try:
                result = handler(event)
            except Exception as e:
                self.logger.error(f"Handler for '{event.name}' failed: {e}")
                continue

            if inspect.isawaitable(result):
                self.spawn(result)

        return len(handlers)

    def spawn(self, awaitable: Awaitable) -> asyncio.Future:
        """Run an awaitable in the background, logging its failure"""
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(f"Background task failed: {exc}")

    async def drain(self) -> None:
        """Wait for running coroutine handlers"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
