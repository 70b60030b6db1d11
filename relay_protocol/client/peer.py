"""Relay Protocol peer

A peer keeps one WebSocket connection to the hub, identifies itself by
name, and exchanges tell/shout messages with other peers. Replies to tells
travel back through the hub as ACKs and are matched by message id in the
peer's correlation table.

Usage:
    peer = Peer("worker_1")

    @peer.on("add")
    def add(event):
        event.reply(sum(event.args))

    await peer.connect()
    total = await peer.request("worker_2:add", 1, 2)
"""

import asyncio
import inspect
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from .correlation import CorrelationTable, ReplyHandler
from .events import Event, EventHandler, EventRegistry
from .retry import ReconnectPolicy
from ..exceptions import (
    AddressFormatError,
    ConnectError,
    InvalidNameError,
    PeerStateError,
    UnknownNodeError,
)
from ..protocol import (
    ErrorCode,
    FrameDecoder,
    Message,
    MessageBuilder,
    Method,
    encode,
    is_valid_name,
)
from ..utils import RelayConfig, get_logger


CLOSE_EVENT = "close"
ERROR_EVENT = "error"

ConnectCallback = Callable[[Optional[str]], Any]


class PeerState(Enum):
    """Peer connection lifecycle"""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    IDENTIFYING = "identifying"
    ACTIVE = "active"
    LEAVING = "leaving"


def parse_address(address: Any) -> Tuple[str, str]:
    """Split a ``node_name:event_name`` tell address

    Raises:
        AddressFormatError: unless there is exactly one separator and both
            sides are valid identifiers
    """
    if not isinstance(address, str):
        raise AddressFormatError(address)

    parts = address.split(":")
    if len(parts) != 2 or not all(is_valid_name(part) for part in parts):
        raise AddressFormatError(address)

    return parts[0], parts[1]


class ReplySink:
    """One-shot reply function attached to an inbound tell"""

    def __init__(self, peer: "Peer", destination: str, correlation_id: str):
        self._peer = peer
        self.destination = destination
        self.correlation_id = correlation_id
        self.sent = False

    def __call__(self, *args: Any) -> None:
        if self.sent:
            self._peer.logger.warning(
                f"Reply to {self.destination} ({self.correlation_id}) already sent"
            )
            return

        self._peer._send(
            MessageBuilder.create_reply(self.destination, self.correlation_id, list(args))
        )
        self.sent = True


class Peer:
    """Relay hub client"""

    def __init__(
        self,
        name: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        on_connect: Optional[ConnectCallback] = None,
        max_connect_attempts: Optional[int] = None,
        connect_backoff: Optional[float] = None,
        config: Optional[RelayConfig] = None,
    ):
        if name is None:
            name = str(uuid.uuid4())
            self.anonymous = True
        elif not isinstance(name, str):
            raise TypeError(f"Peer name must be a string, not {type(name).__name__}")
        elif not is_valid_name(name):
            raise InvalidNameError(name)
        else:
            self.anonymous = False

        self.name = name
        self.config = config or RelayConfig()
        self.host = host if host is not None else self.config.hub_host
        self.port = port if port is not None else self.config.hub_port
        self.on_connect = on_connect

        self._retry = ReconnectPolicy(
            max_connect_attempts
            if max_connect_attempts is not None
            else self.config.max_connect_attempts,
            connect_backoff if connect_backoff is not None else self.config.connect_backoff,
        )
        self._waiters = CorrelationTable()
        self._events = EventRegistry()

        self.state = PeerState.DISCONNECTED
        self._websocket: Optional[ClientConnection] = None
        self._outbox: Optional[asyncio.Queue] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._writer_task: Optional[asyncio.Task] = None
        self._ident_id: Optional[str] = None
        self._ready: Optional[asyncio.Future] = None

        self._dispatch_table: Dict[Method, Callable[[Message], None]] = {
            Method.ACK: self._handle_ack,
            Method.TELL: self._handle_tell,
            Method.SHOUT: self._handle_shout,
            Method.CLOSE: self._handle_close,
        }

        self.logger = get_logger("relay_protocol.client.peer")

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    @property
    def connected(self) -> bool:
        return self.state == PeerState.ACTIVE

    @property
    def pending_replies(self) -> int:
        return len(self._waiters)

    # ===========================================
    # Event handlers
    # ===========================================

    def on(self, event_name: str, handler: Optional[EventHandler] = None):
        """Register a handler for a local event

        Works as a plain call or as a decorator:

            @peer.on("ping")
            def ping(event):
                event.reply("pong")
        """
        if handler is not None:
            return self._events.on(event_name, handler)

        def decorator(func: EventHandler) -> EventHandler:
            return self._events.on(event_name, func)

        return decorator

    def off(self, event_name: str, handler: Optional[EventHandler] = None) -> None:
        self._events.off(event_name, handler)

    # ===========================================
    # Connection lifecycle
    # ===========================================

    def start(self) -> None:
        """Begin connecting in the background

        The outcome is reported to ``on_connect``. Calling start() while an
        attempt is pending does nothing.
        """
        if self._connect_task is not None and not self._connect_task.done():
            return
        self._connect_task = asyncio.get_running_loop().create_task(self._run())

    async def connect(self) -> None:
        """Connect and wait until the hub acknowledges the identity

        Raises:
            ConnectError: on duplicate name or when every attempt failed
        """
        if self.state == PeerState.ACTIVE:
            return

        if self._ready is None or self._ready.done():
            self._ready = asyncio.get_running_loop().create_future()
        ready = self._ready

        self.start()
        await ready

    async def _run(self) -> None:
        websocket = await self._open_transport()
        if websocket is None:
            return

        self._websocket = websocket
        self._outbox = asyncio.Queue()
        self._writer_task = asyncio.create_task(self._write_loop(websocket, self._outbox))

        try:
            self._identify()
            await self._receive_loop(websocket)
        finally:
            await self._teardown()

    async def _open_transport(self) -> Optional[ClientConnection]:
        """Connect with bounded linear backoff

        Returns:
            the open connection, or None once the attempts are used up
        """
        self._retry.reset()

        while True:
            self.state = PeerState.CONNECTING
            try:
                return await connect(
                    self.url,
                    open_timeout=self.config.ws_open_timeout,
                    max_size=self.config.max_frame_size,
                    ping_interval=self.config.ws_ping_interval,
                    ping_timeout=self.config.ws_ping_timeout,
                )
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                self.logger.debug(f"Connect to {self.url} failed: {e}")
                delay = self._retry.record_failure()
                if delay is None:
                    self.logger.error(
                        f"Node could not connect to hub at {self.url} "
                        f"after {self._retry.attempts} attempts"
                    )
                    self.state = PeerState.DISCONNECTED
                    self._finish_connect(ErrorCode.CONNECT_FAILED.value)
                    return None

                self.logger.debug(
                    f"Attempting to reconnect... (try number: {self._retry.attempts})"
                )
                await asyncio.sleep(delay)

    def _identify(self) -> None:
        self.state = PeerState.IDENTIFYING
        ident = MessageBuilder.create_ident(self.name)
        self.logger.debug(f"Sending IDENT as {self.name}")
        self._send(ident)
        self._ident_id = ident.id
        self._waiters.register(ident.id, self._handle_ident_ack)

    def _handle_ident_ack(self, error: Optional[str] = None, *_: Any) -> None:
        self._ident_id = None
        if error is None:
            self.logger.info(f"Connected to hub at {self.url} as {self.name}")
            self._finish_connect(None)
            return

        self.logger.warning(f"Hub rejected identity {self.name}: {error}")
        self._finish_connect(error)
        self._force_leave()

    def _finish_connect(self, error: Optional[str]) -> None:
        """Report the connect outcome to connect() and on_connect"""
        if error is None:
            self.state = PeerState.ACTIVE

        if self._ready is not None and not self._ready.done():
            if error is None:
                self._ready.set_result(None)
            else:
                self._ready.set_exception(ConnectError(error))

        if self.on_connect is not None:
            try:
                result = self.on_connect(error)
            except Exception as e:
                self.logger.error(f"Connect callback failed: {e}")
                return
            if inspect.isawaitable(result):
                self._events.spawn(result)

    async def _write_loop(self, websocket: ClientConnection, outbox: asyncio.Queue) -> None:
        while True:
            frame = await outbox.get()
            try:
                await websocket.send(frame)
            except ConnectionClosed:
                self.logger.debug("Transport closed, dropping outbound frames")
                return

    async def _receive_loop(self, websocket: ClientConnection) -> None:
        decoder = FrameDecoder(max_buffer_size=self.config.max_frame_size)
        try:
            async for raw_message in websocket:
                for message in decoder.feed(raw_message):
                    self._dispatch(message)

        except ConnectionClosed as e:
            if self.state != PeerState.LEAVING:
                self._emit_error(e)

    async def _teardown(self) -> None:
        if self._writer_task is not None:
            self._writer_task.cancel()
            try:
                await self._writer_task
            except asyncio.CancelledError:
                pass
            self._writer_task = None

        self._websocket = None
        self._outbox = None
        self.state = PeerState.DISCONNECTED

        # transport went away before the identity was acknowledged
        if self._ident_id is not None:
            self._waiters.pop(self._ident_id)
            self._ident_id = None
            self._finish_connect(ErrorCode.CONNECT_FAILED.value)

        self.logger.info(f"Node {self.name} disconnected from hub")

    # ===========================================
    # Outbound
    # ===========================================

    def _send(self, message: Message) -> str:
        """Queue a message for the writer task

        Returns:
            the message id

        Raises:
            PeerStateError: when there is no open transport
        """
        if self._websocket is None or self._outbox is None:
            raise PeerStateError()

        message.origin_name = self.name
        self._outbox.put_nowait(encode(message))
        self.logger.debug(f"node --> hub: {message.method.value} ({message.id})")
        return message.id

    def tell(self, address: str, *args: Any, reply: Optional[ReplyHandler] = None) -> str:
        """Send an event to one node

        Args:
            address: ``node_name:event_name``
            *args: event arguments, must be JSON-serializable
            reply: called once with the reply arguments; ``unknown-node`` is
                passed as the first argument when the node does not exist

        Returns:
            message id of the tell

        Raises:
            AddressFormatError: on a malformed address, before any I/O
            PeerStateError: when not connected
        """
        destination, event = parse_address(address)
        if reply is not None and not callable(reply):
            raise TypeError("reply must be callable")

        message = MessageBuilder.create_tell(destination, event, list(args))
        self._send(message)
        if reply is not None:
            self._waiters.register(message.id, reply)
        return message.id

    async def request(self, address: str, *args: Any) -> List[Any]:
        """Tell a node and wait for its reply

        Returns:
            the reply arguments

        Raises:
            UnknownNodeError: when the hub has no node of that name
        """
        future = asyncio.get_running_loop().create_future()

        def resolve(*reply_args: Any) -> None:
            if future.done():
                return
            # the hub's indicator, a lone string with no other arguments
            if reply_args == (ErrorCode.UNKNOWN_NODE.value,):
                future.set_exception(UnknownNodeError(address))
            else:
                future.set_result(list(reply_args))

        self.tell(address, *args, reply=resolve)
        return await future

    def shout(self, event: str, *args: Any) -> str:
        """Broadcast an event to every other node

        Returns:
            message id of the shout
        """
        if not isinstance(event, str) or not event:
            raise ValueError("Shout event name must be a non-empty string")
        return self._send(MessageBuilder.create_shout(event, list(args)))

    def leave(self, force: bool = False) -> None:
        """Leave the hub

        Args:
            force: close the transport right away instead of waiting for the
                hub to acknowledge the LEAVE
        """
        if force:
            self.logger.debug("Node force leaving")
            self._force_leave()
            return

        self.logger.debug("Node safely leaving")
        message = MessageBuilder.create_leave()
        self._send(message)
        self.state = PeerState.LEAVING
        self._waiters.register(message.id, lambda *_: self._force_leave())

    def _force_leave(self) -> None:
        websocket = self._websocket
        if websocket is None:
            # still retrying the initial connect
            if self._connect_task is not None and not self._connect_task.done():
                self._connect_task.cancel()
                self.state = PeerState.DISCONNECTED
                self._finish_connect(ErrorCode.CONNECT_FAILED.value)
            return

        self.state = PeerState.LEAVING
        self._events.spawn(websocket.close())

    async def wait_closed(self) -> None:
        """Wait until the connection task has finished"""
        if self._connect_task is not None:
            await asyncio.gather(self._connect_task, return_exceptions=True)

    async def disconnect(self) -> None:
        """Force leave and wait for the transport to close"""
        self.leave(force=True)
        await self.wait_closed()

    # ===========================================
    # Inbound
    # ===========================================

    def _dispatch(self, message: Message) -> None:
        handler = self._dispatch_table.get(message.method)
        if handler is None:
            self.logger.debug(f"Ignoring {message.method.value} from hub")
            return

        try:
            handler(message)
        except Exception as e:
            self.logger.error(f"Error handling {message.method.value} ({message.id}): {e}")

    def _handle_ack(self, message: Message) -> None:
        if not message.data or not isinstance(message.data[0], str):
            self.logger.debug(f"Malformed ACK ({message.id}), dropping")
            return

        correlation_id = message.data[0]
        args = message.data[1] if len(message.data) > 1 else []
        if not isinstance(args, list):
            args = [args]

        self.logger.debug(f"Received ACK from hub for message: {correlation_id}")
        handler = self._waiters.pop(correlation_id)
        if handler is None:
            self.logger.debug(f"No waiter for ACK {correlation_id}, dropping")
            return

        result = handler(*args)
        if inspect.isawaitable(result):
            self._events.spawn(result)

    def _handle_tell(self, message: Message) -> None:
        if len(message.data) < 4:
            self.logger.debug(f"Malformed TELL ({message.id}), dropping")
            return

        sender, correlation_id, event_name, args = message.data[:4]
        if not isinstance(args, list):
            args = [args]

        self.logger.debug(f"Received TELL({event_name}) from {sender}")
        self._events.emit(
            Event(
                name=event_name,
                args=args,
                reply=ReplySink(self, sender, correlation_id),
                sender=sender,
            )
        )

    def _handle_shout(self, message: Message) -> None:
        if not message.data or not isinstance(message.data[0], str):
            self.logger.debug(f"Malformed SHOUT ({message.id}), dropping")
            return

        self.logger.debug(f"Received SHOUT({message.data[0]})")
        self._events.emit(
            Event(
                name=message.data[0],
                args=list(message.data[1:]),
                sender=message.origin_name,
            )
        )

    def _handle_close(self, message: Message) -> None:
        self.logger.info("Received CLOSE from hub")
        self._events.emit(Event(name=CLOSE_EVENT, args=list(message.data)))

    def _emit_error(self, error: Exception) -> None:
        if self._events.has_handlers(ERROR_EVENT):
            self._events.emit(Event(name=ERROR_EVENT, args=[error]))
        else:
            self.logger.error(f"Connection to hub lost: {error}")

    # ===========================================
    # Context manager
    # ===========================================

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    def __repr__(self) -> str:
        return f"<Peer {self.name} ({self.state.value})>"
