"""Hub message router"""

from typing import Awaitable, Callable, Dict, List, Optional

from .manager import ConnectionManager, Connection
from ..protocol import Message, MessageBuilder, Method, ErrorCode
from ..utils import get_logger


Handler = Callable[[Message, Connection], Awaitable[None]]


class MessageRouter:
    """Routes decoded inbound messages to their destinations

    Every method has one handler in the dispatch table. Methods without a
    handler (CLOSE, which only the hub sends) are ignored.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager
        self.logger = get_logger("relay_protocol.hub.router")

        self._handlers: Dict[Method, Handler] = {
            Method.IDENT: self._handle_ident,
            Method.TELL: self._handle_tell,
            Method.SHOUT: self._handle_shout,
            Method.ACK: self._handle_ack,
            Method.LEAVE: self._handle_leave,
        }

    async def route(self, message: Message, sender: Connection) -> None:
        """Route one message

        Args:
            message: decoded inbound message
            sender: connection the message arrived on
        """
        self.logger.debug(
            f"node --> hub: {message.method.value} "
            f"from {sender.name or message.origin_name or 'unidentified'}"
        )

        handler = self._handlers.get(message.method)
        if handler is None:
            self.logger.debug(f"Ignoring {message.method.value} from a node")
            return

        await handler(message, sender)

    # ===========================================
    # Method handlers
    # ===========================================

    async def _handle_ident(self, message: Message, sender: Connection) -> None:
        name = message.origin_name
        if not name:
            self.logger.warning("IDENT without a node name, ignoring")
            return

        # register before the ACK is awaited so a racing duplicate loses
        if sender.identified or not self.connection_manager.register(name, sender):
            await sender.send(
                MessageBuilder.create_ack(message.id, [ErrorCode.DUPLICATE_NODE.value])
            )
            return

        self.logger.debug(f"Sending ACK (id: {message.id})")
        await sender.send(MessageBuilder.create_ack(message.id, [None]))

    async def _handle_tell(self, message: Message, sender: Connection) -> None:
        if len(message.data) < 3:
            self.logger.warning(f"Malformed TELL (id: {message.id}), ignoring")
            return

        destination, event, args = message.data[:3]
        sender_name = sender.name or message.origin_name

        if (
            not isinstance(destination, str)
            or self.connection_manager.get_connection(destination) is None
        ):
            self.logger.debug(f"Attempting to tell a non-existent node: {destination}")
            await sender.send(
                MessageBuilder.create_ack(message.id, [ErrorCode.UNKNOWN_NODE.value])
            )
            return

        await self._send_to_node(
            destination,
            MessageBuilder.create_routed_tell(sender_name, message.id, event, args),
        )

    async def _handle_shout(self, message: Message, sender: Connection) -> None:
        forward = Message(
            Method.SHOUT,
            message.data,
            origin_name=sender.name or message.origin_name,
        )

        # the sender never hears its own shout
        delivered = await self.broadcast(forward, exclude=sender)
        self.logger.debug(f"SHOUT delivered to {len(delivered)} node(s)")

    async def _handle_ack(self, message: Message, sender: Connection) -> None:
        if len(message.data) < 3:
            self.logger.warning(f"Malformed ACK (id: {message.id}), ignoring")
            return

        destination, correlation_id, args = message.data[:3]
        if not isinstance(args, list):
            args = [args]

        if not await self._send_to_node(
            destination, MessageBuilder.create_ack(correlation_id, args)
        ):
            self.logger.debug(f"Reply for {correlation_id} dropped, {destination} is gone")

    async def _handle_leave(self, message: Message, sender: Connection) -> None:
        await sender.send(MessageBuilder.create_ack(message.id, []))
        self.connection_manager.unregister_connection(sender)
        try:
            await sender.close()
        except Exception as e:
            self.logger.debug(f"Error closing leaving node {sender.name}: {e}")

    # ===========================================
    # Delivery
    # ===========================================

    async def _send_to_node(self, name: str, message: Message) -> bool:
        """Send to a registered node, dropping it from the registry on failure"""
        if not isinstance(name, str):
            return False
        connection = self.connection_manager.get_connection(name)
        if connection is None:
            return False

        if await connection.send(message):
            return True

        self.logger.warning(f"Tried to write to dead node {name}, removing it")
        self.connection_manager.unregister_connection(connection)
        return False

    async def broadcast(
        self, message: Message, exclude: Optional[Connection] = None
    ) -> List[str]:
        """Send a message to every registered node

        Returns:
            names the message reached
        """
        delivered = []
        for name, connection in self.connection_manager.get_all_connections().items():
            if connection is exclude:
                continue
            if await self._send_to_node(name, message):
                delivered.append(name)
        return delivered
