"""Hub connection registry"""

from enum import Enum
from typing import Any, Dict, List, Optional

from websockets.exceptions import ConnectionClosed

from ..protocol import Message, encode
from ..utils import get_logger


class ConnectionState(Enum):
    """Hub-side connection lifecycle"""

    ACCEPTED = "accepted"  # transport open, no name yet
    IDENTIFIED = "identified"  # name bound and registered
    CLOSED = "closed"  # removed from the registry


class Connection:
    """One peer's transport connection as seen by the hub"""

    def __init__(self, websocket: Any, remote_address: Optional[str] = None):
        self.websocket = websocket
        self.remote_address = remote_address
        self.name: Optional[str] = None
        self.state = ConnectionState.ACCEPTED

    @property
    def identified(self) -> bool:
        return self.state == ConnectionState.IDENTIFIED

    async def send(self, message: Message) -> bool:
        """Write one message to the peer

        Args:
            message: message to send

        Returns:
            whether the write succeeded
        """
        if self.state == ConnectionState.CLOSED:
            return False

        try:
            await self.websocket.send(encode(message))
            return True
        except (ConnectionClosed, OSError):
            self.state = ConnectionState.CLOSED
            return False

    async def close(self) -> None:
        """Close the transport"""
        self.state = ConnectionState.CLOSED
        await self.websocket.close()

    def __repr__(self) -> str:
        return f"<Connection {self.name or self.remote_address} ({self.state.value})>"


class ConnectionManager:
    """Registry mapping peer names to connections

    Owned by one HubServer. All mutation happens on the hub's event loop, so
    check-and-register in register() is atomic with respect to other
    connections.
    """

    def __init__(self):
        # name -> Connection
        self._connections: Dict[str, Connection] = {}

        self.logger = get_logger("relay_protocol.hub.manager")

    def register(self, name: str, connection: Connection) -> bool:
        """Bind a name to a connection

        Args:
            name: requested peer name
            connection: the requesting connection

        Returns:
            False when the name is already taken
        """
        if name in self._connections:
            self.logger.warning(f"Duplicate node name: {name}")
            return False

        connection.name = name
        connection.state = ConnectionState.IDENTIFIED
        self._connections[name] = connection

        self.logger.info(f"Node registered: {name}")
        return True

    def unregister(self, name: str) -> Optional[Connection]:
        """Remove a name from the registry

        Returns:
            the removed connection, or None if the name was not registered
        """
        connection = self._connections.pop(name, None)
        if connection is None:
            return None

        connection.state = ConnectionState.CLOSED
        self.logger.info(f"Node '{name}' has left, cleaning up")
        return connection

    def unregister_connection(self, connection: Connection) -> bool:
        """Remove whatever name a connection holds

        Only removes the entry if it still points at this connection, so a
        stale connection never evicts a newer holder of the same name.
        """
        name = connection.name
        if name is None or self._connections.get(name) is not connection:
            connection.state = ConnectionState.CLOSED
            return False

        self.unregister(name)
        return True

    def get_connection(self, name: str) -> Optional[Connection]:
        return self._connections.get(name)

    def get_all_connections(self) -> Dict[str, Connection]:
        """Snapshot of the registry, safe to iterate while sending"""
        return self._connections.copy()

    def names(self) -> List[str]:
        return list(self._connections)

    def __contains__(self, name: object) -> bool:
        return name in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def get_stats(self) -> Dict[str, Any]:
        return {"total": len(self._connections), "names": self.names()}
