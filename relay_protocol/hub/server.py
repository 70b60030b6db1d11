"""Hub WebSocket server"""

from typing import Any, Dict, List, Optional

from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .manager import ConnectionManager, Connection
from .router import MessageRouter
from ..exceptions import HubError
from ..protocol import FrameDecoder, MessageBuilder
from ..utils import RelayConfig, get_logger


class HubServer:
    """Relay hub

    Accepts peer connections, keeps the name registry and routes every
    decoded message through its MessageRouter.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        config: Optional[RelayConfig] = None,
    ):
        self.config = config or RelayConfig()
        self.host = host if host is not None else self.config.hub_host
        self.port = port if port is not None else self.config.hub_port

        # core components, owned by this instance
        self.connection_manager = ConnectionManager()
        self.router = MessageRouter(self.connection_manager)

        self.server: Optional[Server] = None
        self.running = False

        self.logger = get_logger("relay_protocol.hub.server")

    async def start(self) -> None:
        """Bind and start accepting connections

        Raises:
            HubError: when the address cannot be bound
        """
        if self.running:
            self.logger.warning("Hub is already running")
            return

        try:
            self.server = await serve(
                self._handle_client,
                self.host,
                self.port,
                max_size=self.config.max_frame_size,
                ping_interval=self.config.ws_ping_interval,
                ping_timeout=self.config.ws_ping_timeout,
            )
        except OSError as e:
            self.logger.error(f"Failed to start hub on {self.host}:{self.port}: {e}")
            raise HubError(f"Could not bind {self.host}:{self.port}: {e}") from e

        # port 0 asks the OS for a free port
        sockets = list(self.server.sockets)
        if sockets:
            self.port = sockets[0].getsockname()[1]

        self.running = True
        self.logger.info(f"Hub listening on {self.host}:{self.port}")

    async def close(self, close_data: Optional[List[Any]] = None) -> None:
        """Shut the hub down

        Every registered node first receives a CLOSE carrying close_data,
        then the listener stops and remaining transports are closed.

        Args:
            close_data: parting payload for the nodes
        """
        if not self.running:
            return

        self.running = False
        delivered = await self.router.broadcast(MessageBuilder.create_close(close_data))
        self.logger.info(f"Sent CLOSE to {len(delivered)} node(s)")

        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None

        self.logger.info("Hub stopped")

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """Serve one peer connection until it closes"""
        connection = Connection(websocket, _format_address(websocket.remote_address))
        decoder = FrameDecoder(max_buffer_size=self.config.max_frame_size)
        self.logger.debug(f"New node ({connection.remote_address})")

        try:
            async for raw_message in websocket:
                for message in decoder.feed(raw_message):
                    await self.router.route(message, connection)

        except ConnectionClosed as e:
            self.logger.debug(f"Connection {connection} closed abnormally: {e}")

        finally:
            self.connection_manager.unregister_connection(connection)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "server": {
                "running": self.running,
                "host": self.host,
                "port": self.port,
            },
            "connections": self.connection_manager.get_stats(),
        }


def _format_address(address: Any) -> Optional[str]:
    if not address:
        return None
    return f"{address[0]}:{address[1]}"


async def start_hub_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    config: Optional[RelayConfig] = None,
) -> HubServer:
    """Create a hub and start it

    Returns:
        the running hub
    """
    server = HubServer(host, port, config)
    await server.start()
    return server
