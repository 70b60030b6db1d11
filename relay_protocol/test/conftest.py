"""Shared fixtures: an in-process hub on a free port, peers bound to it, and
a fake websocket for router tests that never touch the network."""

import asyncio
import logging
import socket

import pytest

from relay_protocol.client import Peer
from relay_protocol.hub import HubServer
from relay_protocol.protocol import decode
from relay_protocol.utils.logger import ROOT_LOGGER_NAME


class FakeWebSocket:
    """Records outbound frames in memory"""

    def __init__(self, fail: bool = False):
        self.frames = []
        self.closed = False
        self.fail = fail

    async def send(self, frame):
        if self.fail or self.closed:
            raise OSError("connection reset")
        self.frames.append(frame)

    async def close(self):
        self.closed = True

    def messages(self):
        return decode("".join(self.frames))


async def wait_until(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


def free_port() -> int:
    """A port nothing is listening on"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def fake_websocket():
    return FakeWebSocket


@pytest.fixture
def eventually():
    return wait_until


@pytest.fixture
def closed_port():
    return free_port()


@pytest.fixture
async def hub():
    server = HubServer("127.0.0.1", 0)
    await server.start()
    yield server
    await server.close()


@pytest.fixture
async def make_peer(hub):
    peers = []

    async def factory(name=None, connect=True, **kwargs):
        peer = Peer(name, hub.host, hub.port, **kwargs)
        peers.append(peer)
        if connect:
            await peer.connect()
        return peer

    yield factory

    for peer in peers:
        await peer.disconnect()


@pytest.fixture
def restore_logging():
    """Undo configure_logging() on the package logger"""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
