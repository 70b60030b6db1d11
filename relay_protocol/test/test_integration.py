"""End-to-end scenarios against a real hub on a free local port"""

import asyncio

import pytest
from websockets.asyncio.client import connect

from relay_protocol import create_hub, create_peer
from relay_protocol.client import CLOSE_EVENT, ERROR_EVENT, Peer, PeerState
from relay_protocol.exceptions import (
    AddressFormatError,
    ConnectError,
    HubError,
    PeerStateError,
    UnknownNodeError,
)
from relay_protocol.hub import HubServer
from relay_protocol.protocol import FrameDecoder, MessageBuilder, Method, encode


async def receive(websocket, count, decoder=None):
    decoder = decoder or FrameDecoder()
    messages = []
    while len(messages) < count:
        raw = await asyncio.wait_for(websocket.recv(), 2)
        messages.extend(decoder.feed(raw))
    return messages


# ===========================================
# Identity
# ===========================================


async def test_connect_registers_name(hub, make_peer):
    peer = await make_peer("alice")

    assert peer.connected
    assert peer.state == PeerState.ACTIVE
    assert "alice" in hub.connection_manager


async def test_anonymous_peer(hub, make_peer):
    peer = await make_peer()
    assert peer.anonymous
    assert peer.name in hub.connection_manager


async def test_duplicate_name_rejected(hub, make_peer, eventually):
    """Second holder of a name gets duplicate-node and the registry keeps
    the first one"""
    first = await make_peer("dup")
    outcomes = []
    second = await make_peer("dup", connect=False, on_connect=outcomes.append)

    with pytest.raises(ConnectError) as exc_info:
        await second.connect()

    assert exc_info.value.reason == "duplicate-node"
    assert outcomes == ["duplicate-node"]
    await eventually(lambda: second.state == PeerState.DISCONNECTED)

    assert len(hub.connection_manager) == 1
    assert first.connected
    assert hub.connection_manager.get_connection("dup").name == "dup"


async def test_on_connect_success(make_peer, eventually):
    outcomes = []
    peer = await make_peer("alice", connect=False, on_connect=outcomes.append)

    peer.start()
    peer.start()

    await eventually(lambda: outcomes == [None])
    assert peer.connected


async def test_connect_failed_after_retries(closed_port):
    outcomes = []
    peer = Peer(
        "lonely",
        "127.0.0.1",
        closed_port,
        on_connect=outcomes.append,
        max_connect_attempts=3,
        connect_backoff=0.01,
    )

    with pytest.raises(ConnectError) as exc_info:
        await peer.connect()

    assert exc_info.value.reason == "connect-failed"
    assert outcomes == ["connect-failed"]
    assert peer._retry.attempts == 3
    assert peer.state == PeerState.DISCONNECTED


async def test_force_leave_while_retrying(closed_port):
    """Leaving during the first connect fails connect() instead of
    cancelling the caller"""
    outcomes = []
    peer = Peer(
        "lonely",
        "127.0.0.1",
        closed_port,
        on_connect=outcomes.append,
        max_connect_attempts=50,
        connect_backoff=0.05,
    )
    connecting = asyncio.create_task(peer.connect())
    await asyncio.sleep(0.05)

    peer.leave(force=True)

    with pytest.raises(ConnectError) as exc_info:
        await connecting
    assert exc_info.value.reason == "connect-failed"
    assert not connecting.cancelled()
    assert outcomes == ["connect-failed"]

    await peer.wait_closed()
    assert peer.state == PeerState.DISCONNECTED


# ===========================================
# Tell / reply
# ===========================================


async def test_tell_and_reply(make_peer, eventually):
    alice = await make_peer("alice")
    bob = await make_peer("bob")
    received = []

    @bob.on("add")
    def add(event):
        received.append(event)
        event.reply(sum(event.args))

    replies = []
    alice.tell("bob:add", 1, 2, reply=lambda *args: replies.append(args))

    await eventually(lambda: replies)
    await asyncio.sleep(0.05)

    assert replies == [(3,)]
    assert received[0].sender == "alice"
    assert received[0].args == [1, 2]
    assert alice.pending_replies == 0


async def test_request_with_coroutine_handler(make_peer):
    alice = await make_peer("alice")
    bob = await make_peer("bob")

    @bob.on("echo")
    async def echo(event):
        await asyncio.sleep(0.01)
        event.reply(*event.args)

    assert await alice.request("bob:echo", "hi", {"n": 1}) == ["hi", {"n": 1}]


async def test_tell_without_reply_handler(make_peer, eventually):
    alice = await make_peer("alice")
    bob = await make_peer("bob")
    received = []
    bob.on("note", received.append)

    alice.tell("bob:note", "fire and forget")

    await eventually(lambda: received)
    assert alice.pending_replies == 0


async def test_unknown_node(make_peer):
    alice = await make_peer("alice")
    with pytest.raises(UnknownNodeError) as exc_info:
        await alice.request("ghost:ping")
    assert exc_info.value.address == "ghost:ping"
    assert alice.pending_replies == 0


async def test_unknown_node_reaches_tell_callback(make_peer, eventually):
    alice = await make_peer("alice")
    replies = []
    alice.tell("ghost:ping", reply=lambda *args: replies.append(args))

    await eventually(lambda: replies)
    assert replies == [("unknown-node",)]


async def test_unhandled_event_leaves_request_pending(make_peer):
    alice = await make_peer("alice")
    await make_peer("bob")

    alice.tell("bob:nobody_listens", reply=lambda *args: None)
    await asyncio.sleep(0.1)

    assert alice.pending_replies == 1


async def test_bad_address_fails_before_io(make_peer):
    alice = await make_peer("alice")
    with pytest.raises(AddressFormatError):
        alice.tell("bob", 1)
    assert alice.pending_replies == 0


# ===========================================
# Shout
# ===========================================


async def test_shout_reaches_everyone_but_sender(make_peer, eventually):
    a = await make_peer("a")
    b = await make_peer("b")
    c = await make_peer("c")
    seen = {"a": [], "b": [], "c": []}
    for peer in (a, b, c):
        peer.on("news", seen[peer.name].append)

    a.shout("news", 1, "x")

    await eventually(lambda: seen["b"] and seen["c"])
    await asyncio.sleep(0.05)

    assert seen["a"] == []
    for name in ("b", "c"):
        [event] = seen[name]
        assert event.args == [1, "x"]
        assert event.sender == "a"


# ===========================================
# Leave / close / disconnect
# ===========================================


async def test_leave_removes_name(hub, make_peer, eventually):
    peer = await make_peer("leaver")
    peer.leave()

    await eventually(lambda: "leaver" not in hub.connection_manager)
    await eventually(lambda: peer.state == PeerState.DISCONNECTED)
    with pytest.raises(PeerStateError):
        peer.shout("news")


async def test_force_leave(hub, make_peer, eventually):
    errors = []
    peer = await make_peer("quitter")
    peer.on(ERROR_EVENT, errors.append)

    peer.leave(force=True)
    await peer.wait_closed()

    await eventually(lambda: "quitter" not in hub.connection_manager)
    assert errors == []


async def test_hub_close_broadcasts(hub, make_peer, eventually):
    closes = {}
    peers = [await make_peer("p1"), await make_peer("p2")]
    for peer in peers:
        closes[peer.name] = []
        peer.on(CLOSE_EVENT, closes[peer.name].append)

    await hub.close(["bye"])

    await eventually(lambda: all(closes.values()))
    for name in ("p1", "p2"):
        assert closes[name][0].args == ["bye"]
    for peer in peers:
        await eventually(lambda: peer.state == PeerState.DISCONNECTED)


async def test_abnormal_close_emits_error(hub, make_peer, eventually):
    peer = await make_peer("victim")
    errors = []
    peer.on(ERROR_EVENT, errors.append)

    hub.connection_manager.get_connection("victim").websocket.transport.abort()

    await eventually(lambda: errors)
    await eventually(lambda: "victim" not in hub.connection_manager)
    assert peer.state == PeerState.DISCONNECTED


async def test_context_manager(hub):
    async with Peer("ctx", hub.host, hub.port) as peer:
        assert peer.connected
        assert "ctx" in hub.connection_manager
    assert peer.state == PeerState.DISCONNECTED


# ===========================================
# Raw wire behaviour
# ===========================================


async def test_records_batched_and_split(hub):
    """The hub reassembles records regardless of transport chunking"""
    async with connect(f"ws://{hub.host}:{hub.port}") as websocket:
        decoder = FrameDecoder()

        ident = MessageBuilder.create_ident("raw")
        tell = MessageBuilder.create_tell("ghost", "ping", [])
        tell.origin_name = "raw"

        frame = encode(ident) + "garbage\0" + encode(tell)
        await websocket.send(frame[:9])
        await websocket.send(frame[9:])

        ack_ident, ack_tell = await receive(websocket, 2, decoder)
        assert ack_ident.data == [ident.id, [None]]
        assert ack_tell.method == Method.ACK
        assert ack_tell.data == [tell.id, ["unknown-node"]]


async def test_second_ident_on_same_connection(hub):
    async with connect(f"ws://{hub.host}:{hub.port}") as websocket:
        await websocket.send(encode(MessageBuilder.create_ident("raw")))
        await receive(websocket, 1)

        again = MessageBuilder.create_ident("raw_2")
        await websocket.send(encode(again))
        [ack] = await receive(websocket, 1)

        assert ack.data == [again.id, ["duplicate-node"]]
        assert hub.connection_manager.names() == ["raw"]


async def test_simultaneous_idents_for_one_name(hub):
    """Two IDENTs for one name racing on separate connections: one wins"""
    url = f"ws://{hub.host}:{hub.port}"
    async with connect(url) as first, connect(url) as second:
        idents = [MessageBuilder.create_ident("same") for _ in range(2)]
        await asyncio.gather(
            first.send(encode(idents[0])),
            second.send(encode(idents[1])),
        )
        replies = await asyncio.gather(receive(first, 1), receive(second, 1))

        for ident, [ack] in zip(idents, replies):
            assert ack.data[0] == ident.id
        outcomes = sorted(ack.data[1][0] or "ok" for [ack] in replies)
        assert outcomes == ["duplicate-node", "ok"]
        assert hub.connection_manager.names() == ["same"]


async def test_transport_close_unregisters(hub, eventually):
    async with connect(f"ws://{hub.host}:{hub.port}") as websocket:
        await websocket.send(encode(MessageBuilder.create_ident("raw")))
        await receive(websocket, 1)
        assert "raw" in hub.connection_manager

    await eventually(lambda: "raw" not in hub.connection_manager)


# ===========================================
# Hub lifecycle
# ===========================================


async def test_bind_failure(hub):
    other = HubServer(hub.host, hub.port)
    with pytest.raises(HubError):
        await other.start()
    assert not other.running


async def test_factories():
    hub = create_hub("127.0.0.1", 0)
    await hub.start()
    try:
        peer = create_peer("made", hub.host, hub.port)
        await peer.connect()
        assert hub.get_stats()["connections"]["names"] == ["made"]
        await peer.disconnect()
    finally:
        await hub.close()
    assert not hub.running
