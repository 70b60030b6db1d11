#!/usr/bin/env python3
"""
Relay Protocol demo

Starts a hub and three peers in one process:
- a calculator peer answering "add" tells
- a client peer sending requests, including one to a missing node
- a listener peer receiving shouts
"""

import argparse
import asyncio
import sys
from pathlib import Path

# make the package importable when run from a checkout
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from relay_protocol import (
    Peer,
    UnknownNodeError,
    configure_logging,
    get_logger,
    start_hub_server,
)


async def run_demo(port: int) -> None:
    logger = get_logger("relay_protocol.demo")

    hub = await start_hub_server("127.0.0.1", port)
    logger.info(f"Hub started on port {hub.port}")

    calculator = Peer("calculator", hub.host, hub.port)
    client = Peer("client", hub.host, hub.port)
    listener = Peer(None, hub.host, hub.port)

    @calculator.on("add")
    def add(event):
        logger.info(f"calculator: add{tuple(event.args)} from {event.sender}")
        event.reply(sum(event.args))

    @listener.on("news")
    def news(event):
        logger.info(f"listener: {event.sender} shouted {event.args}")

    try:
        for peer in (calculator, client, listener):
            await peer.connect()

        total = await client.request("calculator:add", 1, 2, 3)
        logger.info(f"client: 1 + 2 + 3 = {total[0]}")

        try:
            await client.request("nobody:add", 1)
        except UnknownNodeError as e:
            logger.info(f"client: {e.message}")

        client.shout("news", "the calculator is up")
        await asyncio.sleep(0.2)

    finally:
        await hub.close(["demo finished"])
        for peer in (calculator, client, listener):
            await peer.wait_closed()


def main() -> None:
    parser = argparse.ArgumentParser(description="Relay Protocol demo")
    parser.add_argument("--port", type=int, default=0, help="hub port (default: any free port)")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    configure_logging(level=args.log_level)
    asyncio.run(run_demo(args.port))


if __name__ == "__main__":
    main()
