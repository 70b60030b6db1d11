"""relay-hub: run a hub until SIGINT/SIGTERM"""

import argparse
import asyncio
import signal
from typing import List, Optional

from .. import __version__
from ..exceptions import HubError
from ..hub import HubServer
from ..protocol import DEFAULT_HOST, DEFAULT_PORT
from ..utils import RelayConfig, configure_logging, get_logger, parse_bind_address


DEFAULT_BIND = f"{DEFAULT_HOST}:{DEFAULT_PORT}"

logger = get_logger("relay_protocol.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="relay-hub", description="Relay Protocol hub server"
    )
    parser.add_argument(
        "-b",
        "--bridge",
        nargs="?",
        const=DEFAULT_BIND,
        default=None,
        metavar="HOST:PORT",
        help=f"run a hub (default bind address {DEFAULT_BIND})",
    )
    parser.add_argument("--log-level", default=None, help="log level (default INFO)")
    parser.add_argument("--version", action="version", version=__version__)
    return parser


async def run_hub(host: str, port: int, config: Optional[RelayConfig] = None) -> int:
    """Serve until a termination signal arrives

    Returns:
        process exit status
    """
    hub = HubServer(host, port, config)
    try:
        await hub.start()
    except HubError as e:
        logger.error(str(e))
        return 1

    logger.info(f"Hub is now listening on {hub.host}:{hub.port}")

    stop_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}, closing hub...")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler, sig)
        except NotImplementedError:
            # Windows, fall back to KeyboardInterrupt in main()
            logger.debug(f"Signal handlers not supported for {sig.name}")

    try:
        await stop_event.wait()
    finally:
        await hub.close()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.bridge is None:
        parser.print_help()
        return 0

    config = RelayConfig.from_env()
    if args.log_level:
        config.log_level = args.log_level

    configure_logging(
        level=config.log_level,
        log_file=config.log_file,
        enable_rich=config.enable_rich_logging,
    )

    try:
        host, port = parse_bind_address(args.bridge, config.hub_host, config.hub_port)
    except ValueError as e:
        parser.error(str(e))

    try:
        return asyncio.run(run_hub(host, port, config))
    except KeyboardInterrupt:
        return 0
