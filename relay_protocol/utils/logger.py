"""Relay Protocol logging

Unified logging for the hub, the peers and the CLI. Console output goes
through rich when enabled; a plain stream handler is used otherwise, and a
file handler can be added on top.

Library modules only call get_logger(); handlers are attached once by
configure_logging(), normally from the CLI.
"""

import logging
import sys
from typing import Optional

from rich.logging import RichHandler


ROOT_LOGGER_NAME = "relay_protocol"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    name: Optional[str] = ROOT_LOGGER_NAME,
    level: Optional[str] = "info",
    log_file: Optional[str] = None,
    enable_rich: Optional[bool] = True,
) -> logging.Logger:
    """Set up a logger

    Args:
        name: logger name, the package root by default
        level: log level name
        log_file: optional path of a log file
        enable_rich: use rich console output

    Returns:
        the configured logger
    """
    level = (level or "INFO").upper()
    enable_rich = enable_rich if enable_rich is not None else True

    logger = logging.getLogger(name)
    logger.setLevel(level)

    # drop handlers from a previous call
    logger.handlers.clear()

    if enable_rich:
        rich_handler = RichHandler(
            rich_tracebacks=True, show_time=True, show_level=True, show_path=False
        )
        rich_handler.setLevel(level)
        logger.addHandler(rich_handler)
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Get a logger

    Child loggers (``relay_protocol.hub.router`` and so on) inherit the
    handlers installed on the package root by configure_logging().

    Args:
        name: logger name

    Returns:
        logger instance
    """
    return logging.getLogger(name)
