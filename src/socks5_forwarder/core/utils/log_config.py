"""Logging configuration for the forwarder.

This module provides centralized logging configuration using Loguru.
It sets up logging to both the console and a rotating log file. Every
record carries the ``conn`` and ``peer`` fields bound by the listener for
the connection it belongs to; records outside a connection show ``-``.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_DIR = Path.home() / ".socks5-forwarder" / "logs"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>conn={extra[conn]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | "
    "{level: <8} | "
    "conn={extra[conn]} peer={extra[peer]} | "
    "{name}:{function}:{line} - "
    "{message}"
)


def setup_logging(debug: bool = False, log_dir: Path | None = LOG_DIR) -> None:
    """Replace the default Loguru handler with console and file sinks.

    Args:
        debug: Log DEBUG records to the console as well
        log_dir: Directory of the rotating log file, ``None`` disables it
    """
    logger.remove()
    logger.configure(extra={"conn": "-", "peer": "-"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level="DEBUG" if debug else "INFO",
        backtrace=True,
        diagnose=debug,
    )

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "forwarder.log",
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format=FILE_FORMAT,
            level="DEBUG",
            backtrace=True,
            diagnose=False,
        )


__all__ = ["logger", "LOG_DIR", "setup_logging"]
