"""Logging configuration for the gateway.

Logging goes through Loguru: a colored console sink on stderr and a rotating
file sink under ``LOG_DIR``. Library code never calls ``configure_logging``;
the command line does, once, at startup. Per-connection records carry the
``peer`` and ``conn_id`` fields bound by the request handler.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_DIR = Path.home() / ".socks5-gateway" / "logs"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<magenta>{extra[peer]}</magenta> <level>{message}</level>"
)
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | "
    "{level: <8} | "
    "{name}:{function}:{line} - "
    "[{extra[conn_id]}] {extra[peer]} {message}"
)


def configure_logging(level: str = "INFO", log_file: Path | None = LOG_DIR / "gateway.log") -> None:
    """Replace Loguru's default handler with the gateway's sinks.

    Args:
        level: Minimum level for the console sink
        log_file: Rotating log file, or None to log to the console only
    """
    logger.remove()  # Remove default handler
    logger.configure(extra={"peer": "-", "conn_id": "-"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level,
        backtrace=True,
        diagnose=level == "DEBUG",
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            rotation="10 MB",
            retention="1 week",
            compression="zip",
            format=FILE_FORMAT,
            level="DEBUG",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )


__all__ = ["LOG_DIR", "configure_logging", "logger"]
