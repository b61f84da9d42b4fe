"""
Logging utilities for the WebSocket/TCP bridge.

Every module logs through ``get_logger(__name__)``; the entry points call
``setup_logging`` once with the level from settings or the command line.
"""

import logging
import sys
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Loggers that emit hex dumps of forwarded payloads at DEBUG
SESSION_LOGGER = "wsbridge.servers.bridge_session"
RELAY_LOGGER = "wsbridge.servers.relay_server"


def format_hex(data: bytes, width: int = 16) -> str:
    """Format bytes as hex string for debug logging, one row per ``width`` bytes."""
    rows = []
    for offset in range(0, len(data), width):
        rows.append(" ".join(f"{b:02X}" for b in data[offset : offset + width]))
    return "\n".join(rows)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def level_from_name(name: str) -> int:
    """Translate a level name such as ``"debug"`` into a ``logging`` constant."""
    return getattr(logging, name.upper(), logging.INFO)


def setup_logging(level: int = logging.INFO, debug_modules: Optional[Iterable[str]] = None) -> None:
    """
    Send all records to stdout at ``level``.

    Args:
        level: Root log level
        debug_modules: Logger names forced to DEBUG (hex dumps)
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Replaces any handlers from an earlier call
    root_logger.handlers[:] = [handler]

    for module in debug_modules or ():
        logging.getLogger(module).setLevel(logging.DEBUG)
