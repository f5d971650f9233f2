"""
Logging setup with a Rich console handler.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_console: Optional[Console] = None


def get_console() -> Console:
    """Get the shared Rich console used for tables and log output."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def setup_logging(level: str = "INFO") -> None:
    """Route the ``gpubench`` loggers through Rich.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("gpubench")
    logger.handlers.clear()
    logger.setLevel(log_level)
    logger.propagate = False

    handler = RichHandler(
        console=get_console(),
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    handler.setLevel(log_level)
    logger.addHandler(handler)
