"""Logging setup with rich console output."""

import logging
from threading import RLock
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

_lock = RLock()
_handler: Optional[RichHandler] = None


def _parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def init_logging(level: str | int = "WARNING") -> None:
    """Route the ``fintrack`` loggers to a rich handler on stderr.

    Calling it again only changes the level, so commands invoked repeatedly
    in one process (as in tests) do not stack handlers.
    """
    global _handler
    numeric_level = _parse_level(level)
    with _lock:
        logger = logging.getLogger("fintrack")
        if _handler is None:
            _handler = RichHandler(
                console=Console(stderr=True),
                show_path=False,
                markup=False,
                log_time_format="%Y-%m-%d %H:%M:%S",
            )
            _handler.setFormatter(logging.Formatter("%(message)s"))
            logger.addHandler(_handler)
        _handler.setLevel(numeric_level)
        logger.setLevel(numeric_level)


def shutdown_logging() -> None:
    """Remove the handler installed by init_logging."""
    global _handler
    with _lock:
        if _handler is not None:
            logging.getLogger("fintrack").removeHandler(_handler)
            _handler = None
