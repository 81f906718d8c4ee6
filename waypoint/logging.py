"""
Logging bootstrap and the shared console.

The library only ever logs through the "waypoint" logger hierarchy and never
configures handlers on its own (a NullHandler is installed on import). Front ends
call configure_logging() once to route records through rich.
"""
import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)

logging.getLogger("waypoint").addHandler(logging.NullHandler())


def get_logger(name=None, /):
    """
    Return the package logger or one of its children.

    get_logger()              -> "waypoint"
    get_logger("dispatcher")  -> "waypoint.dispatcher"
    """
    return logging.getLogger("waypoint" if not name else "waypoint." + name)


def configure_logging(level=logging.WARNING, /, *, console=console):
    """
    Attach a single RichHandler to the package logger and set its level.

    Repeated calls only update the level; the handler is installed once.
    """
    logger = get_logger()
    logger.setLevel(level)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(RichHandler(console=console, show_path=False, markup=False))
    return logger


__all__ = (
    "console",
    "get_logger",
    "configure_logging",
)
