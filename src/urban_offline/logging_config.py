"""Console logging for urban_offline, rendered through rich."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER = "urban_offline"


def setup_logging(level: str = "INFO", console: Console | None = None) -> logging.Logger:
    """Attach a single RichHandler to the ``urban_offline`` logger.

    Safe to call repeatedly: an existing RichHandler is replaced rather than
    duplicated, so CLI commands can reconfigure the level per invocation.

    Args:
        level: Standard logging level name (DEBUG, INFO, WARNING, ...).
        console: Console to render to; defaults to stderr.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger
