"""Logging setup built on rich."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "cwharness"

# Logs go to stderr so stdout stays clean for command output
console = Console(stderr=True)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a rich handler to the package logger.

    Calling it again only changes the level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
