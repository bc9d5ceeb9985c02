"""Logging setup shared by the engine, the CLI and the TUI.

All modules log through children of the ``nexuschat`` logger. Handlers are
attached once, on the package logger only, so embedding applications keep
control of the root logger.
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "nexuschat"
DEFAULT_LEVEL = "WARNING"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def normalize_level(raw: str | int | None) -> int:
    """Convert a level name (any case) or number to a logging level.

    Unknown names fall back to WARNING.
    """
    if isinstance(raw, int):
        return raw
    candidate = str(raw or DEFAULT_LEVEL).strip().upper()
    return _LEVELS.get(candidate, logging.WARNING)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a logger inside the nexuschat hierarchy."""
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(
    level: str | int | None = None,
    console: Console | None = None
) -> logging.Logger:
    """Attach a rich console handler to the package logger.

    Safe to call more than once: the handler is only added the first time,
    later calls just adjust the level.

    Args:
        level: Level name or number; defaults to NEXUSCHAT_LOG_LEVEL or WARNING
        console: Rich console to log to (stderr by default)

    Returns:
        The configured package logger
    """
    resolved = normalize_level(level if level is not None else os.getenv("NEXUSCHAT_LOG_LEVEL"))
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(resolved)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    for handler in logger.handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(resolved)
    return logger
