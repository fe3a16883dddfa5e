"""
Application Logger

Single shared logger for the provider resolution core.
Rich console output when attached to a terminal, plain records otherwise.
"""

import logging
import os

from rich.logging import RichHandler

LOGGER_NAME = "langbridge"


def _resolve_level() -> str:
    """Read the log level from settings, falling back to the environment"""
    try:
        from config import settings
        return settings.LOG_LEVEL
    except ImportError:
        return os.environ.get("LOG_LEVEL", "INFO")


def setup_logger(level: str = None) -> logging.Logger:
    """
    Configure and return the shared logger.

    Safe to call more than once; handlers are only attached the first time.
    """
    log = logging.getLogger(LOGGER_NAME)
    log.setLevel((level or _resolve_level()).upper())

    if not log.handlers:
        handler = RichHandler(
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        log.addHandler(handler)
        log.propagate = False

    return log


logger = setup_logger()
