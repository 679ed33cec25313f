"""Logging setup for the mirror process."""

import logging
import sys
from typing import Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: Union[str, int] = logging.INFO, debug: bool = False) -> logging.Logger:
    """Send ``aptsync`` log records to stderr.

    ``debug`` forces DEBUG regardless of ``level``. Calling this again
    replaces the handler instead of adding a second one.
    """
    logger = logging.getLogger("aptsync")
    _reset_handlers(logger)
    logger.setLevel(logging.DEBUG if debug else _resolve_level(level))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logger


def _resolve_level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def _reset_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
