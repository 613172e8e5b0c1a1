"""Logging for billkhata.

Every module logs under the ``billkhata`` namespace:

    from billkhata.runtime import get_logger
    logger = get_logger(__name__)

The level comes from ``BILLKHATA_LOG_LEVEL`` (DEBUG, INFO, WARNING, ERROR)
the first time a logger is requested; ``--verbose`` and the ``log_level``
setting change it afterwards through set_log_level().
"""

import logging
import os
import sys
from typing import TextIO

DEFAULT_LOG_LEVEL = logging.INFO

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

ROOT_LOGGER_NAME = "billkhata"

_LEVEL_NAMES = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_handler: logging.Handler | None = None


def parse_log_level(name: str | None, default: int = DEFAULT_LOG_LEVEL) -> int:
    """Map a level name such as ``"debug"`` to its number; unknown or empty names give ``default``."""
    if not name:
        return default
    return _LEVEL_NAMES.get(name.strip().upper(), default)


def _formatter_for(level: int) -> logging.Formatter:
    return logging.Formatter(LOG_FORMAT_DEBUG if level <= logging.DEBUG else LOG_FORMAT)


def configure_logging(level: int | None = None, stream: TextIO | None = None) -> logging.Logger:
    """
    Attach one stderr handler to the ``billkhata`` logger.

    Calling it again only adjusts the level, so repeated get_logger() calls
    never stack handlers.
    """
    global _handler

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    if _handler is not None:
        if level is not None:
            set_log_level(level)
        return root_logger

    if level is None:
        level = parse_log_level(os.environ.get("BILLKHATA_LOG_LEVEL"))

    _handler = logging.StreamHandler(stream or sys.stderr)
    _handler.setFormatter(_formatter_for(level))
    root_logger.addHandler(_handler)
    root_logger.setLevel(level)
    root_logger.propagate = False
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` (usually ``__name__``) inside the ``billkhata`` namespace."""
    configure_logging()
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_log_level(level: int) -> None:
    """Change the namespace level; DEBUG also switches to the line-number format."""
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setFormatter(_formatter_for(level))
