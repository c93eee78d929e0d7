"""Logging setup for the CLI."""

from __future__ import annotations

import logging
import sys

LOGGER_NAME = "taskgraph"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def configure_logging(level: int | str = logging.WARNING) -> logging.Logger:
    """Attach exactly one handler, writing to the current stderr, to the package logger."""

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
