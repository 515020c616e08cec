"""
Application Logger

Consistent logging setup for the API, the storage layer and the typing
session engine. Every module asks for a child of ``app_logger``.
"""

import sys
import logging
from typing import Optional, Union

from .config import LOG_LEVEL

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

__all__ = ["configure_logger", "get_logger", "app_logger"]


def configure_logger(
    name: str = "typespeed",
    level: Union[str, int] = logging.INFO,
    format_string: str = DEFAULT_LOG_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure a logger with a console handler and an optional file handler.

    Args:
        name: Logger name
        level: Log level (name or number)
        format_string: Log format string
        date_format: Date format string
        log_file: Optional path of a file to log to as well

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)

    # Reconfiguring replaces handlers instead of stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = logging.Formatter(format_string, date_format)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(name: str, parent: Optional[logging.Logger] = None) -> logging.Logger:
    """
    Get a logger with the specified name.

    Module names inside the package (``typespeed.x``) become children of
    ``app_logger`` so they share its handlers.
    """
    if parent:
        return parent.getChild(name)
    if name.startswith("typespeed."):
        return app_logger.getChild(name[len("typespeed."):])
    return logging.getLogger(name)


app_logger = configure_logger("typespeed", level=LOG_LEVEL)
