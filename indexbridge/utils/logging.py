"""
Logging utilities for IndexBridge.

Every module logs through a child of the ``indexbridge`` package logger.
Only the package logger carries a handler; children propagate to it, so
one call to ``setup_logger`` (or the first ``get_logger``) configures the
whole library.
"""

import logging
import sys
from typing import Optional, Union


PACKAGE_LOGGER = "indexbridge"

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATE_FORMAT = "%H:%M:%S"

_configured = False


def _level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logger(
    level: Optional[Union[str, int]] = None,
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
    stream=None,
) -> logging.Logger:
    """
    Configure the package logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Log level name or number. Defaults to ``log_level`` from
            the active settings.
        format_string: Record format
        log_file: Also write records to this file
        stream: Console stream (stderr by default)

    Returns:
        The ``indexbridge`` logger
    """
    global _configured

    if level is None:
        from ..config import get_settings
        level = get_settings().log_level

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(_level(level))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    console = logging.StreamHandler(stream or sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _configured = True
    return logger


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """
    Logger for a module of the package.

    Args:
        name: Usually ``__name__`` of the calling module
    """
    if not _configured:
        setup_logger()
    return logging.getLogger(name)


def set_level(level: Union[str, int]) -> None:
    """Change the level of the package logger."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(_level(level))


class LogContext:
    """
    Temporarily change the package log level.

    Example:
        >>> with LogContext("DEBUG"):
        ...     train(index, vectors)
    """

    def __init__(self, level: Union[str, int], logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(PACKAGE_LOGGER)
        self.new_level = _level(level)
        self.old_level = self.logger.level

    def __enter__(self):
        self.logger.setLevel(self.new_level)
        return self.logger

    def __exit__(self, *args):
        self.logger.setLevel(self.old_level)
