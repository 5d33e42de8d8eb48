"""Centralized logging configuration."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_PACKAGE_PREFIX = "bodymetrics"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = (level or "INFO").upper()
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Avoid duplicate handlers when modules are re-imported
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)
        logger.propagate = False

    return logger


def set_package_log_level(level: str) -> None:
    """Apply a log level to every logger created for this package.

    Module loggers are created at import time with the default level, before
    settings are available, so the application entry point calls this once
    the configured level is known.

    Args:
        level: Log level name (e.g. "DEBUG")
    """
    resolved = getattr(logging, level.upper(), logging.INFO)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith(_PACKAGE_PREFIX) and isinstance(logger, logging.Logger):
            logger.setLevel(resolved)
