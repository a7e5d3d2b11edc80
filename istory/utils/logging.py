"""Centralized logging configuration."""

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_default_level = "INFO"


def _build_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def configure_logging(level: str) -> None:
    """Set the default level used by loggers created afterwards.

    Already-created ``istory`` loggers are moved to the new level too, so
    calling this once at process start (API or worker) is enough.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    global _default_level
    _default_level = level.upper()
    numeric = getattr(logging, _default_level)

    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith("istory") and isinstance(logger, logging.Logger):
            logger.setLevel(numeric)
            for handler in logger.handlers:
                handler.setLevel(numeric)


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override (DEBUG, INFO, WARNING, ERROR, CRITICAL)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = getattr(logging, (level or _default_level).upper())
    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if not logger.handlers:
        logger.addHandler(_build_handler(log_level))

    return logger
