"""
Logging configuration for the receipt scan pipeline.

Usage:
    from receipt_scan_pipeline.logging import get_logger
    logger = get_logger(__name__)

Library modules only ask for loggers; output goes nowhere until an
application (the receipt-scan command) calls configure_logging().

Environment variables:
    RECEIPT_SCAN_LOG_LEVEL: DEBUG, INFO, WARNING or ERROR. Default: INFO
"""

import logging
import os
import sys
from typing import Optional

ROOT_LOGGER_NAME = "receipt_scan_pipeline"
DEFAULT_LOG_LEVEL = logging.INFO

LOG_FORMAT = "%(levelname)s [%(name)s] %(message)s"
LOG_FORMAT_DEBUG = "%(levelname)s [%(name)s:%(lineno)d] %(message)s"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
}

_logging_configured = False

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


def _level_from_env() -> int:
    value = os.environ.get("RECEIPT_SCAN_LOG_LEVEL", "").upper().strip()
    return _LEVELS.get(value, DEFAULT_LOG_LEVEL)


def configure_logging(level: Optional[int] = None) -> None:
    """
    Attach a stderr handler to the package logger once.

    Later calls with an explicit level only change the level.
    """
    global _logging_configured

    if _logging_configured:
        if level is not None:
            _set_level(level)
        return

    if level is None:
        level = _level_from_env()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT_DEBUG if level == logging.DEBUG else LOG_FORMAT))

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    root_logger.propagate = False

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package namespace.

    Module names already inside the package are used as-is.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def _set_level(level: int) -> None:
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT_DEBUG if level == logging.DEBUG else LOG_FORMAT))
