"""Logging configuration."""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Setup logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Falls back to the LOG_LEVEL environment variable, then INFO.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        # Parent loggers of the package would print the same record twice
        logger.propagate = False

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    return logger


def set_package_level(level: str) -> None:
    """Apply a level to every logger already created under dapp_agent."""
    resolved = getattr(logging, level.upper(), logging.INFO)
    for name, existing in logging.root.manager.loggerDict.items():
        if name.startswith("dapp_agent") and isinstance(existing, logging.Logger):
            existing.setLevel(resolved)
