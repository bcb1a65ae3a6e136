"""
Logging for the storefront core.

Everything logs under the ``storefront`` namespace to stdout. The level comes
from ``LOG_LEVEL`` and can be changed later with ``configure_logging`` (the
API server does this on startup).
"""
import logging
import os
import sys
from typing import Optional

ROOT_NAME = "storefront"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger(ROOT_NAME)


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach the stdout handler once and (re)apply the level."""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
    # Avoid duplicate lines through the root logger
    logger.propagate = False
    return logger


configure_logging()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Child logger, e.g. ``get_logger("cart.store")`` -> ``storefront.cart.store``."""
    if name:
        return logging.getLogger(f"{ROOT_NAME}.{name}")
    return logger
