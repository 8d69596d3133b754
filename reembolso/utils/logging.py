"""
Logging utilities for Reembolso.

Rules:
- NEVER log passwords, access/refresh tokens or the Supabase key
- NEVER log receipt file contents
- Log high-level events ("Profile resolved", "Expense created") and ids
"""

import logging
from typing import Optional, Union

from reembolso.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str, level: Optional[Union[int, str]] = None) -> logging.Logger:
    """
    Get a logger for `name` with a stream handler attached once.

    Args:
        name: Module name (typically __name__)
        level: Logging level; defaults to LOG_LEVEL from settings

    Usage:
        >>> from reembolso.utils.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Session restored")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level if level is not None else settings.LOG_LEVEL.upper())

    # Handler attached once; records also propagate to the root config in main.py
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    return logger
