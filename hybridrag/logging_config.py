"""
Logging setup for the service process.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str | int] = None, log_format: Optional[str] = None) -> logging.Logger:
    """
    Configure root logging once for the process.

    Args:
        level: Logging level name or number (default: LOG_LEVEL env or INFO)
        log_format: Custom format string (optional)

    Returns:
        The package logger.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format=log_format or DEFAULT_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logger = logging.getLogger("hybridrag")
    logger.setLevel(level)
    return logger
