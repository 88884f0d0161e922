"""Logging utilities built on top of :mod:`loguru`."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "fleetsim.<cyan>{name}</cyan>:{line} - <level>{message}</level>"
)


def setup_logging(log_file: Optional[Path] = None, level: str = "INFO") -> None:
    """Configure the global loguru logger for the simulator.

    Args:
        log_file: Optional file path for a rotating log sink (uncoloured).
        level: Minimum log level (string understood by loguru).
    """

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level=level, format=LOG_FORMAT, colorize=False, rotation="10 MB", retention="7 days")
    logger.debug("Logging configured (level={}, file={})", level, log_file)


__all__ = ["setup_logging", "logger", "LOG_FORMAT"]
