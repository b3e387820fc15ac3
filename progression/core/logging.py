"""Loguru sink configuration."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from config import get_settings

_configured = False


def configure_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Replace loguru's default sink with the configured stderr/file sinks."""
    global _configured
    settings = get_settings()
    level = level or settings.log_level
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level=level, rotation="10 MB", retention=5, enqueue=True)
    _configured = True


def ensure_logging() -> None:
    """Configure logging once per process."""
    if not _configured:
        configure_logging()
