"""Loguru setup for pincer processes."""

import sys
from pathlib import Path

from loguru import logger

from pincer.config.schema import Config


def configure_logger(config: Config) -> None:
    """Route loguru output to stderr and, when enabled, a rotating file."""
    settings = config.logging
    logger.remove()
    logger.add(sys.stderr, level=settings.level)

    if not settings.file_enabled:
        return

    log_file = Path(settings.file_path).expanduser()
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"File logging disabled ({log_file}): {e}")
        return
    logger.add(
        log_file,
        level=settings.level,
        rotation=settings.rotation,
        retention=settings.retention,
        enqueue=True,
    )
