"""Logging setup for the marketplace intelligence engine."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import LoggingConfig, get_config


def setup_logging(
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
    settings: Optional[LoggingConfig] = None,
):
    """Route loguru output to stderr and, when configured, a rotating file.

    File lines carry the process id of the run that wrote them.

    Args:
        log_level: Overrides ``logging.level``
        log_file: Overrides ``logging.file``; an empty string disables the file sink
        settings: Logging section, defaults to the global configuration
    """
    settings = settings or get_config().logging
    level = (log_level or settings.level).upper()
    log_file = settings.file if log_file is None else log_file

    logger.remove()
    logger.add(sys.stderr, format=settings.console_format, level=level, colorize=True)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=settings.file_format,
            level=level,
            rotation=settings.rotation,
            retention=settings.retention,
            compression=settings.compression,
        )

    logger.info(f"Logging at {level}" + (f", file sink {log_file}" if log_file else ""))
