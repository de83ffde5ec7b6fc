"""
Logging configuration for Feed Digest.

Uses loguru with a console sink and a rotating file sink.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger

from feed_digest.config import get_config


def setup_logger(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Replace loguru's default handler with the configured sinks.

    Rotation, retention and format always come from the logging config.

    Args:
        level: Log level (default from config)
        log_file: Path to log file (default from config)
    """
    log_config = get_config().logging
    level = level or log_config.level

    _logger.remove()

    if log_config.console_enabled:
        _logger.add(sys.stderr, format=log_config.format, level=level, colorize=True, diagnose=False)

    if log_config.file_enabled:
        log_file = log_file or log_config.file_path
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _logger.add(
            log_file,
            format=log_config.format,
            level=level,
            rotation=log_config.rotation,
            retention=log_config.retention,
            compression="zip",
            encoding="utf-8",
            enqueue=True,  # scheduler jobs log from worker threads
            diagnose=False,
        )


def get_logger(name: Optional[str] = None):
    """Get the shared logger, with the module name bound when given."""
    if name:
        return _logger.bind(name=name)
    return _logger
