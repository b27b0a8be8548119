"""
Logging setup and configuration utilities.

Library modules log through the standard ``logging`` module; applications
call ``setup_logging`` to send those records to loguru sinks (console and an
optional rotating file).
"""

import logging
import sys
from pathlib import Path
from typing import List

from loguru import logger as loguru_logger

from ..config.models import LoggingConfig


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: object = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module so loguru reports it
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage())


def setup_logging(config: LoggingConfig) -> List[int]:
    """
    Setup application logging with the given configuration.

    Args:
        config: Logging configuration

    Returns:
        Identifiers of the loguru sinks that were added
    """
    loguru_logger.remove()
    sink_ids = []

    if config.console_enabled:
        sink_ids.append(loguru_logger.add(
            sys.stderr,
            format=config.format,
            level=config.level,
            colorize=True,
            backtrace=True,
            diagnose=False
        ))

    if config.file_enabled:
        log_dir = Path(config.log_directory)
        log_dir.mkdir(parents=True, exist_ok=True)
        sink_ids.append(loguru_logger.add(
            log_dir / "tether.log",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
                   "{name}:{function}:{line} - {message}",
            level=config.level,
            rotation=config.max_file_size,
            retention=config.backup_count,
            compression="zip",
            backtrace=True,
            diagnose=False
        ))

    if config.intercept_standard_logging:
        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    return sink_ids
