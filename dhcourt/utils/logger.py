"""Utility logging setup."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_logger(
    name: str,
    log_file: Optional[str] = None,
    level: str = "INFO",
    max_size_mb: int = 10,
    backup_count: int = 5,
) -> logging.Logger:
    """
    Get configured logger instance.

    Handlers live on the top-level package logger so module loggers
    propagate to a single set of handlers.

    Args:
        name: Logger name (usually __name__)
        log_file: Optional log file path
        level: Console log level name
        max_size_mb: Rotation size for the file handler
        backup_count: Rotated files to keep

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    package_logger = logging.getLogger(name.split('.')[0])

    # Avoid adding handlers multiple times
    if package_logger.handlers:
        return logger

    console_level = getattr(logging, level.upper(), logging.INFO)
    package_logger.setLevel(logging.DEBUG if log_file else console_level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(formatter)
    package_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    return logger


def configure_logging(config) -> logging.Logger:
    """Reinstall package handlers using the logging section of a Config."""
    package_logger = logging.getLogger("dhcourt")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    return get_logger(
        "dhcourt",
        log_file=config.log_file,
        level=config.log_level,
        max_size_mb=config.log_max_size_mb,
        backup_count=config.log_backup_count,
    )
