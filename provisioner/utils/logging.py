"""
Logging configuration and utilities.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional


DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_root_logger(log_file: Optional[Path] = None,
                     level: str = "INFO",
                     format_string: Optional[str] = None,
                     max_file_size_mb: int = 10,
                     backup_count: int = 5) -> logging.Logger:
    """
    Set up the root logger for the application.

    Args:
        log_file: Optional log file path
        level: Logging level
        format_string: Log format string
        max_file_size_mb: Rotate the log file at this size
        backup_count: Number of rotated files to keep

    Returns:
        The root logger
    """
    root_logger = logging.getLogger()

    # Clear any existing handlers
    root_logger.handlers.clear()

    root_logger.setLevel(getattr(logging, level.upper()))

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("asyncio").setLevel(logging.WARNING)

    return root_logger


def log_banner(logger: logging.Logger, title: str, lines, width: int = 60) -> None:
    """Log ``lines`` between ruled separators, as used for the end-of-run summary."""
    logger.info("=" * width)
    logger.info(title)
    logger.info("=" * width)
    for line in lines:
        logger.info(line)
    logger.info("=" * width)
