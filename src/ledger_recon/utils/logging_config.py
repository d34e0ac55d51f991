"""Logging setup for the ledger_recon package logger."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "ledger_recon"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    log_format: Optional[str] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Configure the package logger.

    The console handler logs at ``level``; the optional rotating file handler
    logs at DEBUG regardless.

    Args:
        level: Console logging level (e.g., logging.DEBUG, logging.INFO)
        log_file: Optional path of a rotating log file
        log_format: Console format string
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files kept

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else level)

    # Reconfiguring replaces handlers rather than stacking them
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(log_format or DEFAULT_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)
        logger.debug(f"Logging to file: {log_file}")

    return logger
