"""Logging configuration for the cksctl package."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: str = "INFO", log_file: Optional[str] = None,
                  max_size_mb: int = 10, backup_count: int = 3) -> logging.Logger:
    """
    Configure the cksctl logger.

    Console lines are tagged INFO/WARN/ERROR. When ``log_file`` is set, the
    same records also go to a rotating file.

    Args:
        level: Logging level name
        log_file: Optional path to a log file
        max_size_mb: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured "cksctl" logger
    """
    logging.addLevelName(logging.WARNING, "WARN")
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("cksctl")
    logger.setLevel(log_level)
    logger.propagate = False

    # Replace handlers so repeated calls (tests, nested commands) don't duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        path = Path(log_file).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=path,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        logger.debug(f"Logging to file: {path}")

    # Disable debug logging for noisy libraries
    if log_level > logging.DEBUG:
        logging.getLogger('urllib3').setLevel(logging.WARNING)

    return logger
