import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(name: str, log_file: Optional[str] = None, level: str = "INFO") -> logging.Logger:
    """
    Setup a logger with a console handler and an optional file handler.

    Args:
        name: Name of the logger (usually __name__)
        log_file: Path to a rotating log file, or None for console only
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)

    # Check if handlers already exist to avoid duplicates
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file, maxBytes=10*1024*1024, backupCount=5
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Failed to setup file logging to {log_file}: {e}")

    return logger


def configure_logging(level: str = "INFO", log_file: Optional[str] = None,
                      name: str = "loopguard") -> logging.Logger:
    """
    Apply a logging config section to the package logger.

    Module loggers (``logging.getLogger(__name__)``) inherit level and
    handlers from ``name``. Safe to call repeatedly: the level is always
    updated and a file handler is added once per path.
    """
    logger = setup_logger(name, log_file=log_file, level=level)

    if log_file:
        path = os.path.abspath(log_file)
        has_file = any(
            isinstance(h, RotatingFileHandler) and h.baseFilename == path
            for h in logger.handlers
        )
        if not has_file:
            try:
                file_handler = RotatingFileHandler(
                    log_file, maxBytes=10*1024*1024, backupCount=5
                )
                file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
                logger.addHandler(file_handler)
            except OSError as e:
                logger.warning(f"Failed to setup file logging to {log_file}: {e}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger configured from LOOPGUARD_LOG_LEVEL / LOOPGUARD_LOG_FILE."""
    return setup_logger(
        name,
        log_file=os.getenv("LOOPGUARD_LOG_FILE"),
        level=os.getenv("LOOPGUARD_LOG_LEVEL", "INFO"),
    )
