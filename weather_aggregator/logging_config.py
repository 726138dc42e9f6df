"""
Logging for weather-aggregator.

Console output goes to stdout at the chosen level. A rotating log file in the
data directory records everything at DEBUG, including the worker thread that
ran each provider request.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

LOG_FILE_NAME = "weather_aggregator.log"
DEFAULT_LEVEL = "WARNING"

# Kept at WARNING unless the console runs at DEBUG
NOISY_LOGGERS = ("urllib3", "requests_cache")

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_file: Path | str | None = None) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Console log level (DEBUG, INFO, WARNING, ERROR); unknown names fall back to INFO
        log_file: Rotating log file; no file handler when None

    Returns:
        Configured root logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger()
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=1024 * 1024, backupCount=3, encoding="utf-8"
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(file_handler)

    library_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module (typically ``__name__``)."""
    return logging.getLogger(name)


def log_file_path(data_dir: Path) -> Path | None:
    """Where the log file goes: ``LOG_FILE``, else the data directory; None if disabled."""
    if os.getenv("DISABLE_FILE_LOGGING"):
        return None
    if log_file := os.getenv("LOG_FILE"):
        return Path(log_file).expanduser()
    return data_dir / LOG_FILE_NAME


def configure_from_env(data_dir: Path, level: str | None = None) -> logging.Logger:
    """
    Configure logging for a run that keeps its documents in ``data_dir``.

    Environment variables:
        LOG_LEVEL: Console level when ``level`` is not given (default: WARNING)
        LOG_FILE: Log file path (default: <data_dir>/weather_aggregator.log)
        DISABLE_FILE_LOGGING: Set to any value to skip the log file

    Returns:
        Configured root logger
    """
    return setup_logging(
        level=level or os.getenv("LOG_LEVEL", DEFAULT_LEVEL),
        log_file=log_file_path(data_dir),
    )
