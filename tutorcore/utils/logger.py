"""Logging for the tutorcore service and its orchestration components."""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional


APP_LOGGER_NAME = "tutorcore"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# httpx logs every transcription/synthesis/ask request at INFO
HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")


def _level(name: str) -> int:
    return getattr(logging, str(name).upper(), logging.INFO)


def _owned(handler: logging.Handler) -> bool:
    return getattr(handler, "_tutorcore_handler", False)


def setup_logger(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    max_bytes: int = 0,
    backup_count: int = 0
) -> logging.Logger:
    """
    Configure the tutorcore logger with a console and an optional rotating file.

    Handlers installed by an earlier call are replaced, so the import-time
    default can be reconfigured from Settings at startup. Handlers added by
    anyone else (pytest's caplog, an embedding application) are left alone.

    Args:
        log_level: Log level name
        log_file: Optional log file path; its directory is created
        max_bytes: Rotate the file at this size (0 never rotates)
        backup_count: Number of rotated files to keep

    Returns:
        The tutorcore logger
    """
    logger = logging.getLogger(APP_LOGGER_NAME)
    level = _level(log_level)
    logger.setLevel(level)

    for handler in [h for h in logger.handlers if _owned(h)]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        handler._tutorcore_handler = True
        logger.addHandler(handler)

    return logger


def init_app_logger(settings) -> logging.Logger:
    """
    Configure application logging from settings.

    Args:
        settings: Application settings instance

    Returns:
        Configured application logger
    """
    logger = setup_logger(
        log_level=settings.log_level,
        log_file=settings.log_file,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count
    )

    http_level = _level(settings.http_log_level)
    for name in HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    return logger


def get_app_logger(component: Optional[str] = None) -> logging.Logger:
    """
    Get the application logger, or the child logger of one component.

    A console-only default is installed when nothing configured logging yet.

    Args:
        component: Component name, e.g. "speech_synthesis"

    Returns:
        Logger instance
    """
    logger = logging.getLogger(APP_LOGGER_NAME)
    if not any(_owned(h) for h in logger.handlers):
        logger = setup_logger()
    return logger.getChild(component) if component else logger
