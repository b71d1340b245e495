"""Logging setup for DocFlow.

Modules log through ``logging.getLogger(__name__)``. ``setup_logger`` attaches
handlers once to the ``docflow`` package logger, so every module shares the
same output.
"""

import logging
import logging.handlers
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logger(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    name: str = "docflow",
) -> logging.Logger:
    """Configure the package logger from application settings.

    Args:
        level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL (any case)
        log_dir: Also write a rotating ``<name>.log`` here when given
        name: Logger to configure

    Returns:
        The configured logger
    """
    level_name = level.upper()
    if level_name not in LEVELS:
        raise ValueError(f"Invalid log level: {level}. Must be one of: {', '.join(LEVELS)}")

    logger = logging.getLogger(name)
    logger.setLevel(level_name)

    # Already configured by an earlier call
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                os.path.join(log_dir, f"{name}.log"),
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
            )
        )

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
