"""
Logger Factory

Creates module loggers that write to the console and to a rotating log file.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

from stock_ledger.config import LOG_LEVEL, LOG_PATH

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_handlers = None


def _build_handlers():
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    handlers = [console_handler]

    if LOG_PATH:
        log_dir = os.path.dirname(LOG_PATH)
        try:
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(LOG_PATH, maxBytes=5 * 1024 * 1024, backupCount=3)
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as e:
            console_handler.stream.write(f"Unable to open log file {LOG_PATH}: {e}\n")

    return handlers


def create_logger(name: str) -> logging.Logger:
    """
    Create (or fetch) a named logger wired to the shared handlers.

    Args:
        name: Logger name, usually the module's __name__

    Returns:
        logging.Logger: Configured logger
    """
    global _handlers

    if _handlers is None:
        _handlers = _build_handlers()

    logger = logging.getLogger(name)

    if not logger.handlers:
        for handler in _handlers:
            logger.addHandler(handler)
        logger.setLevel(LOG_LEVEL.upper())
        logger.propagate = False

    return logger
