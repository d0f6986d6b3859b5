# =============================================================================
# core/logger.py — Centralized Logging Utility
#
# Every module logs through a named logger from get_logger():
#   console   → level from config.LOG_CONSOLE_LEVEL (INFO unless overridden)
#   log file  → DEBUG, one file per day under config.LOGS_DIR
#               (disabled with MONITOR_LOG_TO_FILE=0)
# =============================================================================

import logging
import os
from datetime import datetime

import config

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Loggers handed out so far; set_console_level() walks this list
_loggers = []


def _console_handler(formatter: logging.Formatter) -> logging.StreamHandler:
    ch = logging.StreamHandler()
    ch.setLevel(logging.getLevelName(config.LOG_CONSOLE_LEVEL))
    ch.setFormatter(formatter)
    return ch


def _file_handler(formatter: logging.Formatter) -> logging.FileHandler:
    os.makedirs(config.LOGS_DIR, exist_ok=True)
    log_filename = datetime.now().strftime("monitor_%Y%m%d.log")
    fh = logging.FileHandler(os.path.join(config.LOGS_DIR, log_filename), encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    return fh


def get_logger(name: str) -> logging.Logger:
    """
    Returns a named logger that writes to the console and a dated log file.
    Usage:  from core.logger import get_logger
            log = get_logger(__name__)
            log.info("Message")
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger  # Avoid adding duplicate handlers

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=config.LOG_DATE_FORMAT)
    logger.addHandler(_console_handler(formatter))
    if config.LOG_TO_FILE:
        logger.addHandler(_file_handler(formatter))

    _loggers.append(logger)
    return logger


def set_console_level(level: int) -> None:
    """Change the console verbosity of every monitor logger (e.g. --debug)."""
    for logger in _loggers:
        for handler in logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)
