"""Logging configuration helpers for the Seatwatch monitor."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

LOG_DIR = os.getenv("SEATWATCH_LOG_DIR", "logs")
LOG_FILE = os.path.join(LOG_DIR, "app.log")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_FILE_LOGGING = os.getenv("SEATWATCH_LOG_TO_FILE", "1") not in {"0", "false", "False"}


def get_logger(name: str) -> logging.Logger:
    """Return a logger wired to the console and, unless disabled, a rotating file."""

    logger = logging.getLogger(name)
    logger.setLevel(DEFAULT_LEVEL)
    logger.propagate = False

    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT)

    if _FILE_LOGGING:
        os.makedirs(LOG_DIR, exist_ok=True)
        file_handler = RotatingFileHandler(
            LOG_FILE,
            maxBytes=1_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(DEFAULT_LEVEL)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(DEFAULT_LEVEL)
    logger.addHandler(console_handler)

    return logger


def set_level(level: str) -> None:
    """Apply *level* to every Seatwatch logger created so far."""

    resolved = level.upper()
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not name.startswith("seatwatch") or not isinstance(candidate, logging.Logger):
            continue
        candidate.setLevel(resolved)
        for handler in candidate.handlers:
            handler.setLevel(resolved)
