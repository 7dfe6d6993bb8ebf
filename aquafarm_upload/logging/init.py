from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Application logging for upload runs.

Every line is "<LABEL> <message>" on stdout (INFO, WARN, ERROR, SUMMARY).
Module loggers are created with logging.getLogger(__name__) and sit below the
"aquafarm_upload" logger, so configuring that one logger covers the wizard,
the mapper and the database backend alike.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "set_debug",
    "log_summary",
    "reset_logging",
]

LOGGER_NAME = "aquafarm_upload"

# INFO(20) < SUMMARY < WARNING(30)
SUMMARY_LEVEL = 25

_app_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Render records as "LABEL message" without timestamps."""

    LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        SUMMARY_LEVEL: "SUMMARY",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LABELS.get(record.levelno, record.levelname)
        return f"{label} {record.getMessage()}"


def setup_logging(level: int = logging.INFO, stream: TextIO | None = None) -> logging.Logger:
    """Configure the "aquafarm_upload" logger once and return it.

    Later calls return the same logger untouched until reset_logging().
    """
    global _app_logger
    if _app_logger is not None:
        return _app_logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(level)
    for old in list(app_logger.handlers):
        app_logger.removeHandler(old)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    app_logger.addHandler(handler)
    # root には流さない (二重出力防止)
    app_logger.propagate = False

    _app_logger = app_logger
    return app_logger


def get_logger() -> logging.Logger:
    return _app_logger if _app_logger is not None else setup_logging()


def set_debug(app_logger: logging.Logger) -> None:
    """Lower the logger and its handlers to DEBUG (--debug)."""
    app_logger.setLevel(logging.DEBUG)
    for h in app_logger.handlers:
        h.setLevel(logging.DEBUG)


def log_summary(message: str) -> None:
    """Emit one SUMMARY line (the label is added by the formatter)."""
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger so the next setup_logging() rebuilds it (tests)."""
    global _app_logger
    _app_logger = None
