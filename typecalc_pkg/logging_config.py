"""Structured logging for typecalc.

Records go to the ``typecalc`` logger tree. Buffer and evaluator records
may carry context through ``extra`` (commit generation, buffer version,
error code); the formatter appends those as ``key=value`` pairs.
"""

import logging
import sys
from datetime import datetime
from typing import Optional

from .config import LOG_FILE, LOG_LEVEL

LOGGER_NAME = "typecalc"

# Attributes a record may carry via ``extra``, in output order
CONTEXT_FIELDS = ("generation", "version", "error_code")


class StructuredFormatter(logging.Formatter):
    """``timestamp [LEVEL] name: message key=value ...`` lines."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds")
        context = " ".join(
            f"{field}={getattr(record, field)}"
            for field in CONTEXT_FIELDS
            if getattr(record, field, None) is not None
        )
        line = f"{timestamp} [{record.levelname}] {record.name}: {record.getMessage()}"
        if context:
            line = f"{line} {context}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = LOG_LEVEL, log_file: Optional[str] = LOG_FILE
) -> logging.Logger:
    """Configure the ``typecalc`` logger.

    Args:
        level: Logging level name; unknown names fall back to WARNING
        log_file: Optional path that receives the same records as stderr

    Returns:
        The package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    logger.handlers.clear()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for one package module, e.g. ``get_logger("buffer")``."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
