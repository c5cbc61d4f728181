"""Logging for cmsketch.

cmsketch is silent by default (a NullHandler on the ``cmsketch`` logger).
Nothing is printed until one of the helpers below attaches a handler.

What the library logs:

DEBUG, sketch lifecycle (``cmsketch.sketching.count_min_sketch``):
    "Created sketch 2048x5", "Cleared 2048x5 sketch",
    "Merged 1200 items into 2048x5 sketch",
    "Moved sketch 2048x5 to a new owner", "Sketch took over 2048x5 counters".

WARNING, storage repair: a counter matrix handed to a sketch had the wrong
number of rows, or a row had the wrong number of counters. The matrix is
padded or truncated to shape before use.

WARNING, degraded count: ``count`` found the matrix out of shape and
returned a best-effort value (0, or the first counter of the bad row)
instead of raising.

WARNING, analysis (``cmsketch.analysis``): an accuracy table contained
underestimates, which a healthy sketch never produces.

Every record from the sketch engine carries a ``sketch_event`` attribute
(``created``, ``cleared``, ``merged``, ``moved``, ``replaced``, ``repair``
or ``degraded_count``). JsonFormatter emits it as ``"event"``, so repairs
and fallbacks can be filtered in a log pipeline.

Example usage:
    import cmsketch

    cmsketch.enable_console_logging(level="DEBUG")
    cmsketch.enable_file_logging("sketch.log", max_bytes=10_000_000)
    cmsketch.enable_json_logging(level="WARNING")
    cmsketch.configure_from_env()

Environment variables:
    CMS_LOGGING: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    CMS_LOG_FILE: Path to log file (enables rotating file logging)
    CMS_LOG_JSON: Set to "1" for JSON output
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Literal

__all__ = [
    "configure_from_env",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_logging",
    "set_level",
    "set_module_level",
]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5

LOGGER_NAME = "cmsketch"

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class JsonFormatter(logging.Formatter):
    """Formats sketch log records as one JSON object per line.

    A row repair looks like:
        {"timestamp": "2026-01-15T10:30:00.123456+00:00", "level": "WARNING",
         "logger": "cmsketch.sketching.count_min_sketch",
         "message": "Row 2 has 3 counters, expected 8; repairing",
         "event": "repair"}

    ``event`` is present only on records that set ``sketch_event``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        event = getattr(record, "sketch_event", None)
        if event is not None:
            log_data["event"] = event

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def _get_level(level: str | int) -> int:
    """Convert a level string or int to a logging level constant."""
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def _clear_handlers() -> None:
    """Remove and close all handlers from the cmsketch logger except NullHandler."""
    logger = _get_logger()
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()


def _attach(handler: logging.Handler, level: LogLevel | int, formatter: logging.Formatter) -> None:
    logger = _get_logger()
    logger.setLevel(_get_level(level))
    handler.setLevel(_get_level(level))
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def enable_console_logging(
    level: LogLevel | int = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.StreamHandler:
    """Enable console (stderr) logging for cmsketch.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or int.
        format: Log message format string.
        date_format: Date format string for %(asctime)s.

    Returns:
        The created StreamHandler.
    """
    handler = logging.StreamHandler()
    _attach(handler, level, logging.Formatter(format, date_format))
    return handler


def enable_file_logging(
    path: str | Path,
    level: LogLevel | int = "INFO",
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    json_format: bool = False,
) -> RotatingFileHandler:
    """Enable rotating file logging for cmsketch.

    When the log file reaches max_bytes, it is renamed with a numeric suffix
    and a new file is created. Up to backup_count old files are kept.

    Args:
        path: Path to the log file. Parent directories are created automatically.
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or int.
        max_bytes: Maximum size of each log file in bytes. Default 10 MB.
        backup_count: Number of backup files to keep. Default 5.
        json_format: Write one JSON object per line instead of plain text.

    Returns:
        The created RotatingFileHandler.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    formatter = JsonFormatter() if json_format else logging.Formatter(
        DEFAULT_FORMAT, DEFAULT_DATE_FORMAT
    )
    _attach(handler, level, formatter)
    return handler


def enable_json_logging(level: LogLevel | int = "INFO") -> logging.StreamHandler:
    """Enable JSON console logging for cmsketch.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or int.

    Returns:
        The created StreamHandler with JsonFormatter.
    """
    handler = logging.StreamHandler()
    _attach(handler, level, JsonFormatter())
    return handler


def configure_from_env() -> None:
    """Configure logging from environment variables.

    Reads CMS_LOGGING, CMS_LOG_FILE and CMS_LOG_JSON. If neither a level
    nor a file is set, this function does nothing.
    """
    level = os.environ.get("CMS_LOGGING", "").upper()
    log_file = os.environ.get("CMS_LOG_FILE", "")
    use_json = os.environ.get("CMS_LOG_JSON", "") == "1"

    if not level and not log_file:
        return

    level = level or "INFO"

    if log_file:
        enable_file_logging(log_file, level=level, json_format=use_json)
    elif use_json:
        enable_json_logging(level=level)
    else:
        enable_console_logging(level=level)


def set_level(level: LogLevel | int) -> None:
    """Set the global log level for cmsketch."""
    _get_logger().setLevel(_get_level(level))


def set_module_level(module: str, level: LogLevel | int) -> None:
    """Set the log level for a specific cmsketch submodule.

    Args:
        module: Module name relative to cmsketch (e.g., "sketching.count_min_sketch").
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or int.
    """
    logging.getLogger(f"{LOGGER_NAME}.{module}").setLevel(_get_level(level))


def disable_logging() -> None:
    """Remove all handlers and silence the cmsketch logger."""
    logger = _get_logger()
    _clear_handlers()
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.CRITICAL + 1)
