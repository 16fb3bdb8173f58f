"""Logging for subtitle-index.

Every module logs through ``get_logger(__name__)``. Records carry their
``extra`` fields (library, file, stream and so on), which the formatter
renders as ``key=value`` pairs or as a JSON ``context`` object.

Verbosity maps onto the standard library levels:

    QUIET    errors only
    NORMAL   warnings, including skipped files and failed tracks
    VERBOSE  per-library and per-file progress
    DEBUG    per-track detail

A log file, when configured, always receives debug detail regardless of
the console verbosity.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from dataclasses import dataclass, replace
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any

ROOT_LOGGER_NAME = "subtitle_index"

# Anything on a record that is not in here arrived through ``extra``.
_STANDARD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime"}

_LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[92m",
    logging.WARNING: "\033[93m",
    logging.ERROR: "\033[91m",
    logging.CRITICAL: "\033[91m",
}
_DIM = "\033[90m"
_RESET = "\033[0m"

# Fields added by LogContext blocks; merged into every record.
_scoped_fields: ContextVar[dict[str, Any]] = ContextVar("scoped_fields", default={})


class LogLevel(IntEnum):
    """Console verbosity."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3

    @property
    def stdlib_level(self) -> int:
        return (logging.ERROR, logging.WARNING, logging.INFO, logging.DEBUG)[self]


@dataclass
class LogConfig:
    """How log records are rendered and where they go.

    Attributes:
        level: Console verbosity
        log_file: Optional file receiving every record at debug level
        json_format: One JSON object per line instead of text
        include_timestamp: Prefix records with their creation time
        include_context: Render ``extra`` fields
        color: ANSI colors on the console (ignored when not a terminal)
    """

    level: LogLevel = LogLevel.NORMAL
    log_file: Path | None = None
    json_format: bool = False
    include_timestamp: bool = True
    include_context: bool = True
    color: bool = True


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """The ``extra`` fields of a record."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _STANDARD_ATTRIBUTES
    }


class StructuredFormatter(logging.Formatter):
    """Renders records as text lines or JSON objects."""

    def __init__(
        self,
        json_format: bool = False,
        include_timestamp: bool = True,
        include_context: bool = True,
        color: bool = True,
    ):
        super().__init__()
        self.json_format = json_format
        self.include_timestamp = include_timestamp
        self.include_context = include_context
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        context = record_context(record) if self.include_context else {}
        if self.json_format:
            return self._as_json(record, context)
        return self._as_text(record, context)

    def _as_json(self, record: logging.LogRecord, context: dict[str, Any]) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_timestamp:
            payload["timestamp"] = datetime.fromtimestamp(record.created).isoformat(
                timespec="milliseconds"
            )
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        # Paths and other objects in the context are written as strings.
        return json.dumps(payload, default=str)

    def _as_text(self, record: logging.LogRecord, context: dict[str, Any]) -> str:
        level = f"{record.levelname:<7}"
        if self.color:
            level = f"{_LEVEL_COLORS.get(record.levelno, '')}{level}{_RESET}"

        parts = [level, f"{record.name.removeprefix(ROOT_LOGGER_NAME + '.')}:", record.getMessage()]
        if self.include_timestamp:
            parts.insert(0, datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S"))
        line = " ".join(parts)

        if context:
            pairs = " ".join(f"{key}={value}" for key, value in context.items())
            line += f" {_DIM}[{pairs}]{_RESET}" if self.color else f" [{pairs}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class BoundLogger(logging.LoggerAdapter):
    """Logger carrying fixed fields into every record it emits.

    Fields passed as ``extra`` on a call are merged with (and win over) the
    bound ones, as do fields from an enclosing ``LogContext``.
    """

    def __init__(self, logger: logging.Logger, fields: dict[str, Any] | None = None):
        super().__init__(logger, fields or {})

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**_scoped_fields.get(), **self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs

    def with_context(self, **fields: Any) -> "BoundLogger":
        """A logger with ``fields`` added to the bound ones."""
        return BoundLogger(self.logger, {**self.extra, **fields})


_settings = LogConfig()
_configured = False


def configure_logging(config: LogConfig | None = None) -> None:
    """(Re)build the handlers of the ``subtitle_index`` logger.

    Args:
        config: New settings; the current ones are reused when omitted
    """
    global _settings, _configured
    if config is not None:
        _settings = config

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    level = _settings.level.stdlib_level
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(
        StructuredFormatter(
            json_format=_settings.json_format,
            include_timestamp=_settings.include_timestamp,
            include_context=_settings.include_context,
            color=_settings.color and sys.stderr.isatty(),
        )
    )
    root.addHandler(console)

    if _settings.log_file is not None:
        _settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(_settings.log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(StructuredFormatter(json_format=_settings.json_format, color=False))
        root.addHandler(file_handler)
        level = logging.DEBUG

    root.setLevel(level)
    _configured = True


def get_logger(name: str) -> BoundLogger:
    """Logger for a module, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    return BoundLogger(logging.getLogger(name))


def set_verbosity(level: LogLevel) -> None:
    configure_logging(replace(_settings, level=level))


def enable_file_logging(log_file: Path) -> None:
    configure_logging(replace(_settings, log_file=log_file))


class LogContext:
    """Add fields to every record logged inside the block.

    Example:
        with LogContext(library="Movies"):
            scan_library_files(store, library, config)
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self._token = None

    def __enter__(self) -> "LogContext":
        self._token = _scoped_fields.set({**_scoped_fields.get(), **self.fields})
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        _scoped_fields.reset(self._token)


def log_operation_start(logger: logging.LoggerAdapter, operation: str, **context: Any) -> None:
    logger.info(f"Starting: {operation}", extra=context)


def log_operation_complete(
    logger: logging.LoggerAdapter,
    operation: str,
    duration: float | None = None,
    **context: Any,
) -> None:
    """Log a finished operation, with its duration in seconds if given."""
    if duration is not None:
        context["duration_seconds"] = round(duration, 2)
    logger.info(f"Completed: {operation}", extra=context)


def log_operation_failed(
    logger: logging.LoggerAdapter,
    operation: str,
    error: Exception,
    **context: Any,
) -> None:
    """Log a failed operation that the caller is recovering from."""
    context["error_type"] = type(error).__name__
    context["error_message"] = str(error)
    logger.warning(f"Failed: {operation}", extra=context)
