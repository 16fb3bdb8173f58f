"""Error types for subtitle-index.

The pipeline distinguishes fatal errors (bad configuration, unreadable
library root) from recoverable ones that only cost a single file or track.
Every error carries a category and a context dict so the CLI and the logs
can say where it happened.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from subtitle_index.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(str, Enum):
    """Categories of errors for handling decisions."""

    CONFIGURATION = "configuration"  # Bad config or root - abort the run
    EXTERNAL = "external"  # ffmpeg/ffprobe failure - skip the track
    PARSE = "parse"  # Undecodable subtitle payload - skip the track
    STORE = "store"  # Persistence failure - abort the file
    INTERNAL = "internal"  # Bug in code


class SubtitleIndexError(Exception):
    """Base exception for subtitle-index errors.

    Attributes:
        message: Human-readable error message
        category: Error category for handling
        context: Additional context information
        recoverable: Whether the pipeline can carry on past it
    """

    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        context: dict | None = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} (context: {self.context})"
        return self.message


class ConfigurationError(SubtitleIndexError):
    """Configuration error.

    Examples: unreadable root directory, invalid environment value.
    """

    category = ErrorCategory.CONFIGURATION

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=False)


class ExternalToolError(SubtitleIndexError):
    """An external tool (ffmpeg, ffprobe) failed."""

    category = ErrorCategory.EXTERNAL

    def __init__(
        self,
        message: str,
        context: dict | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message, context, recoverable=recoverable)


class FFmpegNotFoundError(ExternalToolError):
    """Raised when the FFmpeg or FFprobe executable is not found."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=False)


class ProbeError(ExternalToolError):
    """Raised when ffprobe cannot describe a file's streams."""


class DemuxError(ExternalToolError):
    """Raised when ffmpeg cannot extract a subtitle stream."""


class MarkupParseError(SubtitleIndexError):
    """Raised when a subtitle payload cannot be parsed."""

    category = ErrorCategory.PARSE

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message, context, recoverable=True)


class StoreError(SubtitleIndexError):
    """Raised when the index database cannot be opened or used."""

    category = ErrorCategory.STORE


class ErrorContext:
    """Context manager that logs a failed operation.

    With ``suppress=True`` a recoverable error is logged and swallowed,
    which is how per-track and per-file failures are isolated from their
    siblings. Errors marked not recoverable (a missing FFmpeg binary, a bad
    configuration) always propagate.
    """

    def __init__(
        self,
        operation: str,
        context: dict | None = None,
        suppress: bool = False,
        log: logging.LoggerAdapter | None = None,
    ):
        """Initialize error context.

        Args:
            operation: Name of the operation being performed
            context: Additional context to include in log records
            suppress: Swallow recoverable exceptions after logging them
            log: Logger to report through (defaults to this module's)
        """
        self.operation = operation
        self.context = context or {}
        self.suppress = suppress
        self.log = log or logger
        self.error: Exception | None = None

    def __enter__(self) -> "ErrorContext":
        self.log.debug(f"Starting operation: {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> bool:
        if exc_val is None:
            self.log.debug(f"Completed operation: {self.operation}", extra=self.context)
            return False

        if not isinstance(exc_val, Exception):
            # KeyboardInterrupt and friends always propagate.
            return False

        self.error = exc_val
        if isinstance(exc_val, SubtitleIndexError) and not exc_val.recoverable:
            return False

        self.log.warning(
            f"Error in {self.operation}: {exc_val}",
            extra={
                "operation": self.operation,
                "error_type": type(exc_val).__name__,
                **self.context,
            },
        )
        return self.suppress


def format_error_for_display(error: Exception) -> str:
    """Format an error message for user display.

    Args:
        error: Error to format

    Returns:
        Human-readable error message
    """
    if isinstance(error, SubtitleIndexError):
        category = error.category.value
        if error.context:
            context_str = ", ".join(f"{k}={v}" for k, v in error.context.items())
            return f"[{category}] {error.message} ({context_str})"
        return f"[{category}] {error.message}"

    return f"[error] {type(error).__name__}: {error}"
