"""Tests for error handling and logging modules."""

import json
import logging
from unittest.mock import Mock

import pytest

from subtitle_index.errors import (
    ConfigurationError,
    DemuxError,
    ErrorCategory,
    ErrorContext,
    ExternalToolError,
    FFmpegNotFoundError,
    MarkupParseError,
    ProbeError,
    StoreError,
    SubtitleIndexError,
    format_error_for_display,
)
from subtitle_index.logging import (
    ROOT_LOGGER_NAME,
    LogConfig,
    LogContext,
    LogLevel,
    StructuredFormatter,
    configure_logging,
    enable_file_logging,
    get_logger,
    log_operation_complete,
    log_operation_failed,
    log_operation_start,
    set_verbosity,
)


@pytest.fixture
def reset_logging():
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers:
        handler.close()
    configure_logging(LogConfig())


def make_record(msg="Test message", level=logging.INFO):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestSubtitleIndexError:
    """Tests for SubtitleIndexError base class."""

    def test_basic_error(self):
        error = SubtitleIndexError("Test error")

        assert str(error) == "Test error"
        assert error.message == "Test error"
        assert error.context == {}
        assert error.recoverable is False
        assert error.category == ErrorCategory.INTERNAL

    def test_error_with_context(self):
        error = SubtitleIndexError("Test error", context={"file": "a.mkv"})

        assert "context: {'file': 'a.mkv'}" in str(error)


class TestSpecificErrors:
    """Tests for specific error types."""

    def test_configuration_error_is_fatal(self):
        error = ConfigurationError("Root missing")

        assert error.category == ErrorCategory.CONFIGURATION
        assert error.recoverable is False

    @pytest.mark.parametrize("cls", [ProbeError, DemuxError])
    def test_tool_failures_are_recoverable(self, cls):
        error = cls("ffmpeg exited with code 1")

        assert isinstance(error, ExternalToolError)
        assert error.category == ErrorCategory.EXTERNAL
        assert error.recoverable is True

    def test_missing_binary_is_fatal(self):
        error = FFmpegNotFoundError("FFprobe not found")

        assert isinstance(error, ExternalToolError)
        assert error.recoverable is False

    def test_parse_and_store(self):
        assert MarkupParseError("bad").category == ErrorCategory.PARSE
        assert StoreError("locked").category == ErrorCategory.STORE


class TestErrorContext:
    """Tests for ErrorContext context manager."""

    def test_success(self):
        with ErrorContext("index track") as ctx:
            pass

        assert ctx.error is None

    def test_propagates_by_default(self):
        with pytest.raises(DemuxError):
            with ErrorContext("index track"):
                raise DemuxError("timed out")

    def test_suppress_records_error(self):
        with ErrorContext("index track", suppress=True) as ctx:
            raise DemuxError("timed out")

        assert isinstance(ctx.error, DemuxError)

    def test_missing_binary_never_suppressed(self):
        with pytest.raises(FFmpegNotFoundError):
            with ErrorContext("index file", suppress=True) as ctx:
                raise FFmpegNotFoundError("FFprobe not found")

        assert isinstance(ctx.error, FFmpegNotFoundError)

    def test_keyboard_interrupt_never_suppressed(self):
        with pytest.raises(KeyboardInterrupt):
            with ErrorContext("index file", suppress=True):
                raise KeyboardInterrupt()

    def test_failure_logged_with_context(self, caplog):
        with caplog.at_level(logging.WARNING, logger=ROOT_LOGGER_NAME):
            with ErrorContext("index track", context={"stream": 3}, suppress=True):
                raise DemuxError("timed out")

        record = next(r for r in caplog.records if "index track" in r.getMessage())
        assert record.stream == 3
        assert record.error_type == "DemuxError"

    def test_reports_through_given_logger(self, caplog):
        log = get_logger("subtitle_index.extraction").with_context(file="film.mkv")

        with caplog.at_level(logging.WARNING, logger=ROOT_LOGGER_NAME):
            with ErrorContext("extract track", suppress=True, log=log):
                raise DemuxError("timed out")

        record = caplog.records[-1]
        assert record.name == "subtitle_index.extraction"
        assert record.file == "film.mkv"


class TestFormatErrorForDisplay:
    """Tests for format_error_for_display function."""

    def test_format_index_error(self):
        error = ProbeError("Invalid data", context={"path": "a.mkv"})
        formatted = format_error_for_display(error)

        assert formatted == "[external] Invalid data (path=a.mkv)"

    def test_format_generic_error(self):
        formatted = format_error_for_display(ValueError("Test error"))

        assert "[error]" in formatted
        assert "ValueError" in formatted


# Logging Tests

class TestLogLevel:
    """Tests for LogLevel enum."""

    def test_levels(self):
        assert LogLevel.QUIET == 0
        assert LogLevel.NORMAL == 1
        assert LogLevel.VERBOSE == 2
        assert LogLevel.DEBUG == 3


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_text_format(self):
        formatter = StructuredFormatter(
            json_format=False,
            include_timestamp=False,
            include_context=False,
            color=False,
        )

        formatted = formatter.format(make_record())

        assert "INFO" in formatted
        assert "Test message" in formatted

    def test_json_format(self):
        formatter = StructuredFormatter(json_format=True, include_timestamp=False)
        record = make_record()
        record.library = "Movies"

        parsed = json.loads(formatter.format(record))

        assert parsed["level"] == "info"
        assert parsed["message"] == "Test message"
        assert parsed["context"] == {"library": "Movies"}

    def test_json_unserializable_context(self):
        formatter = StructuredFormatter(json_format=True, include_timestamp=False)
        record = make_record()
        record.root = object()

        parsed = json.loads(formatter.format(record))

        assert isinstance(parsed["context"]["root"], str)

    def test_context_in_text(self):
        formatter = StructuredFormatter(
            json_format=False,
            include_timestamp=False,
            include_context=True,
            color=False,
        )
        record = make_record()
        record.file = "film.mkv"

        assert "file=film.mkv" in formatter.format(record)


class TestConfigureLogging:
    """Tests for configure_logging and friends."""

    def test_verbose_level(self, reset_logging):
        configure_logging(LogConfig(level=LogLevel.VERBOSE))

        assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.INFO

    def test_set_verbosity(self, reset_logging):
        set_verbosity(LogLevel.QUIET)

        assert logging.getLogger(ROOT_LOGGER_NAME).level == logging.ERROR

    def test_file_logging_captures_detail(self, tmp_path, reset_logging):
        log_file = tmp_path / "logs" / "scan.log"
        enable_file_logging(log_file)

        get_logger("subtitle_index.test_file").debug("Per-track detail")

        root = logging.getLogger(ROOT_LOGGER_NAME)
        for handler in root.handlers:
            handler.flush()
        assert "Per-track detail" in log_file.read_text(encoding="utf-8")


class TestBoundLogger:
    """Tests for bound logger context."""

    def test_with_context(self, caplog):
        logger = get_logger("subtitle_index.test_bound").with_context(library="Movies")

        with caplog.at_level(logging.WARNING, logger=ROOT_LOGGER_NAME):
            logger.warning("Library missing", extra={"path": "/media/Movies"})

        record = caplog.records[-1]
        assert record.library == "Movies"
        assert record.path == "/media/Movies"


class TestLogContext:
    """Tests for LogContext context manager."""

    def test_adds_and_removes_attributes(self, caplog):
        logger = get_logger("subtitle_index.test_context")

        with caplog.at_level(logging.WARNING, logger=ROOT_LOGGER_NAME):
            with LogContext(file="film.mkv"):
                logger.warning("inside")
            logger.warning("outside")

        inside, outside = caplog.records[-2:]
        assert inside.file == "film.mkv"
        assert not hasattr(outside, "file")


class TestLogOperationHelpers:
    """Tests for log operation helper functions."""

    def test_log_operation_start(self):
        logger = Mock()
        log_operation_start(logger, "scan", library="Movies")

        call_args = logger.info.call_args
        assert "Starting" in call_args[0][0]
        assert call_args[1]["extra"]["library"] == "Movies"

    def test_log_operation_complete(self):
        logger = Mock()
        log_operation_complete(logger, "scan", duration=5.5)

        call_args = logger.info.call_args
        assert "Completed" in call_args[0][0]
        assert call_args[1]["extra"]["duration_seconds"] == 5.5

    def test_log_operation_failed(self):
        logger = Mock()
        log_operation_failed(logger, "index file", ValueError("Test error"))

        logger.warning.assert_called_once()
        call_args = logger.warning.call_args
        assert "Failed" in call_args[0][0]
        assert call_args[1]["extra"]["error_type"] == "ValueError"
