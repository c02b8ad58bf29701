"""
HOSHIYOMI Unit Tests - Logging Configuration

Unit tests for hoshiyomi/logging_config.py.
Tests setup_logging, get_logger, JSON output, correlation IDs and helper functions.

Run:
    pytest tests/unit/test_logging_config.py -v
"""

import asyncio
import io
import json
import logging
import tempfile
import threading
import time
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def reset_hoshiyomi_logger():
    """Leave no handlers behind for other tests."""
    yield
    root_logger = logging.getLogger("hoshiyomi")
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)


# =============================================================================
# Test setup_logging Function
# =============================================================================

class TestSetupLogging:
    """Unit tests for setup_logging function."""

    def test_setup_logging_default(self):
        """Test setup_logging with default parameters."""
        from hoshiyomi.logging_config import setup_logging, get_logger

        setup_logging()

        logger = get_logger("test_default")
        assert logger.name == "hoshiyomi.test_default"
        assert logging.getLogger("hoshiyomi").level == logging.INFO

    def test_setup_logging_custom_level(self):
        """Test setup_logging with custom log level."""
        from hoshiyomi.logging_config import setup_logging

        setup_logging(log_level="DEBUG")
        assert logging.getLogger("hoshiyomi").level == logging.DEBUG

    def test_setup_logging_invalid_level_defaults_to_info(self):
        """Unknown level names fall back to INFO."""
        from hoshiyomi.logging_config import setup_logging

        setup_logging(log_level="LOUD")
        assert logging.getLogger("hoshiyomi").level == logging.INFO

    def test_setup_logging_with_file(self):
        """Test setup_logging creates a rotating file handler."""
        from hoshiyomi.logging_config import setup_logging

        with tempfile.TemporaryDirectory() as tmpdir:
            log_path = Path(tmpdir) / "logs" / "hoshiyomi.log"
            setup_logging(log_file=log_path)

            root_logger = logging.getLogger("hoshiyomi")
            file_handlers = [h for h in root_logger.handlers if hasattr(h, "baseFilename")]
            assert len(file_handlers) == 1
            assert Path(file_handlers[0].baseFilename) == log_path
            assert log_path.parent.exists()

            # Close file handler before temp dir cleanup
            for h in file_handlers:
                h.close()
                root_logger.removeHandler(h)

    def test_setup_logging_clears_existing_handlers(self):
        """Re-initialization does not accumulate handlers."""
        from hoshiyomi.logging_config import setup_logging

        setup_logging(log_level="INFO")
        setup_logging(log_level="DEBUG")

        assert len(logging.getLogger("hoshiyomi").handlers) == 1

    def test_setup_logging_custom_stream(self):
        """Console output goes to the given stream."""
        from hoshiyomi.logging_config import setup_logging, get_logger

        stream = io.StringIO()
        setup_logging(log_level="INFO", stream=stream)
        get_logger("stream_test").info("to the stream")

        assert "to the stream" in stream.getvalue()

    def test_json_format(self):
        """JSON output carries level, logger, message and extras."""
        from hoshiyomi.logging_config import setup_logging, get_logger

        stream = io.StringIO()
        setup_logging(log_level="INFO", json_format=True, stream=stream)
        get_logger("json_test").info("structured", extra={"port": 50051})

        record = json.loads(stream.getvalue().strip().splitlines()[-1])
        assert record["level"] == "INFO"
        assert record["logger"] == "hoshiyomi.json_test"
        assert record["message"] == "structured"
        assert record["port"] == 50051


# =============================================================================
# Test get_logger Function
# =============================================================================

class TestGetLogger:
    """Unit tests for get_logger function."""

    def test_get_logger_adds_prefix(self):
        """Test get_logger adds hoshiyomi prefix to logger name."""
        from hoshiyomi.logging_config import get_logger

        assert get_logger("moon_api").name == "hoshiyomi.moon_api"

    def test_get_logger_preserves_existing_prefix(self):
        """Test get_logger preserves existing hoshiyomi prefix."""
        from hoshiyomi.logging_config import get_logger

        assert get_logger("hoshiyomi.ephemeris.riseset").name == "hoshiyomi.ephemeris.riseset"


# =============================================================================
# Test log_exception Helper
# =============================================================================

class TestLogException:
    """Unit tests for log_exception helper function."""

    def test_log_exception_logs_at_error_level(self):
        """Test log_exception logs at ERROR level by default."""
        from hoshiyomi.logging_config import setup_logging, get_logger, log_exception

        setup_logging(log_level="DEBUG")
        logger = get_logger("test_exception")

        with patch.object(logger, "log") as mock_log:
            log_exception(logger, "Operation failed", ValueError("bad value"))

            mock_log.assert_called_once()
            level, message = mock_log.call_args[0][:2]
            assert level == logging.ERROR
            assert "ValueError" in message
            assert "bad value" in message

    def test_log_exception_without_traceback(self):
        """Test log_exception omits the traceback when asked to."""
        from hoshiyomi.logging_config import setup_logging, get_logger, log_exception

        setup_logging(log_level="DEBUG")
        logger = get_logger("test_no_traceback")

        with patch.object(logger, "log") as mock_log:
            log_exception(logger, "Error", ValueError("no trace"), include_traceback=False)

            extra = mock_log.call_args[1].get("extra", {})
            assert "traceback" not in extra

    def test_log_exception_with_traceback(self):
        """Test log_exception includes traceback by default."""
        from hoshiyomi.logging_config import setup_logging, get_logger, log_exception

        setup_logging(log_level="DEBUG")
        logger = get_logger("test_with_traceback")

        with patch.object(logger, "log") as mock_log:
            try:
                raise RuntimeError("with trace")
            except RuntimeError as exc:
                log_exception(logger, "Error", exc, level=logging.WARNING)

            assert mock_log.call_args[0][0] == logging.WARNING
            extra = mock_log.call_args[1].get("extra", {})
            assert "RuntimeError" in extra["traceback"]


# =============================================================================
# Test log_timing Context Manager
# =============================================================================

class TestLogTiming:
    """Unit tests for log_timing context manager."""

    def test_log_timing_logs_start_and_end(self):
        """Test log_timing logs start and completion with extra data."""
        from hoshiyomi.logging_config import setup_logging, get_logger, log_timing

        setup_logging(log_level="DEBUG")
        logger = get_logger("test_timing")

        with patch.object(logger, "log") as mock_log:
            with log_timing(logger, "moon_info"):
                pass

            assert mock_log.call_count == 2
            completion = mock_log.call_args_list[-1]
            assert "completed in" in completion[0][1]
            extra = completion[1]["extra"]
            assert extra["operation"] == "moon_info"
            assert "elapsed_seconds" in extra

    def test_log_timing_warns_on_threshold_exceeded(self):
        """Test log_timing emits warning when threshold exceeded."""
        from hoshiyomi.logging_config import setup_logging, get_logger, log_timing

        setup_logging(log_level="DEBUG")
        logger = get_logger("test_threshold")

        with patch.object(logger, "warning") as mock_warning:
            with log_timing(logger, "slow_operation", warn_threshold_sec=0.01):
                time.sleep(0.05)

            mock_warning.assert_called_once()
            assert "exceeded" in mock_warning.call_args[0][0]

    def test_log_timing_works_with_exception(self):
        """Test log_timing still logs completion if an exception is raised."""
        from hoshiyomi.logging_config import setup_logging, get_logger, log_timing

        setup_logging(log_level="DEBUG")
        logger = get_logger("test_exception_timing")

        with patch.object(logger, "log") as mock_log:
            with pytest.raises(RuntimeError):
                with log_timing(logger, "failing_operation"):
                    raise RuntimeError("Intentional error")

            assert mock_log.call_count >= 2


# =============================================================================
# Test Correlation ID Support
# =============================================================================

class TestCorrelationContext:
    """Unit tests for correlation_context."""

    def test_correlation_id_none_by_default(self):
        """No correlation ID outside a context."""
        from hoshiyomi.logging_config import get_correlation_id

        assert get_correlation_id() is None

    def test_correlation_context_sets_and_clears_id(self):
        """The ID is visible inside the context and gone after it."""
        from hoshiyomi.logging_config import correlation_context, get_correlation_id

        with correlation_context("moon-1234") as cid:
            assert cid == "moon-1234"
            assert get_correlation_id() == "moon-1234"
        assert get_correlation_id() is None

    def test_correlation_context_auto_generates_id(self):
        """Generated IDs carry the prefix and a short hex suffix."""
        from hoshiyomi.logging_config import correlation_context

        with correlation_context(prefix="moon") as cid:
            prefix, suffix = cid.split("-")
            assert prefix == "moon"
            assert len(suffix) == 8

    def test_correlation_context_nested(self):
        """Nested contexts restore the outer ID."""
        from hoshiyomi.logging_config import correlation_context, get_correlation_id

        with correlation_context("outer"):
            with correlation_context("inner"):
                assert get_correlation_id() == "inner"
            assert get_correlation_id() == "outer"

    def test_generate_correlation_id_uniqueness(self):
        """Generated IDs do not repeat."""
        from hoshiyomi.logging_config import generate_correlation_id

        ids = {generate_correlation_id() for _ in range(100)}
        assert len(ids) == 100


class TestCorrelationIdFilter:
    """Unit tests for CorrelationIdFilter."""

    def _record(self):
        return logging.LogRecord(
            name="test", level=logging.INFO, pathname="",
            lineno=0, msg="test", args=(), exc_info=None
        )

    def test_filter_adds_correlation_id(self):
        """The filter copies the current ID onto the record."""
        from hoshiyomi.logging_config import CorrelationIdFilter, correlation_context

        record = self._record()
        with correlation_context("filter-test"):
            assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "filter-test"

    def test_filter_uses_dash_without_id(self):
        """Test filter uses '-' when no correlation ID is set."""
        from hoshiyomi.logging_config import CorrelationIdFilter

        record = self._record()
        CorrelationIdFilter().filter(record)
        assert record.correlation_id == "-"

    def test_filter_installed_on_handlers(self):
        """Records from child loggers pick up the ID through the handler."""
        from hoshiyomi.logging_config import setup_logging, correlation_context

        stream = io.StringIO()
        setup_logging(log_level="DEBUG", stream=stream)

        with correlation_context("moon-child"):
            logging.getLogger("hoshiyomi.ephemeris.riseset").debug("from the solver")

        assert "[moon-child]" in stream.getvalue()

    def test_setup_logging_disables_correlation(self):
        """Without correlation, no handler carries the filter."""
        from hoshiyomi.logging_config import setup_logging, CorrelationIdFilter

        setup_logging(enable_correlation=False)

        for handler in logging.getLogger("hoshiyomi").handlers:
            assert not any(isinstance(f, CorrelationIdFilter) for f in handler.filters)


class TestCorrelationIdIsolation:
    """Correlation IDs across threads and tasks."""

    def test_correlation_id_isolated_between_threads(self):
        """Test correlation IDs are isolated between threads."""
        from hoshiyomi.logging_config import correlation_context, get_correlation_id

        results = {}

        def thread_func(thread_id, cid):
            with correlation_context(cid):
                time.sleep(0.01)
                results[thread_id] = get_correlation_id()

        threads = [
            threading.Thread(target=thread_func, args=(i, f"thread-{i}"))
            for i in range(5)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for i in range(5):
            assert results[i] == f"thread-{i}"

    @pytest.mark.asyncio
    async def test_correlation_id_follows_to_thread(self):
        """asyncio.to_thread workers see the caller's correlation ID."""
        from hoshiyomi.logging_config import correlation_context, get_correlation_id

        with correlation_context("moon-worker"):
            seen = await asyncio.to_thread(get_correlation_id)

        assert seen == "moon-worker"
