"""
HOSHIYOMI Logging Configuration

One `hoshiyomi` root logger shared by the Moon API service, the calc command
and the ephemeris engine. Records can be plain text or JSON lines, go to a
console stream and optionally a rotating file, and carry the correlation ID
of the request being served.

Usage:
    from hoshiyomi.logging_config import setup_logging, get_logger, correlation_context

    setup_logging(log_level="INFO", log_file="hoshiyomi.log")
    logger = get_logger(__name__)

    with correlation_context(prefix="moon"):
        logger.info("MoonInfo request")
"""

import json
import logging
import sys
import time
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Generator, Optional, TextIO

from hoshiyomi.constants import LOG_BACKUP_COUNT, LOG_DATE_FORMAT, LOG_MAX_BYTES

ROOT_LOGGER_NAME = "hoshiyomi"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_LOG_FORMAT_WITH_CORRELATION = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"
)

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "correlation_id"}

# =============================================================================
# Correlation IDs
# =============================================================================

# Follows a request across awaits and into asyncio.to_thread workers
_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


class CorrelationIdFilter(logging.Filter):
    """Stamps each record with the current correlation ID, "-" outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = _correlation_id.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with `extra` values as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            payload["correlation_id"] = correlation_id
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def generate_correlation_id(prefix: str = "hy") -> str:
    """New ID of the form "<prefix>-<8 hex digits>"."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


@contextmanager
def correlation_context(
    correlation_id: Optional[str] = None,
    prefix: str = "hy",
) -> Generator[str, None, None]:
    """Bind a correlation ID (given or generated) for the enclosed block.

    The previous ID is restored on exit, so contexts nest.
    """
    cid = correlation_id or generate_correlation_id(prefix)
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


# =============================================================================
# Setup
# =============================================================================


def setup_logging(
    log_level: str = DEFAULT_LOG_LEVEL,
    log_file: Optional[str | Path] = None,
    json_format: bool = False,
    enable_correlation: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure the hoshiyomi root logger, replacing any earlier setup.

    Args:
        log_level: Level name; unknown names fall back to INFO
        log_file: Rotating log file, created with its parent directory
        json_format: Emit JSON lines instead of text
        enable_correlation: Add the correlation ID to every record
        stream: Console stream (default: stdout). calc passes stderr so its
            result stays alone on stdout.
    """
    level = LOG_LEVELS.get(log_level.upper(), logging.INFO)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)

    for handler in root_logger.handlers:
        handler.close()
    root_logger.handlers.clear()
    root_logger.filters.clear()

    if json_format:
        formatter: logging.Formatter = JsonFormatter(datefmt=LOG_DATE_FORMAT)
    else:
        log_format = DEFAULT_LOG_FORMAT_WITH_CORRELATION if enable_correlation else DEFAULT_LOG_FORMAT
        formatter = logging.Formatter(log_format, LOG_DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]

    if log_file:
        file_path = Path(log_file)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(file_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
        )

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        # Handler filters also see records propagated from child loggers
        if enable_correlation:
            handler.addFilter(CorrelationIdFilter())
        root_logger.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Logger under the hoshiyomi root, prefixing `name` when needed."""
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


# =============================================================================
# Helpers
# =============================================================================


def log_exception(
    logger: logging.Logger,
    message: str,
    exc: BaseException,
    level: int = logging.ERROR,
    include_traceback: bool = True,
) -> None:
    """Log `message: [ExcType] text`, with the traceback appended and in `extra`."""
    exc_type = type(exc).__name__
    extra = {"exception_type": exc_type, "exception_message": str(exc)}
    text = f"{message}: [{exc_type}] {exc}"

    if include_traceback:
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        extra["traceback"] = tb
        text = f"{text}\n{tb}"
    logger.log(level, text, extra=extra)


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    warn_threshold_sec: Optional[float] = None,
) -> Generator[None, None, None]:
    """Log the start and duration of a block, as a warning past the threshold.

    The duration is logged even when the block raises.
    """
    start_time = time.perf_counter()
    logger.log(level, f"{operation} started")

    try:
        yield
    finally:
        elapsed = time.perf_counter() - start_time
        extra = {"operation": operation, "elapsed_seconds": round(elapsed, 3)}

        if warn_threshold_sec is not None and elapsed > warn_threshold_sec:
            logger.warning(
                f"{operation} completed in {elapsed:.3f}s (exceeded {warn_threshold_sec}s threshold)",
                extra=extra,
            )
        else:
            logger.log(level, f"{operation} completed in {elapsed:.3f}s", extra=extra)
