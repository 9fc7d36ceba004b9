"""
Structured logging configuration for the video ingest service.

Features:
- JSONFormatter: one JSON object per line, with ``extra=`` fields merged in
- StandardFormatter: human-readable output that appends bound context fields
- setup_logging: root, uvicorn and third-party logger configuration
- add_log_context: LoggerAdapter binding video/user identifiers to a pipeline

Usage:
    import logging
    from app.utils.logger import add_log_context, setup_logging

    setup_logging(log_level="info", json_logs=True)

    logger = logging.getLogger(__name__)
    ctx_logger = add_log_context(logger, video_id=video_id, user_id=user_id)
    ctx_logger.info("Video uploaded", extra={"object_key": key})
"""

import json
import logging
import sys
import traceback

from datetime import UTC, datetime
from typing import Any


# =============================================================================
# Constants
# =============================================================================

LOG_LEVEL_MAP: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

UVICORN_LOGGERS: tuple[str, ...] = ("uvicorn", "uvicorn.access", "uvicorn.error")

# Libraries that log request-level chatter at INFO/DEBUG
THIRD_PARTY_LOGGERS: tuple[str, ...] = (
    "boto3",
    "botocore",
    "s3transfer",
    "urllib3",
    "motor",
    "pymongo",
    "multipart",
    "python_multipart",
    "httpx",
    "httpcore",
    "asyncio",
)

# Standard LogRecord attributes; anything else on a record came from ``extra``
RESERVED_ATTRS: frozenset[str] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if not key.startswith("_") and key not in RESERVED_ATTRS
    }


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """
    Format log records as compact JSON strings.

    Example output:
        {"timestamp":"2025-01-15T10:30:45.123456+00:00","level":"INFO",
         "logger":"app.services.upload_service","message":"Video uploaded",
         "video_id":"...","object_key":"landscape/abc.mp4"}
    """

    def __init__(self, include_source_location: bool = False) -> None:
        super().__init__()
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(
                timespec="microseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            log_entry["source"] = {
                "filename": record.filename,
                "lineno": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        for key, value in _extract_extra_fields(record).items():
            log_entry.setdefault(key, value)

        # default=str covers UUIDs, datetimes, paths and exceptions in extra fields
        return json.dumps(log_entry, default=str, ensure_ascii=False, separators=(",", ":"))


class StandardFormatter(logging.Formatter):
    """
    Text formatter for local development.

    Format: [TIMESTAMP] LEVEL logger_name: message {key=value ...}
    """

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(
            fmt=fmt or self.DEFAULT_FORMAT,
            datefmt=datefmt or self.DEFAULT_DATE_FORMAT,
        )

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)
        extra_fields = _extract_extra_fields(record)
        if not extra_fields:
            return formatted
        context = " ".join(f"{key}={value}" for key, value in extra_fields.items())
        return f"{formatted} {{{context}}}"


# =============================================================================
# Logging Setup
# =============================================================================


def get_log_level(level_str: str) -> int:
    return LOG_LEVEL_MAP.get(level_str.upper(), logging.INFO)


def setup_logging(
    log_level: str = "info",
    json_logs: bool = False,
    third_party_level: str = "warning",
) -> None:
    """
    Configure application-wide logging.

    Should be called once at startup (the FastAPI lifespan does this). It
    replaces root handlers with a single stdout handler, routes uvicorn's
    loggers through the same formatter, and raises the threshold of chatty
    third-party loggers.

    Args:
        log_level: Application log level (debug, info, warning, error, critical)
        json_logs: If True, output JSON; otherwise human-readable text
        third_party_level: Log level for third-party libraries
    """
    level = get_log_level(log_level)

    if json_logs:
        formatter: logging.Formatter = JSONFormatter(
            include_source_location=level <= logging.DEBUG
        )
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    _configure_uvicorn_logging(formatter, level)
    _configure_third_party_loggers(get_log_level(third_party_level))

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s", logging.getLevelName(level), json_logs
    )


def _configure_uvicorn_logging(formatter: logging.Formatter, level: int) -> None:
    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler(sys.stderr if name == "uvicorn.error" else sys.stdout)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)


def _configure_third_party_loggers(level: int) -> None:
    for logger_name in THIRD_PARTY_LOGGERS:
        logging.getLogger(logger_name).setLevel(level)


# =============================================================================
# Context Enrichment
# =============================================================================


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges its bound context into each call's ``extra``.

    The stock adapter replaces ``extra`` wholesale; this one keeps per-call
    fields and only fills in context keys the call did not set.
    """

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        for key, value in self.extra.items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


def add_log_context(logger: logging.Logger, **kwargs: Any) -> ContextLoggerAdapter:
    """
    Wrap a logger so every message carries the given context fields.

    Example:
        ctx_logger = add_log_context(logger, video_id=video_id, user_id=user_id)
        ctx_logger.info("Probing aspect ratio")
        ctx_logger.error("Upload failed", extra={"object_key": key})
    """
    return ContextLoggerAdapter(logger, kwargs)
