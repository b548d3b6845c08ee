from __future__ import annotations

import datetime as dt
import json
import logging
import os
import sys
import uuid
from typing import Any

from loguru import logger as loguru_logger

UTC = dt.UTC

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_FIELDS = frozenset(
    {
        "args",
        "msg",
        "name",
        "levelno",
        "levelname",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
    }
)

_PROGRESS_FIELDS = frozenset({"processed", "total", "percentage", "batch", "batches", "phase"})


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if not key.startswith("_") and key not in _STANDARD_FIELDS
    }


class EnhancedJsonFormatter(logging.Formatter):
    """One JSON object per line, with ``extra`` fields grouped."""

    def __init__(self, include_location: bool = True):
        super().__init__()
        self.include_location = include_location
        self.hostname = os.uname().nodename if hasattr(os, "uname") else "unknown"

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
        }

        if self.include_location:
            base.update(
                {
                    "module": record.module,
                    "function": record.funcName,
                    "line": record.lineno,
                }
            )

        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        extra_fields: dict[str, Any] = {}
        progress_fields: dict[str, Any] = {}
        for key, value in _extra_fields(record).items():
            if key in base:
                continue
            if key == "correlation_id":
                base["correlation_id"] = value
            elif key in _PROGRESS_FIELDS:
                progress_fields[key] = value
            else:
                extra_fields[key] = value

        if progress_fields:
            base["progress"] = progress_fields
        if extra_fields:
            base["extra"] = extra_fields

        return json.dumps(
            base, ensure_ascii=False, default=self._json_serializer, separators=(",", ":")
        )

    def _json_serializer(self, obj: Any) -> str:
        if hasattr(obj, "__dict__"):
            return f"<{obj.__class__.__name__}>"
        return str(obj)


class InterceptHandler(logging.Handler):
    """Forward stdlib records (with their ``extra`` fields) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        level_to_use: int | str
        try:
            level_to_use = loguru_logger.level(record.levelname).name
        except ValueError:
            level_to_use = record.levelno

        loguru_logger.bind(**_extra_fields(record)).opt(depth=6, exception=record.exc_info).log(
            level_to_use, record.getMessage()
        )


def setup_json_logging(
    level: str = "INFO",
    *,
    use_loguru: bool = True,
    serialize: bool = True,
    log_file: str | None = None,
    max_file_size: str = "20 MB",
    retention: str = "14 days",
) -> None:
    """Configure structured JSON logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_loguru: Route stdlib logging through loguru sinks
        serialize: Emit JSON lines on stderr instead of loguru's text format
        log_file: Optional log file path for persistent logging
        max_file_size: Rotation size for the loguru file sink
        retention: Retention period for rotated loguru files

    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    if use_loguru:
        loguru_logger.remove()
        loguru_logger.add(sys.stderr, level=level.upper(), serialize=serialize, backtrace=False)
        if log_file:
            loguru_logger.add(
                log_file,
                level=level.upper(),
                serialize=True,
                rotation=max_file_size,
                retention=retention,
                compression="gz",
                enqueue=True,
            )
        root.addHandler(InterceptHandler())
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(EnhancedJsonFormatter())
        root.addHandler(console_handler)
        if log_file:
            from logging.handlers import RotatingFileHandler

            file_handler = RotatingFileHandler(log_file, maxBytes=20 * 1024 * 1024, backupCount=5)
            file_handler.setFormatter(EnhancedJsonFormatter())
            root.addHandler(file_handler)

    logging.getLogger("httpx").setLevel(max(lvl, logging.WARNING))
    logging.getLogger("httpcore").setLevel(max(lvl, logging.WARNING))

    logging.getLogger(__name__).info(
        "json_logging_initialized",
        extra={"level": level.upper(), "loguru": use_loguru, "log_file": log_file},
    )


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing one run across log lines."""
    return uuid.uuid4().hex[:12]
