"""Operation reporter: log, progress and status events for one run.

Subscribers (a review UI, the CLI) receive plain callbacks; every event is
also mirrored into the structured application log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from tidymarks.core.async_utils import raise_if_cancelled

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class OperationStatus(str, Enum):
    SCANNING = "scanning"
    CHECKING = "checking"
    ANALYZING = "analyzing"
    REVIEW = "review"
    ORGANIZING = "organizing"
    IDLE = "idle"
    CANCELLED = "cancelled"


_LOGGING_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


@dataclass
class OperationReporter:
    """Fan-out of reporter events to optional subscriber callbacks.

    A failing subscriber is logged and never interrupts the operation.
    """

    on_log: Callable[[str, LogLevel], None] | None = None
    on_progress: Callable[[int, str], None] | None = None
    on_status: Callable[[OperationStatus], None] | None = None
    correlation_id: str | None = None
    last_progress: int = field(default=0, init=False)
    status: OperationStatus = field(default=OperationStatus.IDLE, init=False)

    def log(self, message: str, level: LogLevel = LogLevel.INFO, **fields: object) -> None:
        logger.log(
            _LOGGING_LEVELS[level],
            "operation_log",
            extra={"cid": self.correlation_id, "detail": message, **fields},
        )
        self._notify(self.on_log, message, level)

    def info(self, message: str, **fields: object) -> None:
        self.log(message, LogLevel.INFO, **fields)

    def warning(self, message: str, **fields: object) -> None:
        self.log(message, LogLevel.WARNING, **fields)

    def error(self, message: str, **fields: object) -> None:
        self.log(message, LogLevel.ERROR, **fields)

    def progress(self, percentage: float, message: str = "") -> None:
        value = max(0, min(100, int(percentage)))
        self.last_progress = value
        logger.debug(
            "operation_progress",
            extra={"cid": self.correlation_id, "progress": value, "detail": message},
        )
        self._notify(self.on_progress, value, message)

    def set_status(self, status: OperationStatus) -> None:
        self.status = status
        logger.info(
            "operation_status",
            extra={"cid": self.correlation_id, "status": status.value},
        )
        self._notify(self.on_status, status)

    def _notify(self, callback: Callable[..., None] | None, *args: object) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as exc:
            raise_if_cancelled(exc)
            logger.warning(
                "reporter_callback_failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
