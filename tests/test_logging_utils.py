from __future__ import annotations

import json
import logging

from loguru import logger as loguru_logger

from tidymarks.core.logging_utils import (
    EnhancedJsonFormatter,
    InterceptHandler,
    generate_correlation_id,
)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="tidymarks.services.organizer",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="analysis_finished",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formatter_groups_extra_and_progress_fields() -> None:
    formatter = EnhancedJsonFormatter(include_location=False)

    line = formatter.format(
        _record(correlation_id="abc123", batch=2, batches=4, bookmark_id="10")
    )

    payload = json.loads(line)
    assert payload["message"] == "analysis_finished"
    assert payload["level"] == "INFO"
    assert payload["correlation_id"] == "abc123"
    assert payload["progress"] == {"batch": 2, "batches": 4}
    assert payload["extra"] == {"bookmark_id": "10"}
    assert "line" not in payload


def test_formatter_serializes_unknown_objects() -> None:
    class Opaque:
        def __init__(self) -> None:
            self.value = 1

    payload = json.loads(EnhancedJsonFormatter().format(_record(thing=Opaque())))

    assert payload["extra"]["thing"] == "<Opaque>"
    assert payload["function"] is None or isinstance(payload["function"], str)


def test_intercept_handler_forwards_extra_to_loguru() -> None:
    messages = []
    sink_id = loguru_logger.add(messages.append, level="DEBUG", format="{message}")
    try:
        InterceptHandler().emit(_record(bookmark_id="42"))
    finally:
        loguru_logger.remove(sink_id)

    (message,) = messages
    assert message.record["message"] == "analysis_finished"
    assert message.record["extra"]["bookmark_id"] == "42"


def test_correlation_ids_are_short_and_unique() -> None:
    ids = {generate_correlation_id() for _ in range(50)}

    assert len(ids) == 50
    assert all(len(cid) == 12 for cid in ids)
