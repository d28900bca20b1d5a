"""
Structured logging tests: JSON formatting and bound log context.
"""

import json
import logging
import sys

from datetime import UTC, datetime

import pytest

from app.utils.logger import JSONFormatter, add_log_context


@pytest.fixture
def captured() -> list[logging.LogRecord]:
    records: list[logging.LogRecord] = []

    class _ListHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            records.append(record)

    logger = logging.getLogger("fanforge.test")
    handler = _ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield records
    logger.removeHandler(handler)


def test_context_is_merged_into_extra(captured: list[logging.LogRecord]) -> None:
    log = add_log_context(
        logging.getLogger("fanforge.test"), submission_id="sub_01", reviewer_id="user_reviewer"
    )

    log.warning("Background IP registration failed", extra={"reason": "Registry request timed out"})

    record = captured[0]
    assert record.submission_id == "sub_01"
    assert record.reviewer_id == "user_reviewer"
    assert record.reason == "Registry request timed out"


def test_json_formatter_includes_extra_and_exception() -> None:
    record = logging.LogRecord(
        "app.services.review_service", logging.ERROR, __file__, 10, "crashed %s", ("sub_01",), None
    )
    record.submission_id = "sub_01"
    record.reviewed_at = datetime(2026, 1, 15, tzinfo=UTC)
    try:
        raise RuntimeError("gateway exploded")
    except RuntimeError:
        record.exc_info = sys.exc_info()

    entry = json.loads(JSONFormatter(include_source_location=True).format(record))

    assert entry["level"] == "ERROR"
    assert entry["message"] == "crashed sub_01"
    assert entry["extra"]["submission_id"] == "sub_01"
    assert entry["extra"]["reviewed_at"].startswith("2026-01-15")
    assert entry["exception"]["type"] == "RuntimeError"
    assert entry["source"]["lineno"] == 10
