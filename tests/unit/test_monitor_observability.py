"""Unit tests for monitor error categorisation and structured events."""

from __future__ import annotations

import datetime as dt
import logging

import httpx
import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from buildwatch.events.errors import EventSinkError
from buildwatch.monitor.errors import CorruptCacheEntryError
from buildwatch.monitor.observability import (
    CycleRunContext,
    ErrorCategory,
    MonitorEventLogger,
    MonitorEventType,
    categorize_error,
)
from buildwatch.travis.errors import (
    TravisAPIError,
    TravisConfigError,
    TravisResponseShapeError,
)
from tests.unit.monitor_test_helpers import BASE_TIME, make_snapshot


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (TravisAPIError.http_error(502, "/repos"), ErrorCategory.TRANSIENT),
        (TravisAPIError.http_error(404, "/repos"), ErrorCategory.CLIENT_ERROR),
        (TravisAPIError("no status"), ErrorCategory.CLIENT_ERROR),
        (httpx.ReadTimeout("slow"), ErrorCategory.TRANSIENT),
        (TravisResponseShapeError.missing("builds"), ErrorCategory.SCHEMA_DRIFT),
        (TravisConfigError.empty_token(), ErrorCategory.CONFIGURATION),
        (
            CorruptCacheEntryError.for_label("m1", "octo/reef", "x"),
            ErrorCategory.DATA_INTEGRITY,
        ),
        (EventSinkError.delivery_failed(500), ErrorCategory.DELIVERY),
        (
            OperationalError("SELECT 1", {}, Exception("gone")),
            ErrorCategory.DATABASE_CONNECTIVITY,
        ),
        (
            IntegrityError("INSERT", {}, Exception("dup")),
            ErrorCategory.DATA_INTEGRITY,
        ),
        (RuntimeError("???"), ErrorCategory.UNKNOWN),
    ],
)
def test_categorize_error(error: BaseException, expected: ErrorCategory) -> None:
    """Exceptions map onto alerting categories."""
    assert categorize_error(error) is expected


def test_cycle_completed_event_includes_counters(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Cycle completion logs the master and its counters."""
    events = MonitorEventLogger()
    context = CycleRunContext(master="m1", started_at=BASE_TIME)

    with caplog.at_level(logging.INFO, logger="buildwatch.monitor.observability"):
        events.log_cycle_completed(
            context,
            repositories=10,
            retained=7,
            changed=2,
            failed=1,
            duration=dt.timedelta(seconds=1.5),
        )

    message = caplog.records[-1].getMessage()
    assert message.startswith(f"[{MonitorEventType.CYCLE_COMPLETED}]")
    for fragment in (
        "master=m1",
        "duration_seconds=1.500",
        "repositories=10",
        "retained=7",
        "changed=2",
        "failed=1",
    ):
        assert fragment in message, f"expected {fragment!r} in {message!r}"


def test_repository_failure_event_is_categorised(
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Repository failures log at ERROR with category and traceback."""
    events = MonitorEventLogger()
    error = TravisAPIError.http_error(503, "/repo/x/builds")

    with caplog.at_level(logging.ERROR, logger="buildwatch.monitor.observability"):
        events.log_repository_failed("m1", "octo/reef", error)

    record = caplog.records[-1]
    assert record.levelno == logging.ERROR
    assert "error_category=transient" in record.getMessage()
    assert "slug=octo/reef" in record.getMessage()
    assert record.exc_info is not None


def test_build_changed_event(caplog: pytest.LogCaptureFixture) -> None:
    """Build changes log the snapshot identity and change kind."""
    with caplog.at_level(logging.INFO, logger="buildwatch.monitor.observability"):
        MonitorEventLogger().log_build_changed(
            "m1", make_snapshot(number=9, state="started"), kind="changed"
        )

    message = caplog.records[-1].getMessage()
    assert "build_number=9" in message
    assert "running=True" in message
    assert "kind=changed" in message
