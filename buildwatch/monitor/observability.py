"""Observability primitives for the build monitor.

Provides structured logging and error categorization for polling cycles,
per-repository failures and TTL migration. All events are emitted as
``[event.type] key=value`` log lines suitable for log aggregators.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import typing as typ

import httpx
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from buildwatch.events.errors import EventSinkError
from buildwatch.travis.errors import (
    TravisAPIError,
    TravisConfigError,
    TravisResponseShapeError,
)

from .errors import CorruptCacheEntryError

if typ.TYPE_CHECKING:
    import datetime as dt

    from buildwatch.travis.models import RepositorySnapshot

logger = logging.getLogger(__name__)


class MonitorEventType(enum.StrEnum):
    """Structured log event types for monitor observability."""

    CYCLE_STARTED = "monitor.cycle.started"
    CYCLE_COMPLETED = "monitor.cycle.completed"
    CYCLE_FAILED = "monitor.cycle.failed"
    BUILD_CHANGED = "monitor.build.changed"
    BUILD_BACKFILLED = "monitor.build.backfilled"
    REPOSITORY_FAILED = "monitor.repository.failed"
    CACHE_CORRUPT = "monitor.cache.corrupt"
    RESYNC_COMPLETED = "monitor.resync.completed"
    RESYNC_FAILED = "monitor.resync.failed"
    TTL_MIGRATED = "monitor.ttl.migrated"
    POLL_SKIPPED = "monitor.poll.skipped"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    CONFIGURATION = "configuration"
    DATA_INTEGRITY = "data_integrity"
    DELIVERY = "delivery"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (httpx.TransportError, ErrorCategory.TRANSIENT),
    (TravisResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (TravisConfigError, ErrorCategory.CONFIGURATION),
    (CorruptCacheEntryError, ErrorCategory.DATA_INTEGRITY),
    (EventSinkError, ErrorCategory.DELIVERY),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Returns:
        ErrorCategory indicating the type of failure for alert routing.

    """
    # Travis API errors split on status code: 5xx is worth the next cycle
    if isinstance(exc, TravisAPIError):
        if exc.is_transient:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


@dataclasses.dataclass(frozen=True, slots=True)
class CycleRunContext:
    """Shared context for a single polling cycle."""

    master: str
    started_at: dt.datetime


class MonitorEventLogger:
    """Emit structured monitor events via Python logging.

    Events are emitted at INFO for progress, WARNING for recoverable
    per-repository problems, and ERROR for failures.
    """

    def log_cycle_started(self, context: CycleRunContext) -> None:
        """Log the start of a polling cycle."""
        logger.info(
            "[%s] master=%s started_at=%s",
            MonitorEventType.CYCLE_STARTED,
            context.master,
            context.started_at.isoformat(),
        )

    def log_cycle_completed(  # noqa: PLR0913
        self,
        context: CycleRunContext,
        *,
        repositories: int,
        retained: int,
        changed: int,
        failed: int,
        duration: dt.timedelta,
    ) -> None:
        """Log cycle completion with throughput counters."""
        logger.info(
            "[%s] master=%s duration_seconds=%.3f repositories=%d retained=%d "
            "changed=%d failed=%d",
            MonitorEventType.CYCLE_COMPLETED,
            context.master,
            duration.total_seconds(),
            repositories,
            retained,
            changed,
            failed,
        )

    def log_cycle_failed(
        self,
        context: CycleRunContext,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log a cycle that could not list repositories."""
        logger.error(
            "[%s] master=%s duration_seconds=%.3f error_type=%s "
            "error_category=%s error_message=%s",
            MonitorEventType.CYCLE_FAILED,
            context.master,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_build_changed(
        self,
        master: str,
        snapshot: RepositorySnapshot,
        *,
        kind: str,
    ) -> None:
        """Log a repository whose latest build differs from the cache."""
        logger.info(
            "[%s] master=%s slug=%s build_number=%d state=%s running=%s kind=%s",
            MonitorEventType.BUILD_CHANGED,
            master,
            snapshot.slug,
            snapshot.last_build_number,
            snapshot.last_build_state,
            snapshot.running,
            kind,
        )

    def log_build_backfilled(self, master: str, slug: str, build_number: int) -> None:
        """Log an event pushed for a build missed between polls."""
        logger.info(
            "[%s] master=%s slug=%s build_number=%d",
            MonitorEventType.BUILD_BACKFILLED,
            master,
            slug,
            build_number,
        )

    def log_repository_failed(
        self, master: str, slug: str, error: BaseException
    ) -> None:
        """Log a per-repository failure; the cycle carries on."""
        logger.error(
            "[%s] master=%s slug=%s error_type=%s error_category=%s error_message=%s",
            MonitorEventType.REPOSITORY_FAILED,
            master,
            slug,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_cache_corrupt(self, error: CorruptCacheEntryError) -> None:
        """Log an unreadable cache entry that will be re-adopted."""
        logger.warning(
            "[%s] master=%s slug=%s label=%r error_category=%s",
            MonitorEventType.CACHE_CORRUPT,
            error.master,
            error.slug,
            error.label,
            ErrorCategory.DATA_INTEGRITY,
        )

    def log_resync_completed(self, master: str, duration: dt.timedelta) -> None:
        """Log a completed repository list resync."""
        logger.info(
            "[%s] master=%s duration_seconds=%.3f",
            MonitorEventType.RESYNC_COMPLETED,
            master,
            duration.total_seconds(),
        )

    def log_resync_failed(self, master: str, error: BaseException) -> None:
        """Log a failed repository list resync."""
        logger.warning(
            "[%s] master=%s error_type=%s error_category=%s error_message=%s",
            MonitorEventType.RESYNC_FAILED,
            master,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_ttl_migrated(self, master: str, slug: str, ttl_seconds: int) -> None:
        """Log a legacy cache record that received a TTL."""
        logger.info(
            "[%s] master=%s slug=%s ttl_seconds=%d",
            MonitorEventType.TTL_MIGRATED,
            master,
            slug,
            ttl_seconds,
        )

    def log_poll_skipped(self, last_poll: dt.datetime | None) -> None:
        """Log a tick skipped because this instance is not serving traffic."""
        logger.info(
            "[%s] reason=not_in_service last_poll=%s",
            MonitorEventType.POLL_SKIPPED,
            last_poll.isoformat() if last_poll else "n/a",
        )
