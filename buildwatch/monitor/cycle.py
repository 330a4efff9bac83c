"""Polling cycle orchestration for Travis build monitoring.

One cycle lists every repository of a master, drops those whose last build
is older than the retention window, and compares the rest against the build
cache. New and changed repositories are reported to the event sink and then
written back to the cache; changed repositories first have the builds that
completed since the previous poll backfilled. Failures are contained per
repository so one broken repository never costs the rest of the cycle.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import typing as typ

from buildwatch.common.time import utcnow
from buildwatch.events.models import current_build_event

from .backfill import BackfillResolver
from .branches import BranchSlugResolver
from .config import MonitorConfig
from .detection import (
    ChangeKind,
    detect_change,
    filter_out_old_builds,
    parse_build_label,
)
from .errors import CorruptCacheEntryError, UnknownMasterError
from .observability import (
    CycleRunContext,
    ErrorCategory,
    MonitorEventLogger,
    categorize_error,
)
from .ttl import sweep_missing_ttls

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from buildwatch.cache.models import CachedBuildRecord
    from buildwatch.cache.service import BuildCache
    from buildwatch.events.sink import EventSink
    from buildwatch.travis.client import SnapshotSource
    from buildwatch.travis.models import RepositorySnapshot

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class BuildChange:
    """Audit entry for a repository whose latest build changed."""

    previous: CachedBuildRecord | None
    current: RepositorySnapshot
    kind: ChangeKind
    backfilled: tuple[int, ...] = ()
    branched_slug: str | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class RepositoryFailure:
    """Audit entry for a repository that could not be processed this cycle."""

    slug: str
    error_type: str
    category: ErrorCategory
    message: str

    @classmethod
    def from_exception(cls, slug: str, exc: BaseException) -> RepositoryFailure:
        """Summarise ``exc`` for the cycle result."""
        return cls(
            slug=slug,
            error_type=type(exc).__name__,
            category=categorize_error(exc),
            message=str(exc),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class CycleResult:
    """Outcome of one polling cycle for one master.

    ``started_at`` is the cycle's poll marker; it is set before any remote
    call so it advances even when listing repositories fails.
    """

    master: str
    started_at: dt.datetime
    changes: tuple[BuildChange, ...] = ()
    failures: tuple[RepositoryFailure, ...] = ()
    error: str | None = None
    resync_error: str | None = None

    @property
    def succeeded(self) -> bool:
        """Return True when the repository listing itself succeeded."""
        return self.error is None


type _Outcome = BuildChange | RepositoryFailure | None


class BuildMonitor:
    """Run polling cycles against configured Travis masters."""

    def __init__(
        self,
        sources: cabc.Mapping[str, SnapshotSource],
        cache: BuildCache,
        *,
        sink: EventSink | None = None,
        config: MonitorConfig | None = None,
        event_logger: MonitorEventLogger | None = None,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Create a monitor over per-master sources and a shared cache.

        When ``sink`` is None events are not published (and missed builds
        are not fetched); cache writes still happen.
        """
        self._sources = dict(sources)
        self._cache = cache
        self._sink = sink
        self._config = config or MonitorConfig()
        self._event_logger = event_logger or MonitorEventLogger()
        self._clock = clock

    @property
    def masters(self) -> tuple[str, ...]:
        """Return the names of the masters this monitor polls."""
        return tuple(self._sources)

    @property
    def config(self) -> MonitorConfig:
        """Return the active monitor configuration."""
        return self._config

    def _source_for(self, master: str) -> SnapshotSource:
        try:
            return self._sources[master]
        except KeyError:
            raise UnknownMasterError(master) from None

    async def sweep_ttls(self, master: str) -> int:
        """Give legacy cache records of ``master`` the configured TTL."""
        self._source_for(master)
        return await sweep_missing_ttls(
            self._cache,
            master,
            self._config.cached_job_ttl_seconds,
            event_logger=self._event_logger,
        )

    async def run_cycle(self, master: str) -> CycleResult:
        """Poll ``master`` once and return the audit of what changed.

        Raises
        ------
        UnknownMasterError
            If no snapshot source is configured for ``master``.

        """
        source = self._source_for(master)
        started_at = self._clock()
        context = CycleRunContext(master=master, started_at=started_at)
        self._event_logger.log_cycle_started(context)

        try:
            snapshots = await source.list_repositories()
        except Exception as exc:  # noqa: BLE001 - cycle-level failures are reported, not raised
            self._event_logger.log_cycle_failed(
                context, exc, self._clock() - started_at
            )
            return CycleResult(
                master=master,
                started_at=started_at,
                error=f"{type(exc).__name__}: {exc}",
            )

        retained = filter_out_old_builds(
            snapshots,
            retention=self._config.retention,
            grace=self._config.started_at_grace,
            now=started_at,
        )
        outcomes = await self._process_all(source, master, retained)
        changes = tuple(o for o in outcomes if isinstance(o, BuildChange))
        failures = tuple(o for o in outcomes if isinstance(o, RepositoryFailure))

        self._event_logger.log_cycle_completed(
            context,
            repositories=len(snapshots),
            retained=len(retained),
            changed=len(changes),
            failed=len(failures),
            duration=self._clock() - started_at,
        )

        resync_error = None
        if self._config.repository_sync_enabled:
            resync_error = await self._resync(source, master)

        return CycleResult(
            master=master,
            started_at=started_at,
            changes=changes,
            failures=failures,
            resync_error=resync_error,
        )

    async def _process_all(
        self,
        source: SnapshotSource,
        master: str,
        snapshots: list[RepositorySnapshot],
    ) -> list[_Outcome]:
        """Fan out over repositories with bounded concurrency."""
        semaphore = asyncio.Semaphore(self._config.max_concurrent_repositories)

        async def bounded(snapshot: RepositorySnapshot) -> _Outcome:
            async with semaphore:
                return await self._process_repository(source, master, snapshot)

        return list(await asyncio.gather(*(bounded(s) for s in snapshots)))

    async def _process_repository(
        self,
        source: SnapshotSource,
        master: str,
        snapshot: RepositorySnapshot,
    ) -> _Outcome:
        try:
            return await self._process_snapshot(source, master, snapshot)
        except Exception as exc:  # noqa: BLE001 - isolate failures per repository
            self._event_logger.log_repository_failed(master, snapshot.slug, exc)
            return RepositoryFailure.from_exception(snapshot.slug, exc)

    async def _process_snapshot(
        self,
        source: SnapshotSource,
        master: str,
        snapshot: RepositorySnapshot,
    ) -> BuildChange | None:
        cached = await self._cache.get_record(master, snapshot.slug)
        try:
            kind = detect_change(snapshot, cached)
        except CorruptCacheEntryError as exc:
            # Re-adopt the repository rather than leaving the entry stuck.
            self._event_logger.log_cache_corrupt(exc)
            kind = ChangeKind.NEW

        if kind is ChangeKind.UNCHANGED:
            return None
        self._event_logger.log_build_changed(master, snapshot, kind=kind)

        backfilled: tuple[int, ...] = ()
        if kind is ChangeKind.CHANGED and cached is not None and self._sink is not None:
            backfilled = await BackfillResolver(
                source,
                self._sink,
                master=master,
                event_logger=self._event_logger,
                threshold=self._config.new_build_event_threshold,
            ).backfill(snapshot, parse_build_label(cached))

        ttl_seconds = self._config.cached_job_ttl_seconds
        await self._publish_current(source, master, snapshot)
        branched = await BranchSlugResolver(
            source,
            self._cache,
            self._sink,
            master=master,
            ttl_seconds=ttl_seconds,
        ).resolve(snapshot)

        # The canonical record is stored only after every event for it is out.
        await self._cache.put_record(
            master,
            snapshot.slug,
            snapshot.last_build_number,
            snapshot.running,
            ttl_seconds,
        )

        return BuildChange(
            previous=cached,
            current=snapshot,
            kind=kind,
            backfilled=backfilled,
            branched_slug=branched,
        )

    async def _publish_current(
        self,
        source: SnapshotSource,
        master: str,
        snapshot: RepositorySnapshot,
    ) -> None:
        if self._sink is None:
            return
        logger.info(
            "Pushing event for %s:%s:%d",
            master,
            snapshot.slug,
            snapshot.last_build_number,
        )
        await self._sink.publish(
            current_build_event(snapshot, master=master, base_url=source.base_url)
        )

    async def _resync(self, source: SnapshotSource, master: str) -> str | None:
        started_at = self._clock()
        try:
            await source.resync_repository_list()
        except Exception as exc:  # noqa: BLE001 - resync never invalidates a cycle
            self._event_logger.log_resync_failed(master, exc)
            return f"{type(exc).__name__}: {exc}"
        self._event_logger.log_resync_completed(master, self._clock() - started_at)
        return None
