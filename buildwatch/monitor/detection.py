"""Staleness filtering and change detection for repository snapshots."""

from __future__ import annotations

import enum
import re
import typing as typ

from .errors import CorruptCacheEntryError

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from buildwatch.cache.models import CachedBuildRecord
    from buildwatch.travis.models import RepositorySnapshot

_BUILD_LABEL = re.compile(r"-?[0-9]+")


class ChangeKind(enum.StrEnum):
    """Classification of a snapshot against its cached record."""

    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


def staleness_threshold(
    now: dt.datetime, *, retention: dt.timedelta, grace: dt.timedelta
) -> dt.datetime:
    """Return the oldest start time still worth processing."""
    return now - retention + grace


def filter_out_old_builds(
    snapshots: cabc.Iterable[RepositorySnapshot],
    *,
    retention: dt.timedelta,
    grace: dt.timedelta,
    now: dt.datetime,
) -> list[RepositorySnapshot]:
    """Drop snapshots whose last build started outside the retention window.

    The cache TTL equals the retention window, so a build older than it
    would be written, expire, and be reported again on every cycle. Travis
    can report a build before ``started_at`` is populated, which is what
    ``grace`` compensates for. Snapshots without a start time are dropped.
    """
    threshold = staleness_threshold(now, retention=retention, grace=grace)
    return [
        snapshot
        for snapshot in snapshots
        if snapshot.last_build_started_at is not None
        and snapshot.last_build_started_at > threshold
    ]


def parse_build_label(record: CachedBuildRecord) -> int:
    """Return the cached build number, raising on unparseable labels."""
    label = record.last_build_label.strip()
    if not _BUILD_LABEL.fullmatch(label):
        raise CorruptCacheEntryError.for_label(
            record.master, record.slug, record.last_build_label
        )
    return int(label)


def detect_change(
    snapshot: RepositorySnapshot, cached: CachedBuildRecord | None
) -> ChangeKind:
    """Classify ``snapshot`` against the cached record for its repository.

    Raises
    ------
    CorruptCacheEntryError
        If the cached build label is not a build number.

    """
    if cached is None:
        return ChangeKind.NEW
    cached_number = parse_build_label(cached)
    if (
        snapshot.running != cached.last_build_building
        or snapshot.last_build_number != cached_number
    ):
        return ChangeKind.CHANGED
    return ChangeKind.UNCHANGED
