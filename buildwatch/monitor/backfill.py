"""Backfill of builds that completed between two polls.

A single poll interval can span several builds of one repository. Only the
latest is visible in the repository snapshot, so the builds in between are
fetched individually and reported in ascending order before the current
build's own event.
"""

from __future__ import annotations

import typing as typ

from buildwatch.events.models import backfilled_build_event

if typ.TYPE_CHECKING:
    from buildwatch.events.sink import EventSink
    from buildwatch.travis.client import SnapshotSource
    from buildwatch.travis.models import RepositorySnapshot

    from .observability import MonitorEventLogger


def missing_build_numbers(cached: int, current: int, *, threshold: int = 1) -> range:
    """Return the build numbers to backfill between ``cached`` and ``current``.

    Examples
    --------
    >>> list(missing_build_numbers(5, 8))
    [6, 7]
    >>> list(missing_build_numbers(7, 8))
    []

    """
    next_expected = cached + threshold
    if next_expected < current:
        return range(next_expected, current)
    return range(0)


class BackfillResolver:
    """Publish events for the builds skipped since the cached build."""

    def __init__(
        self,
        source: SnapshotSource,
        sink: EventSink,
        *,
        master: str,
        event_logger: MonitorEventLogger,
        threshold: int = 1,
    ) -> None:
        """Bind the resolver to one master's source and the event sink."""
        self._source = source
        self._sink = sink
        self._master = master
        self._event_logger = event_logger
        self._threshold = threshold

    async def backfill(
        self, snapshot: RepositorySnapshot, cached_number: int
    ) -> tuple[int, ...]:
        """Publish events for missed builds and return their numbers.

        Builds are fetched and published one at a time so events for a
        repository leave in ascending build order. A build without a state
        is still being populated upstream and is skipped. The current build
        is never published here.
        """
        published: list[int] = []
        for number in missing_build_numbers(
            cached_number, snapshot.last_build_number, threshold=self._threshold
        ):
            detail = await self._source.fetch_build_detail(snapshot.slug, number)
            if detail is None or not detail.state:
                continue
            await self._sink.publish(
                backfilled_build_event(
                    snapshot.slug,
                    detail,
                    master=self._master,
                    base_url=self._source.base_url,
                )
            )
            self._event_logger.log_build_backfilled(self._master, snapshot.slug, number)
            published.append(number)
        return tuple(published)
