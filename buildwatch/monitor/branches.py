"""Branch-qualified duplicates of the current build."""

from __future__ import annotations

import logging
import typing as typ

from buildwatch.events.models import current_build_event

if typ.TYPE_CHECKING:
    from buildwatch.cache.service import BuildCache
    from buildwatch.events.sink import EventSink
    from buildwatch.travis.client import SnapshotSource
    from buildwatch.travis.models import CommitRef, RepositorySnapshot

logger = logging.getLogger(__name__)


def branched_repo_slug(slug: str, commit: CommitRef) -> str:
    """Return the branch-qualified slug for a build's commit.

    Examples
    --------
    >>> from buildwatch.travis.models import CommitRef
    >>> branched_repo_slug("octo/reef", CommitRef(sha="abc", branch="main"))
    'octo/reef/main'
    >>> branched_repo_slug(
    ...     "octo/reef", CommitRef(sha="abc", branch="fix", is_pull_request=True)
    ... )
    'octo/reef/pull_request_fix'

    Tag builds and commits without a branch keep the canonical slug.

    """
    if commit.tag or not commit.branch:
        return slug
    if commit.is_pull_request:
        return f"{slug}/pull_request_{commit.branch}"
    return f"{slug}/{commit.branch}"


class BranchSlugResolver:
    """Mirror the current build under its branch-qualified slug.

    Subscribers can then filter per branch without the snapshot source being
    branch-aware. Backfilled builds are deliberately not mirrored.
    """

    def __init__(
        self,
        source: SnapshotSource,
        cache: BuildCache,
        sink: EventSink | None,
        *,
        master: str,
        ttl_seconds: int,
    ) -> None:
        """Bind the resolver to one master's collaborators."""
        self._source = source
        self._cache = cache
        self._sink = sink
        self._master = master
        self._ttl_seconds = ttl_seconds

    async def resolve(self, snapshot: RepositorySnapshot) -> str | None:
        """Publish and store the branch duplicate; return its slug if any."""
        commit = await self._source.resolve_commit(
            snapshot.slug, snapshot.last_build_number
        )
        if commit is None:
            return None
        branched = branched_repo_slug(snapshot.slug, commit)
        if branched == snapshot.slug:
            return None

        if self._sink is not None:
            logger.info(
                "Pushing event for %s:%s:%d",
                self._master,
                branched,
                snapshot.last_build_number,
            )
            await self._sink.publish(
                current_build_event(
                    snapshot,
                    master=self._master,
                    base_url=self._source.base_url,
                    project=branched,
                )
            )
        await self._cache.put_record(
            self._master,
            branched,
            snapshot.last_build_number,
            snapshot.running,
            self._ttl_seconds,
        )
        return branched
