"""Typed snapshots of Travis CI state used by the build monitor."""

from __future__ import annotations

import dataclasses
import typing as typ

from .results import BuildResult, is_running, result_for_state

if typ.TYPE_CHECKING:
    import datetime as dt


@dataclasses.dataclass(frozen=True, slots=True)
class RepositorySnapshot:
    """Latest-build view of one repository, fetched fresh each cycle."""

    slug: str
    last_build_number: int
    last_build_state: str
    last_build_started_at: dt.datetime | None = None
    last_build_id: int | None = None
    last_build_duration: int | None = None

    @property
    def running(self) -> bool:
        """Return True when the latest build is still in progress."""
        return is_running(self.last_build_state)

    @property
    def result(self) -> BuildResult:
        """Return the classified result of the latest build."""
        return result_for_state(self.last_build_state)


@dataclasses.dataclass(frozen=True, slots=True)
class BuildDetail:
    """A single build fetched by number while backfilling missed builds.

    ``state`` is ``None`` while Travis is still populating the build.
    """

    id: int
    number: int
    state: str | None
    duration: int | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class CommitRef:
    """Commit metadata for a build, used to derive branch-qualified slugs."""

    sha: str
    branch: str | None
    tag: str | None = None
    is_pull_request: bool = False
