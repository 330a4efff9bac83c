"""Build lifecycle events handed to the event sink."""

from __future__ import annotations

import typing as typ

import msgspec

from buildwatch.travis.results import BuildResult, is_running, result_for_state

if typ.TYPE_CHECKING:
    from buildwatch.travis.models import BuildDetail, RepositorySnapshot

EVENT_SOURCE = "buildwatch"
BUILD_TYPE = "travis"


class BuildInfo(msgspec.Struct, frozen=True, kw_only=True, rename="camel"):
    """Build payload nested under ``project.lastBuild`` on the wire.

    Attributes
    ----------
    building : bool
        Whether the build was still running when observed.
    number : int
        Build number within the repository.
    duration : int | None
        Build duration in seconds, when Travis has reported one.
    result : BuildResult
        Classified build result.
    name : str
        Project (repository or branch-qualified) slug.
    url : str
        Deep link to the build on the CI web UI.

    """

    building: bool
    number: int
    duration: int | None
    result: BuildResult
    name: str
    url: str


class BuildEvent(msgspec.Struct, frozen=True, kw_only=True):
    """One build observation addressed to a project on a master."""

    project: str
    master: str
    build: BuildInfo
    type: str = BUILD_TYPE


class _Project(msgspec.Struct, frozen=True, kw_only=True, rename="camel"):
    name: str
    last_build: BuildInfo


class _Content(msgspec.Struct, frozen=True, kw_only=True):
    project: _Project
    master: str
    type: str


class _Details(msgspec.Struct, frozen=True, kw_only=True):
    type: str = "build"
    source: str = EVENT_SOURCE


class EventEnvelope(msgspec.Struct, frozen=True, kw_only=True):
    """Echo-compatible envelope wrapping a :class:`BuildEvent`."""

    details: _Details
    content: _Content


def build_url(base_url: str, slug: str, build_id: int | None) -> str:
    """Return the deep link to a build on the CI web UI."""
    return f"{base_url.rstrip('/')}/{slug}/builds/{build_id}"


def current_build_event(
    snapshot: RepositorySnapshot,
    *,
    master: str,
    base_url: str,
    project: str | None = None,
) -> BuildEvent:
    """Build the event describing a repository's latest build.

    ``project`` overrides the addressed slug for branch-qualified duplicates;
    the deep link always points at the canonical repository.
    """
    name = project or snapshot.slug
    return BuildEvent(
        project=name,
        master=master,
        build=BuildInfo(
            building=snapshot.running,
            number=snapshot.last_build_number,
            duration=snapshot.last_build_duration,
            result=snapshot.result,
            name=name,
            url=build_url(base_url, snapshot.slug, snapshot.last_build_id),
        ),
    )


def backfilled_build_event(
    slug: str,
    detail: BuildDetail,
    *,
    master: str,
    base_url: str,
) -> BuildEvent:
    """Build the event for a build that completed between two polls."""
    return BuildEvent(
        project=slug,
        master=master,
        build=BuildInfo(
            building=is_running(detail.state),
            number=detail.number,
            duration=detail.duration,
            result=result_for_state(detail.state),
            name=slug,
            url=build_url(base_url, slug, detail.id),
        ),
    )


def to_envelope(event: BuildEvent) -> EventEnvelope:
    """Wrap ``event`` in the envelope expected by Echo-style consumers."""
    return EventEnvelope(
        details=_Details(),
        content=_Content(
            project=_Project(name=event.project, last_build=event.build),
            master=event.master,
            type=event.type,
        ),
    )
