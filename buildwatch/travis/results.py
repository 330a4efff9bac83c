"""Classification of Travis build states.

Travis reports a build's lifecycle as a lowercase state string. The monitor
needs two derived views of it: whether the build is still running (compared
against the cached ``building`` flag) and the result reported to event
consumers.
"""

from __future__ import annotations

import enum


class BuildResult(enum.StrEnum):
    """Result vocabulary shared with downstream build event consumers."""

    BUILDING = "BUILDING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    ABORTED = "ABORTED"
    NOT_BUILT = "NOT_BUILT"


RUNNING_STATES: frozenset[str] = frozenset({"created", "received", "started"})

_RESULT_BY_STATE: dict[str, BuildResult] = {
    "passed": BuildResult.SUCCESS,
    "failed": BuildResult.FAILURE,
    "errored": BuildResult.FAILURE,
    "canceled": BuildResult.ABORTED,
}


def is_running(state: str | None) -> bool:
    """Return True when ``state`` describes a build that has not finished."""
    return state is not None and state.lower() in RUNNING_STATES


def result_for_state(state: str | None) -> BuildResult:
    """Map a Travis state onto a :class:`BuildResult`.

    Examples
    --------
    >>> result_for_state("passed")
    <BuildResult.SUCCESS: 'SUCCESS'>
    >>> result_for_state("started")
    <BuildResult.BUILDING: 'BUILDING'>

    """
    if is_running(state):
        return BuildResult.BUILDING
    if state is None:
        return BuildResult.NOT_BUILT
    return _RESULT_BY_STATE.get(state.lower(), BuildResult.NOT_BUILT)
