"""Health probe and poll-status resources.

``/health`` is a plain liveness probe. ``/ready`` and ``/status`` read the
scheduler's per-master poll contexts: a master whose last poll is older than
a few poll intervals makes the instance unready, while an unknown last poll
(before the first cycle, or while out of service) does not.
"""

from __future__ import annotations

import datetime as dt
import typing as typ
from http import HTTPStatus

from buildwatch.common.time import utcnow

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response

    from buildwatch.monitor.scheduler import PollContext

__all__ = [
    "HealthResource",
    "PollStatusProvider",
    "ReadyResource",
    "StatusResource",
    "stale_masters",
]


class PollStatusProvider(typ.Protocol):
    """Read-only view of scheduler freshness."""

    @property
    def poll_interval_seconds(self) -> int:
        """Return the delay between ticks."""
        ...

    @property
    def contexts(self) -> cabc.Mapping[str, PollContext]:
        """Return the poll context of every master."""
        ...


def stale_masters(
    provider: PollStatusProvider,
    *,
    now: dt.datetime,
    stale_after_intervals: int,
) -> list[str]:
    """Return masters whose last known poll is older than allowed."""
    limit = dt.timedelta(
        seconds=provider.poll_interval_seconds * stale_after_intervals
    )
    return sorted(
        master
        for master, context in provider.contexts.items()
        if context.last_poll is not None and now - context.last_poll > limit
    )


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe reporting stale polling as unavailable.

    Without a status provider (health-only mode) the resource is always
    ready.
    """

    def __init__(
        self,
        provider: PollStatusProvider | None = None,
        *,
        stale_after_intervals: int = 5,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Bind the probe to an optional scheduler view."""
        self._provider = provider
        self._stale_after_intervals = stale_after_intervals
        self._clock = clock

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Responds 200 ``{"status": "ready"}`` or 503 with the stale masters.
        """
        if self._provider is not None:
            stale = stale_masters(
                self._provider,
                now=self._clock(),
                stale_after_intervals=self._stale_after_intervals,
            )
            if stale:
                resp.media = {"status": "stale", "masters": stale}
                resp.status = HTTPStatus.SERVICE_UNAVAILABLE
                return
        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK


class StatusResource:
    """Expose the poll interval and each master's last poll marker."""

    def __init__(self, provider: PollStatusProvider) -> None:
        """Bind the resource to a scheduler view."""
        self._provider = provider

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /status requests."""
        resp.media = {
            "poll_interval_seconds": self._provider.poll_interval_seconds,
            "masters": {
                master: {
                    "last_poll": (
                        context.last_poll.isoformat() if context.last_poll else None
                    )
                }
                for master, context in sorted(self._provider.contexts.items())
            },
        }
        resp.status = HTTPStatus.OK
