"""Application factory for the buildwatch Falcon ASGI application.

Usage
-----
Create a health-only app::

    app = create_app()

Create an app that also runs the poll loop and exposes ``/status``::

    from buildwatch.api.app import AppDependencies, create_app

    app = create_app(AppDependencies(service=service))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from buildwatch.api.health.resources import (
    HealthResource,
    ReadyResource,
    StatusResource,
)

if typ.TYPE_CHECKING:
    from buildwatch.api.health.resources import PollStatusProvider
    from buildwatch.monitor.factory import MonitorService

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    service
        Monitor service whose scheduler is run for the app's lifetime.
    status_provider
        Scheduler view backing ``/ready`` and ``/status``; defaults to the
        service's scheduler.
    stale_after_intervals
        Poll intervals after which a master counts as stale.

    """

    service: MonitorService | None = None
    status_provider: PollStatusProvider | None = None
    stale_after_intervals: int = 5

    def resolved_provider(self) -> PollStatusProvider | None:
        """Return the explicit provider, else the service's scheduler."""
        if self.status_provider is not None:
            return self.status_provider
        if self.service is not None:
            return self.service.scheduler
        return None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    ``/health`` and ``/ready`` are always registered. With a status provider
    ``/status`` is added and ``/ready`` reflects poll freshness; with a
    service, the poll loop runs for the lifetime of the app.
    """
    deps = dependencies or AppDependencies()
    middleware: list[object] = []

    if deps.service is not None:
        from buildwatch.api.lifespan import PollingLifespan

        middleware.append(PollingLifespan(deps.service))

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    provider = deps.resolved_provider()
    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready",
        ReadyResource(provider, stale_after_intervals=deps.stale_after_intervals),
    )
    if provider is not None:
        app.add_route("/status", StatusResource(provider))

    return app
