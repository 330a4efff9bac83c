"""ASGI lifespan middleware running the poll loop beside the HTTP surface.

Usage
-----
Register the middleware when creating the Falcon app::

    app = falcon.asgi.App(middleware=[PollingLifespan(service)])

"""

from __future__ import annotations

import asyncio
import contextlib
import typing as typ

from buildwatch.logging import get_logger, log_exception, log_info

if typ.TYPE_CHECKING:
    from buildwatch.monitor.factory import MonitorService

__all__ = ["PollingLifespan"]

logger = get_logger(__name__)


class PollingLifespan:
    """Falcon middleware starting and stopping the polling scheduler.

    On ASGI startup the cache storage is prepared and
    ``PollingScheduler.run_forever`` is started as a background task; on
    shutdown the task is asked to stop between ticks and the service's
    resources are released.
    """

    def __init__(self, service: MonitorService) -> None:
        """Initialize the middleware with the service to run."""
        self._service = service
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    async def process_startup(self, _scope: object, _event: object) -> None:
        """Prepare storage and start polling."""
        await self._service.prepare()
        self._stop.clear()
        self._task = asyncio.create_task(
            self._service.scheduler.run_forever(self._stop),
            name="buildwatch-poller",
        )
        self._task.add_done_callback(self._report_crash)
        log_info(
            logger,
            "Polling started for masters: %s",
            ", ".join(self._service.monitor.masters),
        )

    async def process_shutdown(self, _scope: object, _event: object) -> None:
        """Stop polling and release resources."""
        self._stop.set()
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        await self._service.aclose()
        log_info(logger, "Polling stopped")

    @staticmethod
    def _report_crash(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log_exception(logger, "Poll loop terminated unexpectedly", exc)
