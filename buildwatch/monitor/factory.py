"""Wiring of the build monitor from configuration.

Collaborators are constructed explicitly here and handed to the monitor and
scheduler; optional ones (event sink, liveness signal) are simply omitted
when their environment variables are unset.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from buildwatch.cache import SqlBuildCache, init_cache_storage
from buildwatch.events import EchoEventSink, EchoSinkConfig
from buildwatch.travis import TravisClient

from .config import MonitorConfig
from .cycle import BuildMonitor
from .liveness import DiscoveryStatusConfig, DiscoveryStatusSignal
from .masters import load_masters
from .scheduler import PollingScheduler

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from buildwatch.events.sink import EventSink

type Closer = typ.Callable[[], typ.Awaitable[None]]


class MonitorService:
    """Own the monitor, its scheduler and the resources behind them."""

    def __init__(
        self,
        *,
        engine: AsyncEngine,
        monitor: BuildMonitor,
        scheduler: PollingScheduler,
        closers: typ.Sequence[Closer] = (),
    ) -> None:
        """Bundle already-constructed components."""
        self.engine = engine
        self.monitor = monitor
        self.scheduler = scheduler
        self._closers = tuple(closers)

    async def prepare(self) -> None:
        """Create the cache tables if needed."""
        await init_cache_storage(self.engine)

    async def aclose(self) -> None:
        """Close HTTP clients and dispose of the database engine."""
        for close in self._closers:
            await close()
        await self.engine.dispose()


def build_service(
    database_url: str,
    masters_path: Path | str,
    *,
    config: MonitorConfig | None = None,
    sink: EventSink | None = None,
) -> MonitorService:
    """Build a :class:`MonitorService` from a database URL and masters file.

    ``sink`` overrides the Echo sink configured by ``BUILDWATCH_ECHO_URL``.
    """
    resolved_config = config or MonitorConfig.from_env()
    travis_configs = {
        master.name: master.travis_config() for master in load_masters(masters_path)
    }
    echo_config = EchoSinkConfig.from_env() if sink is None else None
    discovery_config = DiscoveryStatusConfig.from_env()
    engine = create_async_engine(database_url)

    # HTTP clients are opened last, once nothing above can raise.
    closers: list[Closer] = []
    sources: dict[str, TravisClient] = {}
    for name, travis_config in travis_configs.items():
        client = TravisClient(travis_config)
        sources[name] = client
        closers.append(client.aclose)

    if echo_config is not None:
        echo = EchoEventSink(echo_config)
        closers.append(echo.aclose)
        sink = echo

    liveness = None
    if discovery_config is not None:
        liveness = DiscoveryStatusSignal(discovery_config)
        closers.append(liveness.aclose)

    cache = SqlBuildCache(async_sessionmaker(engine, expire_on_commit=False))
    monitor = BuildMonitor(sources, cache, sink=sink, config=resolved_config)
    scheduler = PollingScheduler(monitor, liveness=liveness)
    return MonitorService(
        engine=engine, monitor=monitor, scheduler=scheduler, closers=closers
    )
