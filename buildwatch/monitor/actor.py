"""Dramatiq actor for on-demand polling cycles.

The broker is chosen when this module is imported. ``BUILDWATCH_BROKER_URL``
points the actor at RabbitMQ. Without it, an in-memory ``StubBroker`` is used
under pytest or when ``BUILDWATCH_STUB_BROKER`` is truthy; any other
configuration fails the import with ``BrokerConfigError``.

Usage
-----
Queue a cycle for one master outside the regular schedule::

    poll_master_job.send(
        database_url="postgresql+asyncpg://...",
        masters_path="/etc/buildwatch/masters.yaml",
        master="travis-public",
    )

"""

from __future__ import annotations

import asyncio
import os
import sys
import typing as typ

import dramatiq
from dramatiq.brokers.rabbitmq import RabbitmqBroker
from dramatiq.brokers.stub import StubBroker

from .errors import BrokerConfigError
from .factory import build_service

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from .cycle import CycleResult

BROKER_URL_ENV = "BUILDWATCH_BROKER_URL"
STUB_BROKER_ENV = "BUILDWATCH_STUB_BROKER"
_TRUTHY = frozenset({"1", "true", "yes", "on"})


def select_broker(env: cabc.Mapping[str, str] | None = None) -> dramatiq.Broker:
    """Return the broker polling jobs are queued on.

    Raises
    ------
    BrokerConfigError
        If no broker URL is set and a stub broker is not allowed.

    """
    source = os.environ if env is None else env
    url = source.get(BROKER_URL_ENV, "").strip()
    if url:
        return RabbitmqBroker(url=url)
    allow_stub = source.get(STUB_BROKER_ENV, "").strip().lower() in _TRUTHY
    if allow_stub or "pytest" in sys.modules:
        return StubBroker()
    raise BrokerConfigError.missing_url(BROKER_URL_ENV)


dramatiq.set_broker(select_broker())


async def _run_cycle_async(
    database_url: str, masters_path: str, master: str
) -> CycleResult:
    service = build_service(database_url, masters_path)
    try:
        await service.prepare()
        return await service.monitor.run_cycle(master)
    finally:
        await service.aclose()


@dramatiq.actor
def poll_master_job(database_url: str, masters_path: str, master: str) -> list[str]:
    """Run one polling cycle for ``master`` and return the changed slugs.

    Parameters
    ----------
    database_url
        SQLAlchemy URL of the build cache database.
    masters_path
        Path to the masters YAML file.
    master
        Name of the master to poll.

    Returns
    -------
    list[str]
        Slugs whose latest build changed during the cycle.

    """
    result = asyncio.run(_run_cycle_async(database_url, masters_path, master))
    return [change.current.slug for change in result.changes]
