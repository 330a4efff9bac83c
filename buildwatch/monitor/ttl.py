"""Migration sweep giving legacy cache records a TTL.

Records written before TTLs were introduced never expire. The sweep is
idempotent and cheap, so it runs for every master whenever the scheduler
starts; it can be dropped once no such records remain.
"""

from __future__ import annotations

import logging
import typing as typ

from buildwatch.cache.models import TTL_UNSET

from .observability import MonitorEventLogger

if typ.TYPE_CHECKING:
    from buildwatch.cache.service import BuildCache

logger = logging.getLogger(__name__)


async def sweep_missing_ttls(
    cache: BuildCache,
    master: str,
    ttl_seconds: int,
    *,
    event_logger: MonitorEventLogger | None = None,
) -> int:
    """Set ``ttl_seconds`` on every record of ``master`` lacking a TTL.

    Returns the number of records migrated.
    """
    events = event_logger or MonitorEventLogger()
    logger.info("Searching for cached builds without TTL (master: %s)", master)
    migrated = 0
    for slug in await cache.list_known_slugs(master):
        if await cache.get_ttl(master, slug) != TTL_UNSET:
            continue
        if await cache.set_ttl(master, slug, ttl_seconds):
            events.log_ttl_migrated(master, slug, ttl_seconds)
            migrated += 1
    return migrated
