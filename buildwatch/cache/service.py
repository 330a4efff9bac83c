"""Build cache port and its SQLAlchemy adapter.

The cache holds one record per (master, job) with a per-key TTL. Expired
records behave as if absent, which is what lets the staleness filter and the
change detector agree on when a repository is "new" again.
"""

from __future__ import annotations

import datetime as dt
import logging
import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from buildwatch.common.time import utcnow

from .models import TTL_UNSET, CachedBuildRecord
from .storage import CachedBuild

if typ.TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    type SessionFactory = async_sessionmaker[AsyncSession]

logger = logging.getLogger(__name__)


class BuildCache(typ.Protocol):
    """Interface for the last-known-build store."""

    async def list_known_slugs(self, master: str) -> list[str]:
        """Return every live job name cached for ``master``."""
        ...

    async def get_record(self, master: str, slug: str) -> CachedBuildRecord | None:
        """Return the cached record, or None when absent or expired."""
        ...

    async def put_record(
        self,
        master: str,
        slug: str,
        build_number: int,
        building: bool,  # noqa: FBT001
        ttl_seconds: int | None,
    ) -> None:
        """Replace the record for (master, slug)."""
        ...

    async def get_ttl(self, master: str, slug: str) -> int | None:
        """Return remaining seconds, ``TTL_UNSET``, or None when absent."""
        ...

    async def set_ttl(self, master: str, slug: str, ttl_seconds: int) -> bool:
        """Set a fresh TTL on an existing record; return False if absent."""
        ...


def _expiry(now: dt.datetime, ttl_seconds: int | None) -> dt.datetime | None:
    if ttl_seconds is None:
        return None
    return now + dt.timedelta(seconds=ttl_seconds)


class SqlBuildCache:
    """SQLAlchemy implementation of :class:`BuildCache`."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Create a cache bound to an async session factory."""
        self._session_factory = session_factory
        self._clock = clock

    @staticmethod
    def _select(master: str, slug: str) -> Select[tuple[CachedBuild]]:
        return select(CachedBuild).where(
            CachedBuild.master == master, CachedBuild.job == slug
        )

    async def _load_live(self, master: str, slug: str) -> CachedBuild | None:
        async with self._session_factory() as session:
            row = await session.scalar(self._select(master, slug))
        if row is None or row.is_expired(self._clock()):
            return None
        return row

    async def list_known_slugs(self, master: str) -> list[str]:
        """Return every live job name cached for ``master``."""
        now = self._clock()
        async with self._session_factory() as session:
            rows = (
                await session.scalars(
                    select(CachedBuild)
                    .where(CachedBuild.master == master)
                    .order_by(CachedBuild.job)
                )
            ).all()
        return [row.job for row in rows if not row.is_expired(now)]

    async def get_record(self, master: str, slug: str) -> CachedBuildRecord | None:
        """Return the cached record, or None when absent or expired."""
        row = await self._load_live(master, slug)
        if row is None:
            return None
        return CachedBuildRecord(
            master=master,
            slug=slug,
            last_build_label=row.last_build_label,
            last_build_building=row.last_build_building,
        )

    async def put_record(
        self,
        master: str,
        slug: str,
        build_number: int,
        building: bool,  # noqa: FBT001
        ttl_seconds: int | None,
    ) -> None:
        """Upsert the record for (master, slug); last writer wins.

        ``ttl_seconds=None`` writes a record without expiry, the legacy shape
        handled by the TTL migration sweep.
        """
        try:
            await self._upsert(master, slug, build_number, building, ttl_seconds)
        except IntegrityError:
            # A concurrent writer inserted the row first; retry as an update.
            logger.debug("Retrying cache upsert for %s:%s after conflict", master, slug)
            await self._upsert(master, slug, build_number, building, ttl_seconds)

    async def _upsert(
        self,
        master: str,
        slug: str,
        build_number: int,
        building: bool,  # noqa: FBT001
        ttl_seconds: int | None,
    ) -> None:
        expires_at = _expiry(self._clock(), ttl_seconds)
        async with self._session_factory() as session, session.begin():
            row = await session.scalar(self._select(master, slug))
            if row is None:
                session.add(
                    CachedBuild(
                        master=master,
                        job=slug,
                        last_build_label=str(build_number),
                        last_build_building=building,
                        expires_at=expires_at,
                    )
                )
                return
            row.last_build_label = str(build_number)
            row.last_build_building = building
            row.expires_at = expires_at

    async def get_ttl(self, master: str, slug: str) -> int | None:
        """Return remaining seconds, ``TTL_UNSET``, or None when absent."""
        row = await self._load_live(master, slug)
        if row is None:
            return None
        if row.expires_at is None:
            return TTL_UNSET
        remaining = (row.expires_at - self._clock()).total_seconds()
        return max(int(remaining), 0)

    async def set_ttl(self, master: str, slug: str, ttl_seconds: int) -> bool:
        """Set a fresh TTL on an existing record; return False if absent."""
        now = self._clock()
        async with self._session_factory() as session, session.begin():
            row = await session.scalar(self._select(master, slug))
            if row is None or row.is_expired(now):
                return False
            row.expires_at = _expiry(now, ttl_seconds)
        return True
