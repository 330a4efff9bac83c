"""Persistence model for the build cache."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import Boolean, DateTime, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from buildwatch.common.time import utcnow

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class Base(DeclarativeBase):
    """Base declarative class for cache models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            msg = "cache timestamps must be timezone-aware"
            raise ValueError(msg)
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class CachedBuild(Base):
    """Last known build per (master, job).

    ``expires_at`` is NULL for records written before TTLs were introduced;
    the TTL migration sweep backfills it.
    """

    __tablename__ = "cached_builds"
    __table_args__ = (UniqueConstraint("master", "job", name="uq_cached_build_job"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    master: Mapped[str] = mapped_column(String(128))
    job: Mapped[str] = mapped_column(String(512))
    last_build_label: Mapped[str] = mapped_column(String(64))
    last_build_building: Mapped[bool] = mapped_column(Boolean, default=False)
    expires_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    def is_expired(self, now: dt.datetime) -> bool:
        """Return True when the record's TTL has elapsed."""
        return self.expires_at is not None and self.expires_at <= now


async def init_cache_storage(engine: AsyncEngine) -> None:
    """Create the cache tables if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
