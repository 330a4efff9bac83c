"""Configuration for the polling build monitor.

Usage
-----
Create a configuration with defaults:

>>> config = MonitorConfig()
>>> config.cached_job_ttl_seconds
5184000

Or load from environment variables:

>>> import os
>>> os.environ["BUILDWATCH_POLL_INTERVAL_SECONDS"] = "30"
>>> MonitorConfig.from_env().poll_interval_seconds
30

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import os

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


@dc.dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Knobs consumed by the cycle orchestrator and scheduler.

    Attributes
    ----------
    poll_interval_seconds
        Delay between polling ticks. Default is 60 seconds.
    cached_job_ttl_days
        Retention window. Cache records expire after this many days and
        repositories whose last build started before it are not processed.
        Default is 60 days.
    new_build_event_threshold
        Gap between the cached and the next expected build number. Builds
        from ``cached + threshold`` up to (excluding) the current build are
        backfilled. Default is 1.
    repository_sync_enabled
        Whether each cycle ends by asking the CI service to resync the
        account's repository list. Default is False.
    max_concurrent_repositories
        Upper bound on repositories processed concurrently within a cycle.
    started_at_grace
        Grace added to the staleness threshold because Travis can report a
        build before its start time is populated.
    stale_after_intervals
        Number of poll intervals after which ``/ready`` reports a master's
        last poll as stale.

    """

    poll_interval_seconds: int = 60
    cached_job_ttl_days: int = 60
    new_build_event_threshold: int = 1
    repository_sync_enabled: bool = False
    max_concurrent_repositories: int = 10
    started_at_grace: dt.timedelta = dt.timedelta(seconds=30)
    stale_after_intervals: int = 5

    @property
    def cached_job_ttl_seconds(self) -> int:
        """Return the retention window in seconds, used as the cache TTL."""
        return int(dt.timedelta(days=self.cached_job_ttl_days).total_seconds())

    @property
    def retention(self) -> dt.timedelta:
        """Return the retention window as a timedelta."""
        return dt.timedelta(days=self.cached_job_ttl_days)

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        """Read a positive integer env var, falling back to a default."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            msg = f"{env_var} must be an integer, got: {raw!r}"
            raise ValueError(msg) from exc
        if value < 1:
            msg = f"{env_var} must be positive, got: {value}"
            raise ValueError(msg)
        return value

    @staticmethod
    def _parse_bool(env_var: str, *, default: bool) -> bool:
        raw = os.environ.get(env_var, "").strip().lower()
        if not raw:
            return default
        if raw in _TRUTHY:
            return True
        if raw in _FALSY:
            return False
        msg = f"{env_var} must be a boolean, got: {raw!r}"
        raise ValueError(msg)

    @classmethod
    def from_env(cls) -> MonitorConfig:
        """Create configuration from environment variables.

        Reads ``BUILDWATCH_POLL_INTERVAL_SECONDS``,
        ``BUILDWATCH_CACHED_JOB_TTL_DAYS``,
        ``BUILDWATCH_NEW_BUILD_EVENT_THRESHOLD``,
        ``BUILDWATCH_MAX_CONCURRENT_REPOSITORIES`` (positive integers) and
        ``BUILDWATCH_REPOSITORY_SYNC_ENABLED`` (boolean).

        Raises
        ------
        ValueError
            If any variable is set to an invalid value.

        """
        defaults = cls()
        return cls(
            poll_interval_seconds=cls._parse_positive_int(
                "BUILDWATCH_POLL_INTERVAL_SECONDS", defaults.poll_interval_seconds
            ),
            cached_job_ttl_days=cls._parse_positive_int(
                "BUILDWATCH_CACHED_JOB_TTL_DAYS", defaults.cached_job_ttl_days
            ),
            new_build_event_threshold=cls._parse_positive_int(
                "BUILDWATCH_NEW_BUILD_EVENT_THRESHOLD",
                defaults.new_build_event_threshold,
            ),
            repository_sync_enabled=cls._parse_bool(
                "BUILDWATCH_REPOSITORY_SYNC_ENABLED",
                default=defaults.repository_sync_enabled,
            ),
            max_concurrent_repositories=cls._parse_positive_int(
                "BUILDWATCH_MAX_CONCURRENT_REPOSITORIES",
                defaults.max_concurrent_repositories,
            ),
        )
