"""Periodic driver for polling cycles.

The scheduler owns the ticker and the per-master poll state; the monitor
itself only exposes single-shot cycles. Each tick runs one cycle for every
master concurrently and waits for all of them before sleeping, so cycles for
the same master never overlap.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import typing as typ

from buildwatch.common.time import utcnow

from .observability import MonitorEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .cycle import BuildMonitor, CycleResult
    from .liveness import LivenessSignal

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class PollContext:
    """Poll freshness for one master.

    ``last_poll`` is None when unknown: before the first cycle, and whenever
    the instance is out of service.
    """

    master: str
    last_poll: dt.datetime | None = None

    def advanced(self, started_at: dt.datetime) -> PollContext:
        """Return a context whose last poll is ``started_at``."""
        return dataclasses.replace(self, last_poll=started_at)

    def reset(self) -> PollContext:
        """Return a context with an unknown last poll."""
        return dataclasses.replace(self, last_poll=None)


class PollingScheduler:
    """Drive :class:`BuildMonitor` cycles on a fixed interval."""

    def __init__(
        self,
        monitor: BuildMonitor,
        *,
        liveness: LivenessSignal | None = None,
        event_logger: MonitorEventLogger | None = None,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Create a scheduler for every master known to ``monitor``.

        Without a liveness signal the instance is assumed to be in service.
        """
        self._monitor = monitor
        self._liveness = liveness
        self._event_logger = event_logger or MonitorEventLogger()
        self._clock = clock
        self._contexts: cabc.Mapping[str, PollContext] = {
            master: PollContext(master=master) for master in monitor.masters
        }

    @property
    def poll_interval_seconds(self) -> int:
        """Return the delay between ticks."""
        return self._monitor.config.poll_interval_seconds

    @property
    def contexts(self) -> cabc.Mapping[str, PollContext]:
        """Return the current poll context of every master."""
        return self._contexts

    def last_poll(self, master: str) -> dt.datetime | None:
        """Return the last poll marker for ``master``."""
        return self._contexts[master].last_poll

    async def is_in_service(self) -> bool:
        """Return whether this instance should poll on this tick."""
        if self._liveness is None:
            logger.debug("No liveness signal, assuming in service")
            return True
        try:
            return await self._liveness.is_live()
        except Exception:
            logger.exception("Liveness signal failed; treating as out of service")
            return False

    async def sweep_ttls(self) -> dict[str, int]:
        """Run the TTL migration sweep for every master."""
        migrated: dict[str, int] = {}
        for master in self._monitor.masters:
            try:
                migrated[master] = await self._monitor.sweep_ttls(master)
            except Exception:
                logger.exception("TTL migration sweep failed (master: %s)", master)
        return migrated

    async def tick(self) -> dict[str, CycleResult]:
        """Run one cycle per master, or reset freshness when out of service."""
        if not await self.is_in_service():
            last_polls = [c.last_poll for c in self._contexts.values() if c.last_poll]
            self._event_logger.log_poll_skipped(max(last_polls, default=None))
            self._contexts = {
                master: context.reset() for master, context in self._contexts.items()
            }
            return {}

        tick_started = self._clock()
        masters = list(self._contexts)
        gathered = await asyncio.gather(
            *(self._monitor.run_cycle(master) for master in masters),
            return_exceptions=True,
        )

        results: dict[str, CycleResult] = {}
        contexts = dict(self._contexts)
        for master, outcome in zip(masters, gathered, strict=True):
            if isinstance(outcome, Exception):
                logger.error(
                    "Polling cycle failed unexpectedly (master: %s)",
                    master,
                    exc_info=outcome,
                )
                contexts[master] = contexts[master].advanced(tick_started)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            results[master] = outcome
            contexts[master] = contexts[master].advanced(outcome.started_at)
        self._contexts = contexts
        return results

    async def run_forever(self, stop: asyncio.Event) -> None:
        """Sweep TTLs once, then tick every poll interval until ``stop`` is set."""
        logger.info(
            "Started polling %d master(s) every %ds",
            len(self._contexts),
            self.poll_interval_seconds,
        )
        await self.sweep_ttls()
        while not stop.is_set():
            await self.tick()
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval_seconds)
            except TimeoutError:
                continue
        logger.info("Stopped polling")
