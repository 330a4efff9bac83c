"""Liveness signals gating the poll loop.

An instance that is not serving traffic skips its polling ticks so a
replica taken out of rotation neither reports stale freshness nor publishes
duplicate events. There is no lock between replicas; this is a cooperative
check made once per tick.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import typing as typ

import httpx

logger = logging.getLogger(__name__)

_IN_SERVICE_STATUS = "UP"


class LivenessSignal(typ.Protocol):
    """Interface reporting whether this instance should poll."""

    async def is_live(self) -> bool:
        """Return True when the instance is serving traffic."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class DiscoveryStatusConfig:
    """Configuration for :class:`DiscoveryStatusSignal`."""

    url: str
    timeout_s: float = 5.0

    @classmethod
    def from_env(cls) -> DiscoveryStatusConfig | None:
        """Return configuration from ``BUILDWATCH_DISCOVERY_URL``, if set."""
        url = os.environ.get("BUILDWATCH_DISCOVERY_URL", "").strip()
        if not url:
            return None
        return cls(url=url)


class DiscoveryStatusSignal:
    """Read this instance's remote status from a discovery endpoint.

    The endpoint must answer with a JSON object whose ``status`` field is
    ``"UP"`` while the instance is in service. Any other answer, including
    transport failures, counts as out of service.
    """

    def __init__(
        self,
        config: DiscoveryStatusConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the signal with its status endpoint."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def is_live(self) -> bool:
        """Return True when the discovery status is ``UP``."""
        try:
            response = await self._client.get(self._config.url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Discovery status unavailable at %s: %s", self._config.url, exc
            )
            return False

        status = payload.get("status") if isinstance(payload, dict) else None
        logger.info("Current remote status %s", status)
        return status == _IN_SERVICE_STATUS
