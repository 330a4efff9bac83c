"""HTTP event sink posting Echo-compatible envelopes."""

from __future__ import annotations

import dataclasses
import os
import typing as typ

import httpx
import msgspec

from .errors import EventSinkError
from .models import to_envelope

if typ.TYPE_CHECKING:
    from .models import BuildEvent

_HTTP_ERROR_STATUS_THRESHOLD = 400


@dataclasses.dataclass(frozen=True, slots=True)
class EchoSinkConfig:
    """Configuration for :class:`EchoEventSink`."""

    url: str
    timeout_s: float = 10.0
    user_agent: str = "buildwatch/0.1"

    @classmethod
    def from_env(cls) -> EchoSinkConfig | None:
        """Return configuration from ``BUILDWATCH_ECHO_URL``, if set."""
        url = os.environ.get("BUILDWATCH_ECHO_URL", "").strip()
        if not url:
            return None
        return cls(url=url)


class EchoEventSink:
    """Post each build event as JSON to an Echo-style ``/`` endpoint."""

    def __init__(
        self,
        config: EchoSinkConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the sink with its endpoint configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._encoder = msgspec.json.Encoder()

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def publish(self, event: BuildEvent) -> None:
        """Encode ``event`` and post it to the configured endpoint."""
        body = self._encoder.encode(to_envelope(event))
        response = await self._client.post(
            self._config.url,
            content=body,
            headers={
                "Content-Type": "application/json",
                "User-Agent": self._config.user_agent,
            },
        )
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise EventSinkError.delivery_failed(response.status_code)
