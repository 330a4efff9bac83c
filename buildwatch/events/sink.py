"""EventSink protocol for delivering build events.

Adapters implement this port to hand events to a bus or an HTTP endpoint.
The monitor treats a missing sink as "emission disabled" rather than as an
error, so the protocol itself has no notion of availability.
"""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from .models import BuildEvent


@typ.runtime_checkable
class EventSink(typ.Protocol):
    """Protocol for publishing build events."""

    async def publish(self, event: BuildEvent) -> None:
        """Deliver a single event; raise on delivery failure."""
        ...


class RecordingEventSink:
    """In-memory sink keeping published events in order.

    Useful for dry runs from the CLI and for tests.
    """

    def __init__(self) -> None:
        """Start with no recorded events."""
        self.events: list[BuildEvent] = []

    async def publish(self, event: BuildEvent) -> None:
        """Append ``event`` to :attr:`events`."""
        self.events.append(event)
