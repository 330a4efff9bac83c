"""Build lifecycle events and the sinks that deliver them."""

from __future__ import annotations

from .echo import EchoEventSink, EchoSinkConfig
from .errors import EventSinkError
from .models import (
    BuildEvent,
    BuildInfo,
    EventEnvelope,
    backfilled_build_event,
    build_url,
    current_build_event,
    to_envelope,
)
from .sink import EventSink, RecordingEventSink

__all__ = [
    "BuildEvent",
    "BuildInfo",
    "EchoEventSink",
    "EchoSinkConfig",
    "EventEnvelope",
    "EventSink",
    "EventSinkError",
    "RecordingEventSink",
    "backfilled_build_event",
    "build_url",
    "current_build_event",
    "to_envelope",
]
