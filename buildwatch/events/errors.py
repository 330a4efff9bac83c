"""Event delivery errors."""

from __future__ import annotations


class EventSinkError(RuntimeError):
    """Raised when an event could not be handed to the sink."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def delivery_failed(cls, status_code: int) -> EventSinkError:
        """Return an error for a rejected event post."""
        return cls(
            f"Event sink rejected event with HTTP {status_code}",
            status_code=status_code,
        )
