"""Travis CI client errors."""

from __future__ import annotations

# HTTP status code threshold for server errors (5xx)
_HTTP_SERVER_ERROR_THRESHOLD = 500


class TravisAPIError(RuntimeError):
    """Raised when the Travis API returns an error response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise with a message and optional HTTP status code."""
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """Return True when the failure is worth retrying on the next cycle."""
        return (
            self.status_code is not None
            and self.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        )

    @classmethod
    def http_error(cls, status_code: int, path: str) -> TravisAPIError:
        """Return an error for non-2xx HTTP responses."""
        return cls(f"Travis API HTTP {status_code} for {path}", status_code=status_code)


class TravisResponseShapeError(RuntimeError):
    """Raised when Travis responses are missing expected fields."""

    @classmethod
    def missing(cls, field: str) -> TravisResponseShapeError:
        """Return an error for a missing response field."""
        return cls(f"Travis API response missing expected field: {field}")


class TravisConfigError(RuntimeError):
    """Raised when Travis client configuration is invalid."""

    @classmethod
    def missing_token(cls, env_var: str) -> TravisConfigError:
        """Return an error when the configured token variable is unset."""
        return cls(f"{env_var} is required for the Travis API")

    @classmethod
    def empty_token(cls) -> TravisConfigError:
        """Return an error when the provided token is empty."""
        return cls("Travis token must be non-empty")
