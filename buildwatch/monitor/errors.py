"""Errors raised by the build monitor."""

from __future__ import annotations


class CorruptCacheEntryError(ValueError):
    """Raised when a cached build label cannot be parsed as a build number."""

    def __init__(self, message: str, *, master: str, slug: str, label: str) -> None:
        """Record which cache entry was unreadable."""
        self.master = master
        self.slug = slug
        self.label = label
        super().__init__(message)

    @classmethod
    def for_label(cls, master: str, slug: str, label: str) -> CorruptCacheEntryError:
        """Return an error describing an unparseable ``lastBuildLabel``."""
        return cls(
            f"Cached build label {label!r} for {master}:{slug} is not a build number",
            master=master,
            slug=slug,
            label=label,
        )


class MastersConfigError(ValueError):
    """Raised when the masters configuration file is invalid."""

    def __init__(self, issues: list[str]) -> None:
        """Capture validation issues whilst preserving the aggregated message."""
        super().__init__("\n".join(issues))
        self.issues = issues


class UnknownMasterError(KeyError):
    """Raised when a cycle is requested for a master with no snapshot source."""

    def __init__(self, master: str) -> None:
        """Record the unknown master name."""
        self.master = master
        super().__init__(master)

    def __str__(self) -> str:
        """Return a readable description of the missing master."""
        return f"No snapshot source configured for master {self.master!r}"


class BrokerConfigError(RuntimeError):
    """Raised when no message broker is configured for polling jobs."""

    @classmethod
    def missing_url(cls, env_var: str) -> BrokerConfigError:
        """Return an error naming the unset broker URL variable."""
        return cls(
            f"{env_var} is not set; polling jobs need a RabbitMQ broker URL"
        )
