"""Travis CI snapshot source and build-state models."""

from __future__ import annotations

from .client import SnapshotSource, TravisClient, TravisConfig
from .errors import TravisAPIError, TravisConfigError, TravisResponseShapeError
from .models import BuildDetail, CommitRef, RepositorySnapshot
from .results import BuildResult, is_running, result_for_state

__all__ = [
    "BuildDetail",
    "BuildResult",
    "CommitRef",
    "RepositorySnapshot",
    "SnapshotSource",
    "TravisAPIError",
    "TravisClient",
    "TravisConfig",
    "TravisConfigError",
    "TravisResponseShapeError",
    "is_running",
    "result_for_state",
]
