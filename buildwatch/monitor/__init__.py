"""Change detection, backfill and scheduling for Travis build monitoring."""

from __future__ import annotations

from .backfill import BackfillResolver, missing_build_numbers
from .branches import BranchSlugResolver, branched_repo_slug
from .config import MonitorConfig
from .cycle import BuildChange, BuildMonitor, CycleResult, RepositoryFailure
from .detection import (
    ChangeKind,
    detect_change,
    filter_out_old_builds,
    parse_build_label,
)
from .errors import CorruptCacheEntryError, MastersConfigError, UnknownMasterError
from .liveness import DiscoveryStatusConfig, DiscoveryStatusSignal, LivenessSignal
from .observability import (
    ErrorCategory,
    MonitorEventLogger,
    MonitorEventType,
    categorize_error,
)
from .scheduler import PollContext, PollingScheduler
from .ttl import sweep_missing_ttls

__all__ = [
    "BackfillResolver",
    "BranchSlugResolver",
    "BuildChange",
    "BuildMonitor",
    "ChangeKind",
    "CorruptCacheEntryError",
    "CycleResult",
    "DiscoveryStatusConfig",
    "DiscoveryStatusSignal",
    "ErrorCategory",
    "LivenessSignal",
    "MastersConfigError",
    "MonitorConfig",
    "MonitorEventLogger",
    "MonitorEventType",
    "PollContext",
    "PollingScheduler",
    "RepositoryFailure",
    "UnknownMasterError",
    "branched_repo_slug",
    "categorize_error",
    "detect_change",
    "filter_out_old_builds",
    "missing_build_numbers",
    "parse_build_label",
    "sweep_missing_ttls",
]
