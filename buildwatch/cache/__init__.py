"""Last-known-build cache with per-key TTL."""

from __future__ import annotations

from .models import TTL_UNSET, CachedBuildRecord
from .service import BuildCache, SqlBuildCache
from .storage import CachedBuild, init_cache_storage

__all__ = [
    "TTL_UNSET",
    "BuildCache",
    "CachedBuild",
    "CachedBuildRecord",
    "SqlBuildCache",
    "init_cache_storage",
]
