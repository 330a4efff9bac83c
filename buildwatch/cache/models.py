"""Domain records exchanged with the build cache."""

from __future__ import annotations

import dataclasses

TTL_UNSET = -1
"""Sentinel returned by ``get_ttl`` for legacy records written without expiry."""


@dataclasses.dataclass(frozen=True, slots=True)
class CachedBuildRecord:
    """Last build observed for a repository on a master.

    ``last_build_label`` holds the build number as text; it is parsed by the
    change detector, which treats an unparseable label as a corrupt entry.
    """

    master: str
    slug: str
    last_build_label: str
    last_build_building: bool
