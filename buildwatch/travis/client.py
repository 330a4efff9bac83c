"""Travis CI snapshot source used by the build monitor.

The monitor never talks HTTP itself; it consumes the :class:`SnapshotSource`
port. :class:`TravisClient` implements that port against the Travis API v3,
listing active repositories with their current build embedded, looking up
individual builds by number for backfill and triggering the account
repository sync.
"""

from __future__ import annotations

import dataclasses
import os
import typing as typ
from urllib.parse import quote

import httpx

from buildwatch.common.time import parse_iso_datetime

from .errors import TravisAPIError, TravisConfigError, TravisResponseShapeError
from .models import BuildDetail, CommitRef, RepositorySnapshot

_HTTP_ERROR_STATUS_THRESHOLD = 400


class SnapshotSource(typ.Protocol):
    """Interface for fetching build state from one CI master."""

    @property
    def base_url(self) -> str:
        """Return the web base URL used to build deep links."""
        ...

    async def list_repositories(self) -> list[RepositorySnapshot]:
        """Return the latest-build snapshot of every known repository."""
        ...

    async def fetch_build_detail(
        self, slug: str, build_number: int
    ) -> BuildDetail | None:
        """Return a single build by number, or None when it cannot be found."""
        ...

    async def resolve_commit(self, slug: str, build_number: int) -> CommitRef | None:
        """Return the commit behind a build, or None when unresolved."""
        ...

    async def resync_repository_list(self) -> None:
        """Ask the CI service to resynchronise the account's repositories."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class TravisConfig:
    """Configuration for one Travis API master."""

    token: str
    api_url: str = "https://api.travis-ci.com"
    base_url: str = "https://app.travis-ci.com"
    timeout_s: float = 20.0
    page_size: int = 100
    user_agent: str = "buildwatch/0.1"

    @classmethod
    def from_env(
        cls,
        token_env: str,
        *,
        api_url: str | None = None,
        base_url: str | None = None,
    ) -> TravisConfig:
        """Build configuration reading the token from ``token_env``."""
        token = os.environ.get(token_env, "").strip()
        if not token:
            raise TravisConfigError.missing_token(token_env)
        overrides: dict[str, str] = {}
        if api_url:
            overrides["api_url"] = api_url
        if base_url:
            overrides["base_url"] = base_url
        return cls(token=token, **overrides)


def _repo_path(slug: str) -> str:
    # Travis v3 addresses repositories by URL-encoded slug
    return f"/repo/{quote(slug, safe='')}"


def _parse_int(value: object, *, field: str) -> int:
    if isinstance(value, bool):
        raise TravisResponseShapeError.missing(field)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise TravisResponseShapeError.missing(field)


def _optional_int(value: object) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _snapshot_from_repository(node: dict[str, typ.Any]) -> RepositorySnapshot | None:
    """Convert a v3 repository node into a snapshot.

    Repositories that have never built carry no ``current_build`` and have
    nothing for the monitor to compare, so they are dropped.
    """
    slug = node.get("slug")
    if not isinstance(slug, str):
        raise TravisResponseShapeError.missing("repository.slug")
    build = node.get("current_build")
    if not isinstance(build, dict):
        return None
    started_raw = build.get("started_at")
    started_at = (
        parse_iso_datetime(started_raw) if isinstance(started_raw, str) else None
    )
    return RepositorySnapshot(
        slug=slug,
        last_build_number=_parse_int(build.get("number"), field="build.number"),
        last_build_state=str(build.get("state") or ""),
        last_build_started_at=started_at,
        last_build_id=_optional_int(build.get("id")),
        last_build_duration=_optional_int(build.get("duration")),
    )


def _named(node: object) -> str | None:
    if isinstance(node, dict):
        name = node.get("name")
        if isinstance(name, str) and name:
            return name
    return None


class TravisClient:
    """Travis API v3 implementation of :class:`SnapshotSource`."""

    def __init__(
        self,
        config: TravisConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client with the provided API configuration."""
        if not config.token.strip():
            raise TravisConfigError.empty_token()

        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._headers = {
            "Authorization": f"token {config.token}",
            "Travis-API-Version": "3",
            "User-Agent": config.user_agent,
            "Accept": "application/json",
        }
        self._user_id: int | None = None

    @property
    def base_url(self) -> str:
        """Return the Travis web URL used for build deep links."""
        return self._config.base_url.rstrip("/")

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def list_repositories(self) -> list[RepositorySnapshot]:
        """Page through active repositories with their current build."""
        snapshots: list[RepositorySnapshot] = []
        offset = 0
        while True:
            payload = await self._request(
                "GET",
                "/repos",
                params={
                    "active": "true",
                    "include": "repository.current_build",
                    "limit": self._config.page_size,
                    "offset": offset,
                },
            )
            nodes = payload.get("repositories")
            if not isinstance(nodes, list):
                raise TravisResponseShapeError.missing("repositories")
            for node in nodes:
                if not isinstance(node, dict):
                    raise TravisResponseShapeError.missing("repositories[]")
                snapshot = _snapshot_from_repository(node)
                if snapshot is not None:
                    snapshots.append(snapshot)

            pagination = payload.get("@pagination")
            if not isinstance(pagination, dict) or pagination.get("is_last", True):
                return snapshots
            if not nodes:
                return snapshots
            offset += len(nodes)

    async def fetch_build_detail(
        self, slug: str, build_number: int
    ) -> BuildDetail | None:
        """Return the build numbered ``build_number`` for ``slug``."""
        build = await self._find_build(slug, build_number)
        if build is None:
            return None
        state = build.get("state")
        return BuildDetail(
            id=_parse_int(build.get("id"), field="build.id"),
            number=build_number,
            state=state if isinstance(state, str) and state else None,
            duration=_optional_int(build.get("duration")),
        )

    async def resolve_commit(self, slug: str, build_number: int) -> CommitRef | None:
        """Return branch, tag and pull-request metadata for a build."""
        build = await self._find_build(slug, build_number)
        if build is None:
            return None
        commit = build.get("commit")
        if not isinstance(commit, dict):
            return None
        return CommitRef(
            sha=str(commit.get("sha") or ""),
            branch=_named(build.get("branch")),
            tag=_named(build.get("tag")),
            is_pull_request=build.get("event_type") == "pull_request",
        )

    async def resync_repository_list(self) -> None:
        """Trigger a repository sync for the authenticated user."""
        if self._user_id is None:
            user = await self._request("GET", "/user")
            self._user_id = _parse_int(user.get("id"), field="user.id")
        await self._request("POST", f"/user/{self._user_id}/sync")

    async def _find_build(
        self, slug: str, build_number: int
    ) -> dict[str, typ.Any] | None:
        payload = await self._request(
            "GET",
            f"{_repo_path(slug)}/builds",
            params={
                "number": str(build_number),
                "limit": 1,
                "include": "build.commit,build.branch",
            },
        )
        builds = payload.get("builds")
        if not isinstance(builds, list):
            raise TravisResponseShapeError.missing("builds")
        for build in builds:
            if not isinstance(build, dict):
                continue
            number = build.get("number")
            if number is not None and str(number) == str(build_number):
                return build
        return None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, typ.Any] | None = None,
    ) -> dict[str, typ.Any]:
        url = f"{self._config.api_url.rstrip('/')}{path}"
        response = await self._client.request(
            method, url, params=params, headers=self._headers
        )
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise TravisAPIError.http_error(response.status_code, path)
        if not response.content:
            return {}
        payload = response.json()
        if not isinstance(payload, dict):
            raise TravisResponseShapeError.missing("response")
        return payload
