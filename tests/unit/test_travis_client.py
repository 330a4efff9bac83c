"""Unit tests for the Travis API v3 snapshot source."""

from __future__ import annotations

import datetime as dt
import secrets
import typing as typ

import httpx
import pytest

from buildwatch.travis import (
    TravisAPIError,
    TravisClient,
    TravisConfig,
    TravisConfigError,
    TravisResponseShapeError,
)

_TOKEN = secrets.token_hex(8)
_API = "https://api.travis.test"

type _Route = typ.Callable[[httpx.Request], httpx.Response]


def _make_client(
    routes: dict[tuple[str, str], _Route | list[httpx.Response]],
    *,
    page_size: int = 100,
) -> tuple[TravisClient, list[httpx.Request]]:
    calls: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        path = request.url.raw_path.split(b"?")[0].decode("ascii")
        route = routes[request.method, path]
        if isinstance(route, list):
            return route.pop(0)
        return route(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    client = TravisClient(
        TravisConfig(
            token=_TOKEN,
            api_url=_API,
            base_url="https://app.travis.test/",
            page_size=page_size,
        ),
        http_client=http_client,
    )
    return client, calls


def _repo_node(
    slug: str, number: str | None = "7", state: str = "passed"
) -> dict[str, typ.Any]:
    node: dict[str, typ.Any] = {"slug": slug}
    if number is not None:
        node["current_build"] = {
            "id": 70,
            "number": number,
            "state": state,
            "started_at": "2099-01-01T10:00:00Z",
            "duration": 33,
        }
    return node


def _repos_page(nodes: list[dict[str, typ.Any]], *, is_last: bool) -> httpx.Response:
    return httpx.Response(
        200, json={"repositories": nodes, "@pagination": {"is_last": is_last}}
    )


class TestConfig:
    """Tests for TravisConfig and client construction."""

    def test_from_env_reads_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """The token is read from the named variable."""
        monkeypatch.setenv("TRAVIS_TEST_TOKEN", f" {_TOKEN} ")

        config = TravisConfig.from_env("TRAVIS_TEST_TOKEN", api_url=_API)

        assert config.token == _TOKEN
        assert config.api_url == _API
        assert config.base_url == "https://app.travis-ci.com"

    def test_from_env_requires_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A missing token is a configuration error naming the variable."""
        monkeypatch.delenv("TRAVIS_TEST_TOKEN", raising=False)

        with pytest.raises(TravisConfigError, match="TRAVIS_TEST_TOKEN"):
            TravisConfig.from_env("TRAVIS_TEST_TOKEN")

    def test_client_rejects_blank_token(self) -> None:
        """Clients cannot be built with a whitespace token."""
        with pytest.raises(TravisConfigError):
            TravisClient(TravisConfig(token="  "))

    def test_base_url_is_normalised(self) -> None:
        """Trailing slashes are dropped from the web base URL."""
        client, _ = _make_client({})
        assert client.base_url == "https://app.travis.test"


class TestListRepositories:
    """Tests for TravisClient.list_repositories."""

    @pytest.mark.asyncio
    async def test_pages_until_last(self) -> None:
        """Every page is fetched and offsets advance by page length."""
        client, calls = _make_client(
            {
                ("GET", "/repos"): [
                    _repos_page(
                        [_repo_node("octo/a"), _repo_node("octo/b")], is_last=False
                    ),
                    _repos_page([_repo_node("octo/c", "12", "started")], is_last=True),
                ]
            },
            page_size=2,
        )

        snapshots = await client.list_repositories()

        assert [s.slug for s in snapshots] == ["octo/a", "octo/b", "octo/c"]
        assert [c.url.params["offset"] for c in calls] == ["0", "2"]
        assert calls[0].url.params["limit"] == "2"
        assert calls[0].url.params["include"] == "repository.current_build"
        last = snapshots[-1]
        assert last.last_build_number == 12
        assert last.running is True
        assert last.last_build_id == 70
        assert last.last_build_duration == 33
        assert last.last_build_started_at == dt.datetime(
            2099, 1, 1, 10, 0, tzinfo=dt.UTC
        )

    @pytest.mark.asyncio
    async def test_sends_v3_headers(self) -> None:
        """Requests carry the token and API version headers."""
        client, calls = _make_client(
            {("GET", "/repos"): [_repos_page([], is_last=True)]}
        )

        await client.list_repositories()

        headers = calls[0].headers
        assert headers["Authorization"] == f"token {_TOKEN}"
        assert headers["Travis-API-Version"] == "3"

    @pytest.mark.asyncio
    async def test_skips_repositories_without_builds(self) -> None:
        """Repositories that never built are not reported."""
        client, _ = _make_client(
            {
                ("GET", "/repos"): [
                    _repos_page(
                        [_repo_node("octo/a"), _repo_node("octo/empty", None)],
                        is_last=True,
                    )
                ]
            }
        )

        snapshots = await client.list_repositories()

        assert [s.slug for s in snapshots] == ["octo/a"]

    @pytest.mark.asyncio
    async def test_http_errors_raise_api_error(self) -> None:
        """Non-2xx responses surface as TravisAPIError with the status."""
        client, _ = _make_client(
            {("GET", "/repos"): [httpx.Response(503, json={"error": "down"})]}
        )

        with pytest.raises(TravisAPIError) as excinfo:
            await client.list_repositories()

        assert excinfo.value.status_code == 503
        assert excinfo.value.is_transient

    @pytest.mark.asyncio
    async def test_malformed_payload_raises_shape_error(self) -> None:
        """A payload without repositories is schema drift."""
        client, _ = _make_client(
            {("GET", "/repos"): [httpx.Response(200, json={"nope": []})]}
        )

        with pytest.raises(TravisResponseShapeError, match="repositories"):
            await client.list_repositories()


def _builds_route(builds: list[dict[str, typ.Any]]) -> _Route:
    def _route(request: httpx.Request) -> httpx.Response:
        del request
        return httpx.Response(200, json={"builds": builds})

    return _route


class TestBuildLookup:
    """Tests for fetch_build_detail and resolve_commit."""

    @pytest.mark.asyncio
    async def test_fetch_build_detail(self) -> None:
        """A build is located by number on the URL-encoded repository."""
        client, calls = _make_client(
            {
                ("GET", "/repo/octo%2Freef/builds"): _builds_route(
                    [{"id": 606, "number": "6", "state": "failed", "duration": 12}]
                )
            }
        )

        detail = await client.fetch_build_detail("octo/reef", 6)

        assert detail is not None
        assert (detail.id, detail.number, detail.state, detail.duration) == (
            606,
            6,
            "failed",
            12,
        )
        assert calls[0].url.params["number"] == "6"

    @pytest.mark.asyncio
    async def test_fetch_build_detail_missing_or_unpopulated(self) -> None:
        """Unknown builds read as None and empty states as a None state."""
        client, _ = _make_client(
            {
                ("GET", "/repo/octo%2Freef/builds"): _builds_route(
                    [{"id": 707, "number": "7", "state": ""}]
                )
            }
        )

        assert await client.fetch_build_detail("octo/reef", 6) is None
        detail = await client.fetch_build_detail("octo/reef", 7)
        assert detail is not None
        assert detail.state is None

    @pytest.mark.asyncio
    async def test_resolve_commit_reads_branch_and_event_type(self) -> None:
        """Commit metadata includes branch name and pull request flag."""
        client, _ = _make_client(
            {
                ("GET", "/repo/octo%2Freef/builds"): _builds_route(
                    [
                        {
                            "id": 808,
                            "number": "8",
                            "state": "passed",
                            "event_type": "pull_request",
                            "commit": {"sha": "abc123"},
                            "branch": {"name": "fix-1"},
                        }
                    ]
                )
            }
        )

        commit = await client.resolve_commit("octo/reef", 8)

        assert commit is not None
        assert commit.sha == "abc123"
        assert commit.branch == "fix-1"
        assert commit.tag is None
        assert commit.is_pull_request is True

    @pytest.mark.asyncio
    async def test_resolve_commit_without_commit(self) -> None:
        """Builds lacking commit data resolve to None."""
        client, _ = _make_client(
            {
                ("GET", "/repo/octo%2Freef/builds"): _builds_route(
                    [{"id": 808, "number": "8", "state": "passed"}]
                )
            }
        )

        assert await client.resolve_commit("octo/reef", 8) is None


@pytest.mark.asyncio
async def test_resync_looks_up_user_once() -> None:
    """The user id is fetched once and reused for later syncs."""
    client, calls = _make_client(
        {
            ("GET", "/user"): [httpx.Response(200, json={"id": 42})],
            ("POST", "/user/42/sync"): [
                httpx.Response(200, json={"ok": True}),
                httpx.Response(204),
            ],
        }
    )

    await client.resync_repository_list()
    await client.resync_repository_list()

    assert [(c.method, c.url.path) for c in calls] == [
        ("GET", "/user"),
        ("POST", "/user/42/sync"),
        ("POST", "/user/42/sync"),
    ]
