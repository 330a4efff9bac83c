"""Unit tests for the buildwatch runtime entrypoint."""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

import falcon.asgi
import falcon.testing
import pytest

from buildwatch import runtime
from buildwatch.monitor import factory
from tests.unit.monitor_test_helpers import (
    FakeSnapshotSource,
    make_service,
    make_snapshot,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

    from buildwatch.monitor.factory import MonitorService


@pytest.fixture(autouse=True)
def _no_polling(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BUILDWATCH_DATABASE_URL", raising=False)
    monkeypatch.delenv("BUILDWATCH_MASTERS_PATH", raising=False)


def test_create_app_is_health_only_without_configuration() -> None:
    """Without database and masters the runtime serves probes only."""
    app = runtime.create_app()
    client = falcon.testing.TestClient(app)

    assert isinstance(app, falcon.asgi.App)
    assert client.simulate_get("/health").status_code == HTTPStatus.OK
    assert client.simulate_get("/ready").status_code == HTTPStatus.OK
    assert client.simulate_get("/status").status_code == HTTPStatus.NOT_FOUND


def test_create_app_needs_both_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    """A database URL alone does not enable polling."""
    monkeypatch.setenv("BUILDWATCH_DATABASE_URL", "sqlite+aiosqlite:///unused.db")

    client = falcon.testing.TestClient(runtime.create_app())

    assert client.simulate_get("/status").status_code == HTTPStatus.NOT_FOUND


def test_create_app_with_polling(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """With both settings the app exposes poll status for each master."""
    built: list[tuple[str, str]] = []

    def _build(database_url: str, masters_path: str) -> MonitorService:
        built.append((database_url, masters_path))
        return make_service(database_url, FakeSnapshotSource([make_snapshot()]))

    monkeypatch.setattr(factory, "build_service", _build)
    database_url = f"sqlite+aiosqlite:///{tmp_path / 'runtime.db'}"
    monkeypatch.setenv("BUILDWATCH_DATABASE_URL", database_url)
    monkeypatch.setenv("BUILDWATCH_MASTERS_PATH", "masters.yaml")

    client = falcon.testing.TestClient(runtime.create_app())
    result = client.simulate_get("/status")

    assert built == [(database_url, "masters.yaml")]
    assert result.status_code == HTTPStatus.OK
    assert set(result.json["masters"]) == {"m1"}
    assert result.json["poll_interval_seconds"] == 60


@pytest.mark.parametrize("value", ["http", "0", "70000"])
def test_parse_port_rejects_invalid_values(value: str) -> None:
    """Invalid ports abort start-up."""
    with pytest.raises(SystemExit):
        runtime._parse_port(value)


def test_parse_port_accepts_valid_values() -> None:
    """Valid ports are returned as integers."""
    assert runtime._parse_port("8080") == 8080
