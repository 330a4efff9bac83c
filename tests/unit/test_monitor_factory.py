"""Unit tests for wiring the monitor service from configuration."""

from __future__ import annotations

import typing as typ

import pytest
from sqlalchemy.exc import ArgumentError

from buildwatch.monitor import factory
from buildwatch.monitor.config import MonitorConfig
from buildwatch.travis.errors import TravisConfigError

if typ.TYPE_CHECKING:
    from pathlib import Path

    from buildwatch.travis.client import TravisConfig


@pytest.fixture
def masters_file(tmp_path: Path) -> Path:
    """Write a two-master configuration file."""
    path = tmp_path / "masters.yaml"
    path.write_text(
        "masters:\n"
        "  - name: public\n"
        "    token_env: BUILDWATCH_PUBLIC_TOKEN\n"
        "  - name: private\n"
        "    token_env: BUILDWATCH_PRIVATE_TOKEN\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def opened_clients(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Record each Travis client the factory opens."""
    opened: list[str] = []

    class _RecordingClient:
        def __init__(self, config: TravisConfig) -> None:
            opened.append(config.token)

        async def aclose(self) -> None:
            return None

    monkeypatch.setattr(factory, "TravisClient", _RecordingClient)
    monkeypatch.delenv("BUILDWATCH_ECHO_URL", raising=False)
    monkeypatch.delenv("BUILDWATCH_DISCOVERY_URL", raising=False)
    return opened


@pytest.mark.asyncio
async def test_build_service_opens_one_client_per_master(
    monkeypatch: pytest.MonkeyPatch,
    masters_file: Path,
    tmp_path: Path,
    opened_clients: list[str],
) -> None:
    """Each configured master gets its own snapshot source."""
    monkeypatch.setenv("BUILDWATCH_PUBLIC_TOKEN", "pub")
    monkeypatch.setenv("BUILDWATCH_PRIVATE_TOKEN", "priv")

    service = factory.build_service(
        f"sqlite+aiosqlite:///{tmp_path / 'factory.db'}",
        masters_file,
        config=MonitorConfig(),
    )
    try:
        assert service.monitor.masters == ("public", "private")
        assert opened_clients == ["pub", "priv"]
    finally:
        await service.aclose()


def test_missing_token_opens_no_clients(
    monkeypatch: pytest.MonkeyPatch,
    masters_file: Path,
    tmp_path: Path,
    opened_clients: list[str],
) -> None:
    """A token missing for a later master leaves earlier masters unopened."""
    monkeypatch.setenv("BUILDWATCH_PUBLIC_TOKEN", "pub")
    monkeypatch.delenv("BUILDWATCH_PRIVATE_TOKEN", raising=False)

    with pytest.raises(TravisConfigError):
        factory.build_service(
            f"sqlite+aiosqlite:///{tmp_path / 'factory.db'}",
            masters_file,
            config=MonitorConfig(),
        )

    assert opened_clients == []


def test_invalid_database_url_opens_no_clients(
    monkeypatch: pytest.MonkeyPatch,
    masters_file: Path,
    opened_clients: list[str],
) -> None:
    """An unparseable database URL fails before any HTTP client exists."""
    monkeypatch.setenv("BUILDWATCH_PUBLIC_TOKEN", "pub")
    monkeypatch.setenv("BUILDWATCH_PRIVATE_TOKEN", "priv")

    with pytest.raises(ArgumentError):
        factory.build_service(
            "not a database url", masters_file, config=MonitorConfig()
        )

    assert opened_clients == []
