"""Unit tests for the masters YAML loader."""

from __future__ import annotations

import typing as typ

import pytest

from buildwatch.monitor.errors import MastersConfigError
from buildwatch.monitor.masters import load_masters
from buildwatch.travis.errors import TravisConfigError

if typ.TYPE_CHECKING:
    from pathlib import Path


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "masters.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_loads_masters_with_defaults(tmp_path: Path) -> None:
    """Masters parse with default URLs when omitted."""
    path = _write(
        tmp_path,
        """
masters:
  - name: public
    token_env: TRAVIS_PUBLIC_TOKEN
  - name: enterprise
    token_env: TRAVIS_ENTERPRISE_TOKEN
    api_url: https://travis.corp.test/api
    base_url: https://travis.corp.test
""",
    )

    masters = load_masters(path)

    assert [m.name for m in masters] == ["public", "enterprise"]
    assert masters[0].api_url == "https://api.travis-ci.com"
    assert masters[1].base_url == "https://travis.corp.test"


def test_master_resolves_token_from_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """travis_config() reads the master's token variable."""
    path = _write(tmp_path, "masters:\n  - name: m1\n    token_env: M1_TOKEN\n")
    master = load_masters(path)[0]

    monkeypatch.delenv("M1_TOKEN", raising=False)
    with pytest.raises(TravisConfigError):
        master.travis_config()

    monkeypatch.setenv("M1_TOKEN", "secret")
    assert master.travis_config().token == "secret"


@pytest.mark.parametrize(
    ("text", "issue"),
    [
        ("", "masters file is empty"),
        ("masters: []\n", "at least one master"),
        (
            "masters:\n  - {name: a, token_env: A}\n  - {name: a, token_env: B}\n",
            "duplicate master name: a",
        ),
        ("masters:\n  - {name: '', token_env: A}\n", "name must be non-empty"),
        ("masters:\n  - {name: a}\n", "schema validation failed"),
        ("masters: [\n", "failed to parse YAML"),
    ],
)
def test_rejects_invalid_files(tmp_path: Path, text: str, issue: str) -> None:
    """Invalid documents raise MastersConfigError listing the issue."""
    with pytest.raises(MastersConfigError) as excinfo:
        load_masters(_write(tmp_path, text))

    assert any(issue in message for message in excinfo.value.issues), (
        f"expected {issue!r} in {excinfo.value.issues}"
    )


def test_missing_file_is_a_config_error(tmp_path: Path) -> None:
    """An unreadable path is reported like a parse failure."""
    with pytest.raises(MastersConfigError, match="failed to parse YAML"):
        load_masters(tmp_path / "absent.yaml")
