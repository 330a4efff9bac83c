"""YAML loader for the Travis masters file.

Example file::

    masters:
      - name: travis-public
        api_url: https://api.travis-ci.com
        base_url: https://app.travis-ci.com
        token_env: TRAVIS_PUBLIC_TOKEN

"""

from __future__ import annotations

from pathlib import Path

import msgspec
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from buildwatch.travis.client import TravisConfig

from .errors import MastersConfigError

YAML_VERSION = (1, 2)


class MasterConfig(msgspec.Struct, kw_only=True, frozen=True):
    """One configured Travis master.

    Attributes
    ----------
    name : str
        Master identifier used in cache keys and events.
    token_env : str
        Environment variable holding the API token.
    api_url : str
        Travis API v3 root.
    base_url : str
        Travis web root used for build deep links.

    """

    name: str
    token_env: str
    api_url: str = "https://api.travis-ci.com"
    base_url: str = "https://app.travis-ci.com"

    def travis_config(self) -> TravisConfig:
        """Resolve the token from the environment and return client config."""
        return TravisConfig.from_env(
            self.token_env, api_url=self.api_url, base_url=self.base_url
        )


class MastersFile(msgspec.Struct, kw_only=True):
    """Top-level masters document."""

    masters: list[MasterConfig] = msgspec.field(default_factory=list)


def validate_masters(document: MastersFile) -> list[MasterConfig]:
    """Return the masters when names are non-empty and unique."""
    issues: list[str] = []
    seen: set[str] = set()
    for index, master in enumerate(document.masters):
        if not master.name.strip():
            issues.append(f"masters[{index}].name must be non-empty")
        elif master.name in seen:
            issues.append(f"duplicate master name: {master.name}")
        seen.add(master.name)
        if not master.token_env.strip():
            issues.append(f"masters[{index}].token_env must be non-empty")
    if not document.masters:
        issues.append("at least one master must be configured")
    if issues:
        raise MastersConfigError(issues)
    return list(document.masters)


def load_masters(path: Path | str) -> list[MasterConfig]:
    """Parse and validate a masters YAML file."""
    yaml = _yaml()
    path_obj = Path(path)

    try:
        loaded = yaml.load(path_obj.read_text(encoding="utf-8"))
    except (OSError, YAMLError) as exc:
        raise MastersConfigError([f"failed to parse YAML: {exc}"]) from exc

    if loaded is None:
        raise MastersConfigError(["masters file is empty"])

    try:
        document = msgspec.convert(loaded, type=MastersFile)
    except msgspec.ValidationError as exc:
        raise MastersConfigError([f"schema validation failed: {exc}"]) from exc

    return validate_masters(document)


def _yaml() -> YAML:
    yaml = YAML(typ="safe")
    yaml.version = YAML_VERSION
    yaml.allow_duplicate_keys = False
    return yaml
