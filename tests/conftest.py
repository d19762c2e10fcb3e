"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from changebump.models import ChangeRecord

CORE_PACKAGE_JSON = """\
{
  "name": "core",
  "version": "1.2.0",
  "scripts": {
    "build": "tsc"
  },
  "dependencies": {
    "left-pad": "^1.0.0"
  }
}
"""

CLI_PACKAGE_JSON = """\
{
  "name": "cli",
  "version": "0.5.3",
  "dependencies": {
    "core": "^1.2.0"
  }
}
"""


def _write_change(
    root: Path, filename: str, packages: dict[str, str], summary: str
) -> Path:
    folder = root / ".changes"
    folder.mkdir(parents=True, exist_ok=True)
    front = "\n".join(f'"{name}": {bump}' for name, bump in packages.items())
    path = folder / filename
    path.write_text(f"---\n{front}\n---\n\n{summary}\n")
    return path


def _write_config(root: Path, config: dict) -> Path:
    folder = root / ".changes"
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / "config.json"
    path.write_text(json.dumps(config, indent=2))
    return path


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Create a two-package repository: cli depends on core."""
    core = tmp_path / "packages" / "core"
    cli = tmp_path / "packages" / "cli"
    core.mkdir(parents=True)
    cli.mkdir(parents=True)
    (core / "package.json").write_text(CORE_PACKAGE_JSON)
    (cli / "package.json").write_text(CLI_PACKAGE_JSON)
    _write_config(
        tmp_path,
        {
            "packages": {
                "core": {"path": "./packages/core", "manager": "javascript"},
                "cli": {"path": "./packages/cli", "manager": "javascript"},
            }
        },
    )
    return tmp_path


@pytest.fixture
def records() -> list[ChangeRecord]:
    """Record A bumps core (minor); record B bumps core and cli (patch)."""
    return [
        ChangeRecord.create(["core"], "minor", "Add streaming API."),
        ChangeRecord.create(["core", "cli"], "patch", "Fix crash on empty input."),
    ]


@pytest.fixture
def write_change():
    """Return a helper that writes a change file into root/.changes."""
    return _write_change


@pytest.fixture
def write_config():
    """Return a helper that writes root/.changes/config.json."""
    return _write_config
