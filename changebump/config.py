"""Run configuration loading.

The configuration lives in ``.changes/config.json`` next to the change
files. It names every package in the repository, where its manifest is,
and how to publish it. Package managers can share publish and probe
commands through ``pkgManagers``; a package's own commands win.

Example:
    {
      "pkgManagers": {
        "javascript": {
          "publish": "npm publish",
          "getPublishedVersion": "npm view ${name} version"
        }
      },
      "packages": {
        "core": {"path": "./packages/core", "manager": "javascript"},
        "cli": {"path": "./crates/cli", "manager": "rust", "publish": "cargo publish"}
      }
    }
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from string import Template

from pydantic import ValidationError

from .errors import ConfigError
from .models import PackageConfig, RunConfig

CHANGE_FOLDER = ".changes"
CONFIG_FILE = "config.json"
SHELL_ENV = "CHANGEBUMP_SHELL"


def load_config(cwd: Path, change_folder: str = CHANGE_FOLDER) -> RunConfig:
    """Load and validate the run configuration.

    Raises:
        ConfigError: If the file is missing, not JSON, or fails validation.
    """
    path = cwd / change_folder / CONFIG_FILE
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError("No configuration file found", path=path) from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to read configuration: {exc}", path=path) from exc

    try:
        return RunConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration:\n{exc}", path=path) from exc


def default_manifest_name(manager: str | None) -> str:
    """Derive the manifest file name from the package manager.

    Examples:
        "rust" → "Cargo.toml"
        "dart" / "flutter" → "pubspec.yaml"
        anything else → "package.json"
    """
    if manager and re.search(r"rust", manager):
        return "Cargo.toml"
    if manager and re.search(r"dart|flutter", manager):
        return "pubspec.yaml"
    return "package.json"


def package_dir(cwd: Path, pkg: PackageConfig) -> Path:
    """Directory the package lives in; publish commands run here."""
    path = cwd / pkg.path
    return path.parent if path.is_file() else path


def manifest_path(cwd: Path, pkg: PackageConfig) -> Path:
    """Locate a package's manifest.

    ``path`` may point at the manifest itself; otherwise the manifest is
    ``manifest`` (or the manager's default file name) inside that directory.
    """
    path = cwd / pkg.path
    if path.is_file():
        return path
    return path / (pkg.manifest or default_manifest_name(pkg.manager))


def package_commands(config: RunConfig, name: str) -> tuple[str | None, str | None]:
    """Return the (publish, getPublishedVersion) commands for a package.

    The package's own values override the ones from its package manager.
    """
    pkg = config.packages[name]
    manager = config.pkg_managers.get(pkg.manager or "")
    publish = pkg.publish or (manager.publish if manager else None)
    probe = pkg.get_published_version or (
        manager.get_published_version if manager else None
    )
    return publish, probe


def render_command(template: str, **values: str) -> str:
    """Substitute ``${name}``-style placeholders, leaving unknown ones alone.

    Unknown placeholders are usually shell variables and are left for the
    shell to expand.
    """
    return Template(template).safe_substitute(values)


def resolve_shell(config: RunConfig) -> str | None:
    """Shell for subprocesses: config, then $CHANGEBUMP_SHELL, then the host default."""
    return config.shell or os.environ.get(SHELL_ENV) or None


def dump_config(config: RunConfig) -> str:
    """Serialize the resolved configuration as indented JSON."""
    return json.dumps(config.model_dump(mode="json", by_alias=True), indent=2)
