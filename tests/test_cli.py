"""Tests for the click command line."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from changebump.cli import cli


def test_status(repo: Path, write_change) -> None:
    write_change(repo, "a.md", {"core": "minor"}, "Add streaming API.")

    result = CliRunner().invoke(cli, ["status", "--cwd", str(repo)])

    assert result.exit_code == 0, result.output
    assert "There are 1 changes which include core with minor" in result.output


def test_config(repo: Path) -> None:
    result = CliRunner().invoke(cli, ["config", "--cwd", str(repo)])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["packages"]["cli"]["manager"] == "javascript"


def test_version(repo: Path, write_change) -> None:
    write_change(repo, "a.md", {"core": "minor"}, "Add streaming API.")

    result = CliRunner().invoke(cli, ["version", "--cwd", str(repo)])

    assert result.exit_code == 0, result.output
    assert "✓ core 1.2.0 → 1.3.0" in result.output
    assert "✓ cli 0.5.3 → 0.5.4" in result.output


def test_publish_failure_exit_code(repo: Path, write_change, write_config) -> None:
    write_config(
        repo,
        {"packages": {"core": {"path": "./packages/core", "publish": "exit 1"}}},
    )
    write_change(repo, "a.md", {"core": "patch"}, "Fix.")

    result = CliRunner().invoke(cli, ["publish", "--cwd", str(repo)])

    assert result.exit_code == 1
    assert "Failed to publish: core" in result.output


def test_missing_config(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["status", "--cwd", str(tmp_path)])
    assert result.exit_code == 0

    result = CliRunner().invoke(cli, ["config", "--cwd", str(tmp_path)])
    assert result.exit_code == 1
    assert "No configuration file found" in result.output


def test_rejects_non_positive_timeout(repo: Path) -> None:
    result = CliRunner().invoke(cli, ["version", "--cwd", str(repo), "--timeout", "0"])
    assert result.exit_code == 2


def test_version_with_dev_dependency_cycle(repo: Path, write_change) -> None:
    core = repo / "packages" / "core" / "package.json"
    document = json.loads(core.read_text())
    document["devDependencies"] = {"cli": "^0.5.3"}
    core.write_text(json.dumps(document, indent=2) + "\n")
    write_change(repo, "a.md", {"core": "minor"}, "Add streaming API.")

    result = CliRunner().invoke(cli, ["version", "--cwd", str(repo)])

    assert result.exit_code == 0, result.output
    assert "✓ core 1.2.0 → 1.3.0" in result.output


def test_publish_with_runtime_cycle(repo: Path, write_change) -> None:
    core = repo / "packages" / "core" / "package.json"
    document = json.loads(core.read_text())
    document["dependencies"]["cli"] = "^0.5.3"
    core.write_text(json.dumps(document, indent=2) + "\n")
    write_change(repo, "a.md", {"core": "minor"}, "Add streaming API.")

    result = CliRunner().invoke(cli, ["publish", "--cwd", str(repo)])

    assert result.exit_code == 1
    assert "Dependency cycle detected involving: cli, core" in result.output
    assert result.exception is None or isinstance(result.exception, SystemExit)


def test_pre_enter_and_exit(repo: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["pre", "enter", "beta", "--cwd", str(repo)])
    assert result.exit_code == 0, result.output
    assert (repo / ".changes" / "pre.json").exists()

    result = runner.invoke(cli, ["pre", "enter", "rc", "--cwd", str(repo)])
    assert result.exit_code == 1
    assert "Already in prerelease mode" in result.output

    result = runner.invoke(cli, ["pre", "exit", "--cwd", str(repo)])
    assert result.exit_code == 0, result.output
    assert not (repo / ".changes" / "pre.json").exists()
