"""Tests for changebump.changelog."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest

from changebump.changelog import (
    DEFAULT_CHANGELOG,
    insert_section,
    render_section,
    write_changelog,
)
from changebump.manifest import Encoding, ManifestHandle
from changebump.models import ChangeRecord, PackageAction

TODAY = date(2026, 10, 19)


@pytest.fixture
def action(tmp_path: Path) -> PackageAction:
    return PackageAction(
        package="core",
        manifest=ManifestHandle(
            path=tmp_path / "VERSION",
            encoding=Encoding.BARE,
            document={"name": "", "version": "1.2.0"},
        ),
        from_version="1.2.0",
        to_version="1.3.0",
        bump="minor",
        changes=[
            ChangeRecord.create(["core"], "minor", "Add streaming API."),
            ChangeRecord.create(["core"], "patch", "Fix crash.\nOn empty input."),
        ],
        dependency_bumps=["util"],
        cwd=tmp_path,
        changelog_path=tmp_path / "CHANGELOG.md",
    )


class TestRenderSection:
    def test_lists_changes_and_dependency_bumps(self, action: PackageAction) -> None:
        assert render_section(action, TODAY) == (
            "## [1.3.0] - 2026-10-19\n"
            "\n"
            "- Add streaming API.\n"
            "- Fix crash.\n"
            "  On empty input.\n"
            "- Bumped due to a bump in util.\n"
        )


class TestInsertSection:
    def test_into_default_changelog(self) -> None:
        result = insert_section(DEFAULT_CHANGELOG, "## [1.0.0]\n\n- A\n")
        assert result == "# Changelog\n\n## [1.0.0]\n\n- A\n"

    def test_newest_first(self) -> None:
        existing = "# Changelog\n\n## [1.0.0]\n\n- A\n"
        result = insert_section(existing, "## [1.1.0]\n\n- B\n")
        assert result == "# Changelog\n\n## [1.1.0]\n\n- B\n\n## [1.0.0]\n\n- A\n"

    def test_without_heading(self) -> None:
        result = insert_section("## [1.0.0]\n\n- A\n", "## [1.1.0]\n\n- B\n")
        assert result == "## [1.1.0]\n\n- B\n\n## [1.0.0]\n\n- A\n"


class TestWriteChangelog:
    def test_creates_file_with_header(self, action: PackageAction) -> None:
        path = write_changelog(action, TODAY)

        content = path.read_text()
        assert content.startswith("# Changelog\n\n## [1.3.0] - 2026-10-19\n")
        assert "- Add streaming API." in content

    def test_appends_to_existing(self, action: PackageAction) -> None:
        action.changelog_path.write_text(
            "# Changelog\n\n## [1.2.0] - 2026-01-01\n\n- Old.\n"
        )

        write_changelog(action, TODAY)

        content = action.changelog_path.read_text()
        assert content.index("[1.3.0]") < content.index("[1.2.0]")
        assert content.endswith("- Old.\n")
