"""Changelog writing.

Each released package gets a dated section in the CHANGELOG.md beside its
manifest. Sections are inserted below the top-level heading so the newest
release comes first; existing content is never rewritten.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

from .models import PackageAction

CHANGELOG_FILE = "CHANGELOG.md"
DEFAULT_CHANGELOG = "# Changelog\n\n\n"


def read_changelog(path: Path) -> str:
    """Return the changelog's content, or the default header if it doesn't exist."""
    if not path.exists():
        print(f"  Could not find {path}. Creating one.")
        return DEFAULT_CHANGELOG
    return path.read_text(encoding="utf-8")


def render_section(action: PackageAction, today: date) -> str:
    """Render the Markdown section for one release.

    Example:
        ## [1.3.0] - 2026-10-19

        - Add the `--dry-run` flag.
        - Bumped due to a bump in core.
    """
    lines = [f"## [{action.to_version}] - {today.isoformat()}", ""]
    for change in action.changes:
        summary = change.summary.strip() or "No description."
        first, *rest = summary.splitlines()
        lines.append(f"- {first}")
        lines.extend(f"  {line}".rstrip() for line in rest)
    for dep in action.dependency_bumps:
        lines.append(f"- Bumped due to a bump in {dep}.")
    return "\n".join(lines) + "\n"


def insert_section(content: str, section: str) -> str:
    """Insert a section below the first top-level ``# `` heading.

    Content without a top-level heading gets the section prepended.
    """
    lines = content.splitlines(keepends=True)
    for i, line in enumerate(lines):
        if line.startswith("# "):
            head = "".join(lines[: i + 1]).rstrip("\n") + "\n\n"
            tail = "".join(lines[i + 1 :]).lstrip("\n")
            return head + section + ("\n" + tail if tail else "")
    return section + ("\n" + content.lstrip("\n") if content.strip() else "")


def write_changelog(action: PackageAction, today: date | None = None) -> Path:
    """Add this release's section to the package's changelog."""
    path = action.changelog_path
    section = render_section(action, today or date.today())
    content = insert_section(read_changelog(path), section)
    path.write_text(content, encoding="utf-8")
    return path
