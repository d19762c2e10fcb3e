"""Change file discovery, parsing and removal.

A change file is a Markdown file in ``.changes/`` with a YAML front matter
block mapping each affected package to its bump, followed by the summary:

    ---
    "core": minor
    "cli": patch
    ---

    Add the `--dry-run` flag.

README files in the folder are ignored.
"""

from __future__ import annotations

from pathlib import Path

import yaml

from .config import CHANGE_FOLDER
from .errors import ChangeFileError
from .models import ChangeRecord
from .versions import BUMP_ORDER

FRONT_MATTER_DELIMITER = "---"


def find_change_files(cwd: Path, change_folder: str = CHANGE_FOLDER) -> list[Path]:
    """List change files in sorted order, relative to cwd."""
    folder = cwd / change_folder
    if not folder.is_dir():
        return []
    return sorted(
        path.relative_to(cwd)
        for path in folder.glob("*.md")
        if path.name.lower() != "readme.md"
    )


def parse_change_file(text: str, source: str | None = None) -> ChangeRecord:
    """Parse the contents of a change file into a ChangeRecord.

    Raises:
        ChangeFileError: Missing or malformed front matter, or an unknown bump.
    """
    lines = text.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        raise ChangeFileError("Change file has no front matter", path=source)
    try:
        end = next(
            i
            for i, line in enumerate(lines[1:], start=1)
            if line.strip() == FRONT_MATTER_DELIMITER
        )
    except StopIteration:
        raise ChangeFileError(
            "Change file front matter is not closed", path=source
        ) from None

    try:
        front = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as exc:
        raise ChangeFileError(f"Invalid front matter: {exc}", path=source) from exc
    if not isinstance(front, dict) or not front:
        raise ChangeFileError("Front matter names no packages", path=source)

    packages = {}
    for name, bump in front.items():
        if bump not in BUMP_ORDER:
            raise ChangeFileError(
                f"Unknown bump {bump!r} for {name}; expected one of "
                f"{', '.join(reversed(BUMP_ORDER))}",
                path=source,
            )
        packages[str(name)] = bump

    summary = "\n".join(lines[end + 1 :]).strip()
    return ChangeRecord(packages=packages, summary=summary, source=source)


def load_change_files(cwd: Path, paths: list[Path]) -> list[ChangeRecord]:
    """Read and parse change files, in the order given."""
    records: list[ChangeRecord] = []
    for path in paths:
        try:
            text = (cwd / path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ChangeFileError(
                f"Unable to read change file: {exc}", path=path
            ) from exc
        records.append(parse_change_file(text, source=path.as_posix()))
    return records


def remove_change_files(cwd: Path, paths: list[Path]) -> None:
    """Delete consumed change files."""
    for path in paths:
        (cwd / path).unlink()
        print(f"  {path.as_posix()} was deleted")
