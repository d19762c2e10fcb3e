"""Prerelease mode.

While ``.changes/pre.json`` exists every released version is a prerelease
carrying its tag (1.3.0-beta.0, then 1.3.0-beta.1, ...). Change files are
kept instead of deleted and listed in the file, so each one bumps versions
only once. Leaving prerelease mode deletes the file; the next ``version``
run then graduates the prereleases and consumes the change files.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from .config import CHANGE_FOLDER
from .errors import ConfigError
from .models import ChangeRecord, PrereleaseState

PRE_FILE = "pre.json"


def pre_file_path(cwd: Path, change_folder: str = CHANGE_FOLDER) -> Path:
    return cwd / change_folder / PRE_FILE


def read_pre_file(
    cwd: Path, change_folder: str = CHANGE_FOLDER
) -> PrereleaseState | None:
    """Load the prerelease state, or None when not in prerelease mode.

    Raises:
        ConfigError: If the file exists but is not valid.
    """
    path = pre_file_path(cwd, change_folder)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Unable to read prerelease file: {exc}", path=path) from exc

    try:
        return PrereleaseState.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid prerelease file:\n{exc}", path=path) from exc


def write_pre_file(
    cwd: Path, state: PrereleaseState, change_folder: str = CHANGE_FOLDER
) -> Path:
    path = pre_file_path(cwd, change_folder)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(state.model_dump(mode="json"), indent=2) + "\n", encoding="utf-8"
    )
    return path


def enter_prerelease(
    cwd: Path, tag: str, change_folder: str = CHANGE_FOLDER
) -> PrereleaseState:
    """Start prerelease mode with ``tag``.

    Raises:
        ConfigError: If prerelease mode is already active or the tag is invalid.
    """
    current = read_pre_file(cwd, change_folder)
    if current is not None:
        raise ConfigError(
            f"Already in prerelease mode with tag {current.tag!r}",
            path=pre_file_path(cwd, change_folder),
        )
    try:
        state = PrereleaseState(tag=tag)
    except ValidationError as exc:
        raise ConfigError(f"Invalid prerelease tag {tag!r}") from exc
    write_pre_file(cwd, state, change_folder)
    return state


def exit_prerelease(cwd: Path, change_folder: str = CHANGE_FOLDER) -> PrereleaseState:
    """End prerelease mode by deleting the prerelease file.

    Raises:
        ConfigError: If prerelease mode is not active.
    """
    state = read_pre_file(cwd, change_folder)
    if state is None:
        raise ConfigError("Not in prerelease mode")
    pre_file_path(cwd, change_folder).unlink()
    return state


def pending_records(
    records: list[ChangeRecord], state: PrereleaseState | None
) -> list[ChangeRecord]:
    """Drop records whose change file was already released as a prerelease."""
    if state is None:
        return records
    released = set(state.changes)
    return [record for record in records if record.source not in released]


def record_released(
    state: PrereleaseState, records: list[ChangeRecord]
) -> PrereleaseState:
    """Return a state that also lists the change files of ``records``."""
    changes = list(state.changes)
    for record in records:
        if record.source and record.source not in changes:
            changes.append(record.source)
    return state.model_copy(update={"changes": changes})
