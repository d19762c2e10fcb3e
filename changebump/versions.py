"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, severity
ordering of bump types, and rewriting dependency ranges so they track a
bumped package.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Literal

import semver

from .errors import InvalidVersion

BumpType = Literal["major", "minor", "patch"]

# Ordered from least to most severe.
BUMP_ORDER: tuple[BumpType, ...] = ("patch", "minor", "major")

# Operator prefix, then a version, then anything else, e.g. "^1.2.0", "~1.2", ">=2.0.0".
_RANGE_RE = re.compile(
    r"^(?P<prefix>\s*(?:[\^~]|[<>]=?|==?)?\s*v?)"
    r"(?P<version>\d+(?:\.\d+){0,2})"
    r"(?P<rest>.*)$"
)

# An upper-bound comparator such as "<2", "< 2.0.0" or "<=1.9".
_UPPER_BOUND_RE = re.compile(r"(<=?)\s*v?(\d+(?:\.\d+){0,2})")


def parse_version(version_str: str) -> semver.Version:
    """Parse a strict MAJOR.MINOR.PATCH[-pre][+build] version string.

    Raises:
        InvalidVersion: If the string is not a valid semantic version.
    """
    try:
        return semver.Version.parse(str(version_str).strip())
    except (TypeError, ValueError) as exc:
        raise InvalidVersion(f"Not a valid semantic version: {version_str!r}") from exc


def is_valid_version(version_str: str) -> bool:
    return semver.Version.is_valid(str(version_str).strip())


def bump_version(
    version_str: str, bump: BumpType, prerelease_tag: str | None = None
) -> str:
    """Apply a bump to a version and return the new version string.

    With ``prerelease_tag`` the result is a prerelease of the bumped version.
    A version that is already a prerelease of a large enough release only
    moves its prerelease counter, and without a tag it graduates to that
    release.

    Examples:
        bump_version("2.3.1", "minor") → "2.4.0"
        bump_version("1.9.0", "major") → "2.0.0"
        bump_version("0.0.0", "patch") → "0.0.1"
        bump_version("1.2.0", "minor", "beta") → "1.3.0-beta.0"
        bump_version("1.3.0-beta.0", "patch", "beta") → "1.3.0-beta.1"
        bump_version("1.3.0-beta.1", "minor") → "1.3.0"
    """
    if bump not in BUMP_ORDER:
        raise ValueError(f"Unknown bump type: {bump!r}")
    version = parse_version(version_str)

    if version.prerelease and _release_covers(version, bump):
        if prerelease_tag is None:
            return str(version.finalize_version())
        parts = version.prerelease.split(".")
        if parts[0] == prerelease_tag and len(parts) > 1 and parts[-1].isdigit():
            return str(version.bump_prerelease(prerelease_tag))
        return str(version.replace(prerelease=f"{prerelease_tag}.0", build=None))

    if bump == "major":
        bumped = version.bump_major()
    elif bump == "minor":
        bumped = version.bump_minor()
    else:
        bumped = version.bump_patch()
    if prerelease_tag is None:
        return str(bumped)
    return str(bumped.replace(prerelease=f"{prerelease_tag}.0"))


def _release_covers(version: semver.Version, bump: BumpType) -> bool:
    # 2.0.0-beta.0 already carries a major bump, 1.3.0-beta.0 a minor one.
    if bump == "major":
        return version.minor == 0 and version.patch == 0
    if bump == "minor":
        return version.patch == 0
    return True


def bump_severity(bump: BumpType) -> int:
    return BUMP_ORDER.index(bump)


def max_bump(bumps: Iterable[BumpType]) -> BumpType:
    """Return the most severe bump (major > minor > patch).

    Raises:
        ValueError: If bumps is empty.
    """
    return max(bumps, key=bump_severity)


def track_range(old: str, new_version: str) -> str | None:
    """Rewrite a dependency version or range to point at new_version.

    The operator prefix of the original is kept so the dependency keeps its
    declared compatibility policy. Returns None when the value carries no
    version component to rewrite (e.g. "*", "workspace:*" or "1.x").

    Examples:
        track_range("1.2.0", "1.3.0") → "1.3.0"
        track_range("^1.2.0", "1.3.0") → "^1.3.0"
        track_range("~0.5", "0.5.4") → "~0.5.4"
        track_range("*", "1.3.0") → None
        track_range("^1.2.x", "1.3.0") → None
    """
    match = _RANGE_RE.match(old)
    if match is None:
        return None
    rest = match.group("rest")
    # Wildcard components ("1.x", "1.2.*") are not a version to pin.
    if re.match(r"\.[xX*]", rest):
        return None
    # Pre-release or build suffixes belong to the old version.
    if rest.startswith(("-", "+")):
        rest = re.sub(r"^[-+][0-9A-Za-z.+-]*", "", rest)
    return f"{match.group('prefix')}{new_version}{rest}"


def upper_bounds_allow(range_str: str, version_str: str) -> bool:
    """Whether every ``<``/``<=`` comparator in a range admits the version.

    Partial bounds follow npm: ``<2`` means ``<2.0.0`` and ``<=1.9`` means
    ``<1.10.0``.

    Examples:
        upper_bounds_allow(">=1.3.0, <2", "1.3.0") → True
        upper_bounds_allow(">=2.0.0 <2.0.0", "2.0.0") → False
    """
    version = parse_version(version_str)
    for operator, bound in _UPPER_BOUND_RE.findall(range_str):
        numbers = [int(part) for part in bound.split(".")]
        if operator == "<=" and len(numbers) < 3:
            numbers[-1] += 1
            operator = "<"
        limit = semver.Version(*(numbers + [0, 0])[:3])
        cmp = version.compare(limit)
        if cmp > 0 or (cmp == 0 and operator == "<"):
            return False
    return True
