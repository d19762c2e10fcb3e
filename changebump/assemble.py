"""Assemble change records into a release plan.

Every package named by a change record gets exactly one plan entry. When
several records name the same package the most severe bump wins
(major > minor > patch) and the records are kept in input order so the
changelog lists them as they were read.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import BumpType, ChangeRecord, Release, ReleasePlan
from .versions import max_bump


def assemble(records: Iterable[ChangeRecord]) -> ReleasePlan:
    """Merge change records into a per-package release plan.

    Pure: the same input always gives the same plan. An empty input gives
    an empty plan, which callers treat as "nothing to release".
    """
    releases: dict[str, Release] = {}
    for record in records:
        for name, bump in record.packages.items():
            release = releases.get(name)
            if release is None:
                releases[name] = Release(bump=bump, changes=[record])
            else:
                release.bump = max_bump((release.bump, bump))
                release.changes.append(record)
    return ReleasePlan(releases=releases)


def cascade(
    plan: ReleasePlan,
    dependents: Mapping[str, Iterable[str]],
    bump: BumpType | None,
) -> ReleasePlan:
    """Extend a plan with releases for packages that depend on released ones.

    A package whose dependency is released gets at least ``bump``, and a
    package newly released this way cascades to its own dependents in turn.
    Packages already in the plan keep their changes and get the more severe
    of their own bump and ``bump``.

    Args:
        plan: Plan produced by assemble(). Not modified.
        dependents: Map of package name → names of packages that declare a
            dependency on it.
        bump: Severity for cascaded releases. None disables cascading.

    Returns:
        A new plan including the cascaded releases.
    """
    releases = {
        name: release.model_copy(deep=True) for name, release in plan.releases.items()
    }
    if bump is None:
        return ReleasePlan(releases=releases)

    # Propagate to dependents using BFS, in sorted order for deterministic output
    queue = sorted(releases)
    while queue:
        node = queue.pop(0)
        for dependent in sorted(dependents.get(node, ())):
            if dependent == node:
                continue
            release = releases.get(dependent)
            if release is None:
                releases[dependent] = Release(bump=bump, dependency_bumps=[node])
                queue.append(dependent)
                continue
            release.bump = max_bump((release.bump, bump))
            if node not in release.dependency_bumps:
                release.dependency_bumps.append(node)
    return ReleasePlan(releases=releases)
