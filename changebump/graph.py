"""Publish ordering for released packages.

A package is only published after every released package it depends on,
so consumers never resolve a dependency range to a version that is not
live yet.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable, Mapping

from .errors import DependencyCycle


def topo_sort(deps: Mapping[str, Iterable[str]]) -> list[str]:
    """Order packages so each one follows the packages it depends on.

    Kahn's algorithm over a min-heap: whenever several packages are ready,
    the alphabetically first one goes next, so the order is stable across
    runs. Names not in ``deps`` are not being released and are ignored.

    Args:
        deps: Map of package name → names of packages it depends on.

    Raises:
        DependencyCycle: If the released packages depend on each other in a cycle.

    Example:
        topo_sort({"cli": ["core"], "core": [], "docs": []})
        → ["core", "cli", "docs"]
    """
    waiting_on = {
        name: {dep for dep in names if dep in deps and dep != name}
        for name, names in deps.items()
    }
    unblocks: dict[str, list[str]] = {name: [] for name in deps}
    for name, pending in waiting_on.items():
        for dep in pending:
            unblocks[dep].append(name)

    ready = [name for name, pending in waiting_on.items() if not pending]
    heapq.heapify(ready)
    order: list[str] = []
    while ready:
        name = heapq.heappop(ready)
        order.append(name)
        for dependent in unblocks[name]:
            waiting_on[dependent].discard(name)
            if not waiting_on[dependent]:
                heapq.heappush(ready, dependent)

    if len(order) != len(waiting_on):
        stuck = sorted(name for name, pending in waiting_on.items() if pending)
        raise DependencyCycle(
            f"Dependency cycle detected involving: {', '.join(stuck)}"
        )
    return order
