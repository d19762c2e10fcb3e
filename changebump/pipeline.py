"""Release pipeline: load → compute → apply → changelog → publish.

This module orchestrates the changebump release process:
1. Load the manifest of every configured package
2. Compute new versions from the release plan, cascading bumps to
   dependents, and the dependency fields that must track them
3. Apply the new versions to the manifests on disk
4. Write a changelog section for each released package
5. Publish each released package that has a publish command, after the
   released packages it depends on at runtime, skipping versions that are
   already live

Stages run strictly in order. Anything that could leave the manifests half
applied is raised during load or compute, before the first write. Changelog
and publish failures are isolated per package.

The whole version or publish operation runs under a deadline. When it
expires the work is cancelled, in-flight subprocesses are terminated and
DeadlineExceeded is raised.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Mapping
from pathlib import Path
from typing import TypeVar

from . import manifest as manifests_io
from .assemble import assemble, cascade
from .changelog import CHANGELOG_FILE, write_changelog
from .changes import find_change_files, load_change_files, remove_change_files
from .config import (
    load_config,
    manifest_path,
    package_commands,
    package_dir,
    render_command,
    resolve_shell,
)
from .errors import (
    ChangelogWriteFailed,
    ConfigError,
    DeadlineExceeded,
    PublishFailed,
    ReleaseError,
)
from .graph import topo_sort
from .manifest import DEPENDENCY_KINDS, DependencyKind, ManifestHandle
from .models import (
    RUNTIME_KINDS,
    ChangeRecord,
    DependencyUpdate,
    PackageAction,
    PublishRecord,
    ReleasePlan,
    RunConfig,
    VersionBump,
)
from .pre import pending_records, read_pre_file, record_released, write_pre_file
from .shell import read_first_line, run_command, step, warn
from .versions import bump_version, track_range, upper_bounds_allow

T = TypeVar("T")


def load_manifests(config: RunConfig, cwd: Path) -> dict[str, ManifestHandle]:
    """Load the manifest of every configured package.

    All manifests are needed to find packages that depend on a released
    one. A single failure aborts the run before anything is written.

    Returns:
        Map of package name → ManifestHandle.
    """
    step("Loading manifests")

    handles: dict[str, ManifestHandle] = {}
    for name, pkg in config.packages.items():
        path = manifest_path(cwd, pkg)
        handle = manifests_io.load(path, package=name)
        handles[name] = handle
        print(f"  {name} {handle.version} ({_display_path(path, cwd)})")
    return handles


def dependency_name(name: str, handle: ManifestHandle) -> str:
    """Name other manifests use to depend on this package."""
    return handle.name or name


def find_dependents(
    manifests: Mapping[str, ManifestHandle],
    kinds: tuple[DependencyKind, ...] = DEPENDENCY_KINDS,
) -> dict[str, set[str]]:
    """Map each package to the packages whose manifests depend on it.

    Only dependency fields of the given kinds count.
    """
    dependents: dict[str, set[str]] = {name: set() for name in manifests}
    for name, handle in manifests.items():
        dep_name = dependency_name(name, handle)
        for other, other_handle in manifests.items():
            if other != name and manifests_io.depends_on(other_handle, dep_name, kinds):
                dependents[name].add(other)
    return dependents


def compute_actions(
    plan: ReleasePlan,
    manifests: Mapping[str, ManifestHandle],
    config: RunConfig,
    cwd: Path,
    prerelease_tag: str | None = None,
) -> list[PackageAction]:
    """Turn a release plan into per-package actions, sorted by package name.

    Cascades the plan to dependents per the run configuration, bumps each
    released package's version, and works out the new value of every
    dependency field that points at another released package. With a
    prerelease tag every new version is a prerelease.

    Raises:
        ConfigError: A planned package is not in the configuration.
        InvalidVersion: A current version cannot be bumped.
        MissingDependencyVersion: A dependency entry to update has no version.
    """
    step("Computing versions")

    unknown = sorted(name for name in plan.releases if name not in manifests)
    if unknown:
        raise ConfigError(
            "Change files name packages missing from the configuration: "
            + ", ".join(unknown)
        )

    dependents = find_dependents(manifests, config.cascade_kinds)
    full_plan = cascade(plan, dependents, config.dependent_bump)

    bumped: dict[str, VersionBump] = {}
    for name, release in full_plan.releases.items():
        old = manifests[name].version
        try:
            bumped[name] = VersionBump(
                old=old, new=bump_version(old, release.bump, prerelease_tag)
            )
        except ReleaseError as exc:
            raise exc.with_package(name) from exc.__cause__

    # Dependency fields that point at another released package. Only runtime
    # dependencies constrain publish order.
    updates: dict[str, list[DependencyUpdate]] = {name: [] for name in bumped}
    depends: dict[str, list[str]] = {name: [] for name in bumped}
    for name in bumped:
        handle = manifests[name]
        for other in bumped:
            if other == name:
                continue
            dep_name = dependency_name(other, manifests[other])
            for kind in DEPENDENCY_KINDS:
                old = manifests_io.get_dependency_version(handle, kind, dep_name)
                if old is None:
                    continue
                if kind in RUNTIME_KINDS and other not in depends[name]:
                    depends[name].append(other)
                new = track_range(old, bumped[other].new)
                if new is None:
                    warn(
                        f"{name}: {kind} entry {dep_name} = {old!r} "
                        "has no version to rewrite"
                    )
                    continue
                if not upper_bounds_allow(new, bumped[other].new):
                    warn(
                        f"{name}: {kind} entry {dep_name} = {new!r} "
                        f"excludes {bumped[other].new}"
                    )
                updates[name].append(
                    DependencyUpdate(kind=kind, name=dep_name, old=old, new=new)
                )

    actions: list[PackageAction] = []
    for name in sorted(bumped):
        release = full_plan.releases[name]
        handle = manifests[name]
        pkg = config.packages[name]
        directory = package_dir(cwd, pkg)
        values = {
            "name": dependency_name(name, handle),
            "version": bumped[name].new,
            "path": str(directory),
        }
        publish, probe = package_commands(config, name)
        actions.append(
            PackageAction(
                package=name,
                manifest=handle,
                from_version=bumped[name].old,
                to_version=bumped[name].new,
                bump=release.bump,
                changes=release.changes,
                dependency_bumps=release.dependency_bumps,
                dependency_updates=updates[name],
                depends_on=depends[name],
                cwd=directory,
                changelog_path=directory / CHANGELOG_FILE,
                publish=render_command(publish, **values) if publish else None,
                get_published_version=(
                    render_command(probe, **values) if probe else None
                ),
            )
        )
        cause = ""
        if release.dependency_bumps:
            cause = f" (depends on {', '.join(release.dependency_bumps)})"
        bump = bumped[name]
        print(f"  {name}: {bump.old} → {bump.new} ({release.bump}){cause}")
    return actions


async def apply_actions(actions: list[PackageAction]) -> list[Path]:
    """Write new versions and dependency fields to every released manifest.

    Every manifest is updated and serialized before the first write, so a
    serialization problem aborts the run with nothing on disk changed.
    Writes then run concurrently, one task per manifest.
    """
    step(f"Applying {len(actions)} versions")

    contents: list[tuple[PackageAction, bytes]] = []
    for action in actions:
        handle = action.manifest
        manifests_io.set_version(handle, action.to_version)
        for update in action.dependency_updates:
            manifests_io.set_dependency_version(
                handle, update.kind, update.name, update.new
            )
        contents.append((action, manifests_io.serialize(handle)))

    results = await asyncio.gather(
        *(
            asyncio.to_thread(action.manifest.path.write_bytes, content)
            for action, content in contents
        ),
        return_exceptions=True,
    )
    failures = [
        f"{action.package}: {result}"
        for (action, _), result in zip(contents, results)
        if isinstance(result, BaseException)
    ]
    if failures:
        raise ReleaseError("Failed to write manifests:\n" + "\n".join(failures))

    for action in actions:
        print(f"  {action.package}: {action.manifest.path.name} {action.to_version}")
    return [action.manifest.path for action in actions]


async def write_changelogs(actions: list[PackageAction]) -> list[ChangelogWriteFailed]:
    """Write a changelog section per package, concurrently.

    A failure for one package is reported as a warning and does not undo
    the versions already applied or stop the other changelogs.

    Returns:
        The failures, one per package that could not be written.
    """
    step("Writing changelogs")

    results = await asyncio.gather(
        *(asyncio.to_thread(write_changelog, action) for action in actions),
        return_exceptions=True,
    )
    failures: list[ChangelogWriteFailed] = []
    for action, result in zip(actions, results):
        if isinstance(result, BaseException):
            failure = ChangelogWriteFailed(
                f"Unable to write changelog: {result}",
                package=action.package,
                path=action.changelog_path,
            )
            warn(str(failure))
            failures.append(failure)
        else:
            print(f"  {action.package}: {action.changelog_path.name}")
    return failures


async def publish_package(
    action: PackageAction, shell: str | None = None
) -> PublishRecord:
    """Publish one package unless its version is already live.

    Runs the probe command first, if there is one. When the probe reports
    the version being released, the publish command is not run.
    """
    if not action.publish:
        raise PublishFailed("No publish command configured", package=action.package)

    if action.get_published_version:
        try:
            published, returncode = await read_first_line(
                action.get_published_version, cwd=action.cwd, shell=shell
            )
        except OSError as exc:
            warn(f"{action.package}: unable to run probe command: {exc}")
            published, returncode = None, -1
        if returncode != 0:
            print(f"  {action.package}: no published version found (exit {returncode})")
        elif published == action.to_version:
            print(
                f"  {action.package}@{action.to_version} is already published. "
                "Skipping."
            )
            return PublishRecord(
                package=action.package,
                version=action.to_version,
                succeeded=True,
                skipped_as_already_published=True,
            )

    print(f"  publishing {action.package} with {action.publish}")
    try:
        returncode = await run_command(action.publish, cwd=action.cwd, shell=shell)
    except OSError as exc:
        failure = PublishFailed(
            f"Unable to run publish command: {exc}", package=action.package
        )
    else:
        if returncode == 0:
            return PublishRecord(
                package=action.package, version=action.to_version, succeeded=True
            )
        failure = PublishFailed(
            f"Publish command exited with status {returncode}", package=action.package
        )

    warn(str(failure))
    return PublishRecord(
        package=action.package,
        version=action.to_version,
        succeeded=False,
        error=str(failure),
    )


async def publish_packages(
    actions: list[PackageAction], shell: str | None = None
) -> list[PublishRecord]:
    """Publish every package that has a publish command, in dependency order.

    Each package is isolated: a failed publish is recorded and the next
    package is still attempted.
    """
    step("Publishing packages")

    records: list[PublishRecord] = []
    for action in actions:
        if not action.publish:
            print(f"  {action.package}: no publish command, skipping")
            continue
        records.append(await publish_package(action, shell))
    return records


async def with_deadline(work: Awaitable[T], timeout: float) -> T:
    """Race work against a deadline.

    If the deadline wins, the work is cancelled (terminating any subprocess
    it owns) and DeadlineExceeded is raised. If the work wins, the timer is
    cancelled and never fires.
    """
    try:
        return await asyncio.wait_for(work, timeout=timeout)
    except TimeoutError as exc:
        raise DeadlineExceeded(f"Timed out waiting {timeout:g}s for command") from exc


def publish_order(actions: list[PackageAction]) -> list[PackageAction]:
    """Sort actions so each package follows the released packages it needs.

    Raises:
        DependencyCycle: If released packages depend on each other at runtime.
    """
    by_name = {action.package: action for action in actions}
    order = topo_sort({action.package: action.depends_on for action in actions})
    return [by_name[name] for name in order]


async def release(
    plan: ReleasePlan,
    config: RunConfig,
    cwd: Path,
    *,
    publish: bool = False,
    prerelease_tag: str | None = None,
) -> tuple[list[PackageAction], list[PublishRecord]]:
    """Run the release stages for a plan, without a deadline.

    When publishing, the publish order is settled before anything is
    written, so a dependency cycle leaves the repository untouched.

    Returns:
        Tuple of (applied actions, publish records). Publish records are
        empty unless publish is True.
    """
    if plan.is_empty:
        print("There are no changes.")
        return [], []

    manifests = load_manifests(config, cwd)
    actions = compute_actions(plan, manifests, config, cwd, prerelease_tag)
    if publish:
        actions = publish_order(actions)
    await apply_actions(actions)
    await write_changelogs(actions)
    if not publish:
        return actions, []
    records = await publish_packages(actions, resolve_shell(config))
    return actions, records


def read_records(cwd: Path) -> tuple[list[Path], list[ChangeRecord]]:
    paths = find_change_files(cwd)
    return paths, load_change_files(cwd, paths)


def status(records: list[ChangeRecord]) -> str:
    """Describe the release plan without changing anything."""
    plan = assemble(records)
    if plan.is_empty:
        print("There are no changes.")
        return "There are no changes."

    print("changes:")
    for name, entry in plan.releases.items():
        print(f"  {name} => {entry.bump}")
        for change in entry.changes:
            print(f"    - {change.summary.splitlines()[0] if change.summary else ''}")
    summary = ", ".join(
        f"{name} with {entry.bump}" for name, entry in plan.releases.items()
    )
    return f"There are {len(plan)} changes which include {summary}"


def run_version(cwd: Path, timeout: float | None = None) -> list[PackageAction]:
    """Apply versions and changelogs, then consume the change files.

    Outside prerelease mode the change files are deleted. In prerelease mode
    they are kept and listed in the prerelease file instead.
    """
    config = load_config(cwd)
    pre = read_pre_file(cwd)
    paths, records = read_records(cwd)
    pending = pending_records(records, pre)
    actions, _ = asyncio.run(
        with_deadline(
            release(
                assemble(pending),
                config,
                cwd,
                prerelease_tag=pre.tag if pre else None,
            ),
            timeout or config.timeout,
        )
    )
    if pre is not None:
        if pending:
            step("Recording prerelease changes")
            path = write_pre_file(cwd, record_released(pre, pending))
            print(f"  {len(pending)} change files added to {_display_path(path, cwd)}")
    elif paths:
        step("Removing change files")
        remove_change_files(cwd, paths)
    return actions


def run_publish(cwd: Path, timeout: float | None = None) -> list[PublishRecord]:
    """Apply versions and changelogs, then publish each released package."""
    config = load_config(cwd)
    pre = read_pre_file(cwd)
    _, records = read_records(cwd)
    plan = assemble(pending_records(records, pre))
    _, published = asyncio.run(
        with_deadline(
            release(
                plan,
                config,
                cwd,
                publish=True,
                prerelease_tag=pre.tag if pre else None,
            ),
            timeout or config.timeout,
        )
    )
    return published


def run_status(cwd: Path) -> str:
    pre = read_pre_file(cwd)
    if pre is not None:
        print(f"In prerelease mode with tag {pre.tag!r}")
    _, records = read_records(cwd)
    return status(pending_records(records, pre))


def _display_path(path: Path, cwd: Path) -> str:
    try:
        return path.relative_to(cwd).as_posix()
    except ValueError:
        return str(path)
