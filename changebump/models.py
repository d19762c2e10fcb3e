"""Data models for changebump.

These Pydantic models represent the core data structures used throughout
the release pipeline: change records and the release plan assembled from
them, the run configuration, and the per-package actions and publish
results the orchestrator produces.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .manifest import DEPENDENCY_KINDS, DependencyKind, ManifestHandle
from .versions import BumpType

RUNTIME_KINDS: tuple[DependencyKind, ...] = ("dependencies",)


class ChangeRecord(BaseModel):
    """A human-authored note declaring which packages a change affects.

    Attributes:
        packages: Map of affected package name → bump severity for it.
        summary: Free-text description, used in changelogs.
        source: Path of the change file this record was read from, if any.
    """

    model_config = ConfigDict(frozen=True)

    packages: dict[str, BumpType]
    summary: str = ""
    source: str | None = None

    @classmethod
    def create(
        cls,
        packages: list[str] | set[str] | tuple[str, ...],
        bump: BumpType,
        summary: str = "",
        source: str | None = None,
    ) -> ChangeRecord:
        """Build a record that bumps every named package by the same severity."""
        return cls(
            packages={name: bump for name in packages}, summary=summary, source=source
        )

    @property
    def affected_packages(self) -> set[str]:
        return set(self.packages)


class Release(BaseModel):
    """One package's entry in a release plan.

    Attributes:
        bump: Highest severity among contributing records and cascades.
        changes: Contributing change records, in input order.
        dependency_bumps: Released packages this one depends on that caused
            a cascaded bump.
    """

    bump: BumpType
    changes: list[ChangeRecord] = Field(default_factory=list)
    dependency_bumps: list[str] = Field(default_factory=list)


class ReleasePlan(BaseModel):
    """Resolved per-package outcome of merging all change records for one run."""

    releases: dict[str, Release] = Field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.releases)

    def __contains__(self, name: object) -> bool:
        return name in self.releases

    def __getitem__(self, name: str) -> Release:
        return self.releases[name]

    @property
    def is_empty(self) -> bool:
        return not self.releases


class PackageManagerConfig(BaseModel):
    """Default commands shared by every package using one package manager."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    publish: str | None = None
    get_published_version: str | None = Field(
        default=None, alias="getPublishedVersion"
    )


class PackageConfig(BaseModel):
    """Configuration for a single package in the repository.

    Attributes:
        path: Package directory, or the manifest file itself, relative to the
            repository root.
        manager: Package manager name; selects default manifest file name and
            the shared commands in ``pkgManagers``.
        manifest: Manifest file name inside ``path``.
        publish: Shell command that publishes the package.
        get_published_version: Shell command that prints the currently
            published version.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    path: str = "."
    manager: str | None = None
    manifest: str | None = None
    publish: str | None = None
    get_published_version: str | None = Field(
        default=None, alias="getPublishedVersion"
    )


class RunConfig(BaseModel):
    """Resolved run configuration, read from ``.changes/config.json``.

    Attributes:
        packages: Map of package name → PackageConfig.
        pkg_managers: Map of manager name → shared command defaults.
        dependent_bump: Severity given to packages that depend on a released
            package. None disables cascading.
        cascade_dev_dependents: Whether dev dependencies also trigger a
            cascaded bump.
        timeout: Run-wide deadline in seconds for version and publish.
        shell: Shell used for publish and probe commands. None uses the host
            default.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    packages: dict[str, PackageConfig] = Field(default_factory=dict)
    pkg_managers: dict[str, PackageManagerConfig] = Field(
        default_factory=dict, alias="pkgManagers"
    )
    dependent_bump: BumpType | None = Field(default="patch", alias="dependentBump")
    cascade_dev_dependents: bool = Field(
        default=False, alias="cascadeDevDependents"
    )
    timeout: float = 120.0
    shell: str | None = None

    @property
    def cascade_kinds(self) -> tuple[DependencyKind, ...]:
        return DEPENDENCY_KINDS if self.cascade_dev_dependents else RUNTIME_KINDS


class DependencyUpdate(BaseModel):
    """A dependency field rewritten to track a released package."""

    kind: DependencyKind
    name: str
    old: str
    new: str


class PackageAction(BaseModel):
    """Everything needed to release one package.

    Created by the orchestrator from a plan entry joined with the package's
    manifest; consumed by the apply, changelog and publish stages.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    package: str
    manifest: ManifestHandle = Field(exclude=True, repr=False)
    from_version: str
    to_version: str
    bump: BumpType
    changes: list[ChangeRecord] = Field(default_factory=list)
    dependency_bumps: list[str] = Field(default_factory=list)
    dependency_updates: list[DependencyUpdate] = Field(default_factory=list)
    depends_on: list[str] = Field(default_factory=list)
    cwd: Path
    changelog_path: Path
    publish: str | None = None
    get_published_version: str | None = None


class PublishRecord(BaseModel):
    """Outcome of the publish stage for one package."""

    package: str
    version: str
    succeeded: bool
    skipped_as_already_published: bool = False
    error: str | None = None


class VersionBump(BaseModel):
    """Records a version change for a package.

    Attributes:
        old: The version before bumping.
        new: The version after bumping.
    """

    old: str
    new: str



class PrereleaseState(BaseModel):
    """Contents of ``.changes/pre.json`` while the repository is in prerelease mode.

    Attributes:
        tag: Prerelease identifier, e.g. "beta" for 1.3.0-beta.0.
        changes: Change files already released as prereleases. They stay on
            disk until prerelease mode ends but no longer bump versions.
    """

    tag: str = Field(min_length=1, pattern=r"^[0-9A-Za-z-]+$")
    changes: list[str] = Field(default_factory=list)
