"""Error taxonomy for the release pipeline.

Errors raised before any manifest is written (config, change files, manifest
loading, version computation) abort the whole run. Errors raised after the
manifests are applied (changelog, publish) are isolated to one package and
reported alongside the results for the others.
"""

from __future__ import annotations

from pathlib import Path


class ReleaseError(RuntimeError):
    """Base class for every error the pipeline reports to the operator.

    Attributes:
        package: Package the error is about, when known.
        path: File the error is about, when known.
    """

    def __init__(
        self,
        message: str,
        *,
        package: str | None = None,
        path: Path | str | None = None,
    ) -> None:
        self.message = message
        self.package = package
        self.path = Path(path) if path is not None else None
        context = []
        if package:
            context.append(f"package {package}")
        if self.path is not None:
            context.append(str(self.path))
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)

    def with_package(self, package: str | None) -> ReleaseError:
        """Return a copy naming ``package`` unless one is already named."""
        if self.package or not package:
            return self
        return type(self)(self.message, package=package, path=self.path)


class ConfigError(ReleaseError):
    """The run configuration is missing, malformed, or names unknown packages."""


class ChangeFileError(ReleaseError):
    """A change file could not be parsed."""


class UnsupportedFormat(ReleaseError):
    """The manifest's file extension matches no known encoding."""


class MalformedManifest(ReleaseError):
    """The manifest failed to parse or lacks a name or version."""


class InvalidVersion(ReleaseError):
    """A version string is not a valid MAJOR.MINOR.PATCH semantic version."""


class MissingDependencyVersion(ReleaseError):
    """A dependency entry carries neither a version string nor a version field."""


class DeadlineExceeded(ReleaseError):
    """The run did not finish within its deadline."""


class PublishFailed(ReleaseError):
    """A package's publish command failed. Recorded per package."""


class ChangelogWriteFailed(ReleaseError):
    """A package's changelog could not be written. Reported as a warning."""


class DependencyCycle(ReleaseError):
    """Released packages depend on each other at runtime, so no publish order exists."""
