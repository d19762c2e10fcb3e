"""Manifest reading and writing across package ecosystems.

A manifest is a package's descriptor file: package.json, Cargo.toml,
pubspec.yaml, or a bare VERSION file. Each encoding is handled by one format
class; the rest of the pipeline only talks to ManifestHandle and the
module-level accessors below, so adding an ecosystem means adding a format
here and nowhere else.

Writes only touch version-bearing fields. Everything else in the parsed
document is left as it was read: tomlkit keeps TOML formatting and comments,
and JSON/YAML keep key order.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, MutableMapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Literal

import tomlkit
import yaml
from tomlkit.exceptions import TOMLKitError

from .errors import (
    InvalidVersion,
    MalformedManifest,
    MissingDependencyVersion,
    ReleaseError,
    UnsupportedFormat,
)
from .versions import is_valid_version

DependencyKind = Literal["dependencies", "devDependencies", "dev-dependencies"]

DEPENDENCY_KINDS: tuple[DependencyKind, ...] = (
    "dependencies",
    "devDependencies",
    "dev-dependencies",
)


class Encoding(str, Enum):
    JSON = "json"
    TOML = "toml"
    YAML = "yaml"
    BARE = "bare-version-text"


_EXTENSIONS: dict[str, Encoding] = {
    ".json": Encoding.JSON,
    ".toml": Encoding.TOML,
    ".yml": Encoding.YAML,
    ".yaml": Encoding.YAML,
    "": Encoding.BARE,
    ".txt": Encoding.BARE,
    ".version": Encoding.BARE,
}


class ManifestFormat:
    """Parse, validate and dump one manifest encoding."""

    encoding: Encoding

    def parse(self, text: str, path: Path) -> Any:
        raise NotImplementedError

    def dump(self, document: Any) -> str:
        raise NotImplementedError

    def version_table(self, document: Any) -> MutableMapping[str, Any]:
        """Return the mapping that holds the ``name`` and ``version`` keys."""
        return document

    def dependency_table(
        self, document: Any, kind: DependencyKind
    ) -> MutableMapping[str, Any] | None:
        table = document.get(kind)
        return table if isinstance(table, MutableMapping) else None

    def validate(self, document: Any, path: Path) -> None:
        if not isinstance(document, Mapping):
            raise MalformedManifest("Manifest is not a mapping", path=path)
        table = self.version_table(document)
        for key in ("name", "version"):
            if not table.get(key):
                raise MalformedManifest(f"Manifest is missing {key!r}", path=path)
        if not isinstance(table["version"], str):
            raise MalformedManifest("Manifest version is not a string", path=path)


class JsonFormat(ManifestFormat):
    encoding = Encoding.JSON

    def parse(self, text: str, path: Path) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedManifest(f"Invalid JSON: {exc}", path=path) from exc

    def dump(self, document: Any) -> str:
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


class TomlFormat(ManifestFormat):
    """Cargo-style TOML, with the version under ``[package]``."""

    encoding = Encoding.TOML

    def parse(self, text: str, path: Path) -> Any:
        try:
            return tomlkit.parse(text)
        except TOMLKitError as exc:
            raise MalformedManifest(f"Invalid TOML: {exc}", path=path) from exc

    def dump(self, document: Any) -> str:
        return tomlkit.dumps(document)

    def version_table(self, document: Any) -> MutableMapping[str, Any]:
        package = document.get("package")
        return package if isinstance(package, MutableMapping) else {}


class YamlFormat(ManifestFormat):
    encoding = Encoding.YAML

    def parse(self, text: str, path: Path) -> Any:
        try:
            return yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise MalformedManifest(f"Invalid YAML: {exc}", path=path) from exc

    def dump(self, document: Any) -> str:
        return yaml.safe_dump(
            document, sort_keys=False, allow_unicode=True, default_flow_style=False
        )


class BareFormat(ManifestFormat):
    """A file whose whole trimmed body is the version."""

    encoding = Encoding.BARE

    def parse(self, text: str, path: Path) -> Any:
        return {"name": "", "version": text.strip()}

    def dump(self, document: Any) -> str:
        return document["version"]

    def dependency_table(
        self, document: Any, kind: DependencyKind
    ) -> MutableMapping[str, Any] | None:
        return None

    def validate(self, document: Any, path: Path) -> None:
        # Only the version is required, and load() checks it for every format.
        pass


FORMATS: dict[Encoding, ManifestFormat] = {
    fmt.encoding: fmt
    for fmt in (JsonFormat(), TomlFormat(), YamlFormat(), BareFormat())
}


@dataclass
class ManifestHandle:
    """A parsed manifest and where it came from.

    Attributes:
        path: File the manifest was read from and is written back to.
        encoding: Which format parsed it.
        document: The parsed document. Only mutate it through the setters in
            this module.
        package: Configured package name, used in error messages.
    """

    path: Path
    encoding: Encoding
    document: Any
    package: str | None = None

    @property
    def format(self) -> ManifestFormat:
        return FORMATS[self.encoding]

    @property
    def name(self) -> str:
        return str(self.format.version_table(self.document).get("name", ""))

    @property
    def version(self) -> str:
        return get_version(self)

    @property
    def dependency_versions(self) -> dict[DependencyKind, dict[str, str]]:
        """Map of dependency kind → dependency name → version or range.

        Entries without a resolvable version are left out; asking for one
        directly through get_dependency_version raises instead.
        """
        result: dict[DependencyKind, dict[str, str]] = {}
        for kind in DEPENDENCY_KINDS:
            table = self.format.dependency_table(self.document, kind)
            if table is None:
                continue
            versions: dict[str, str] = {}
            for dep, entry in table.items():
                value = _entry_version(entry)
                if value is not None:
                    versions[str(dep)] = value
            result[kind] = versions
        return result


def detect_encoding(path: Path) -> Encoding:
    """Pick the manifest encoding from the file extension.

    Raises:
        UnsupportedFormat: If the extension is not a known manifest encoding.
    """
    try:
        return _EXTENSIONS[path.suffix.lower()]
    except KeyError:
        raise UnsupportedFormat(
            f"Unsupported manifest extension {path.suffix!r}", path=path
        ) from None


def load(path: Path | str, package: str | None = None) -> ManifestHandle:
    """Read and parse a manifest file.

    Raises:
        UnsupportedFormat: Unknown file extension.
        MalformedManifest: Unreadable file, parse error, or missing name/version.
        InvalidVersion: The version is not a valid semantic version.
    """
    path = Path(path)
    try:
        encoding = detect_encoding(path)
        text = path.read_text(encoding="utf-8")
        fmt = FORMATS[encoding]
        document = fmt.parse(text, path)
        fmt.validate(document, path)
    except OSError as exc:
        raise MalformedManifest(
            f"Unable to read manifest: {exc.strerror or exc}",
            package=package,
            path=path,
        ) from exc
    except ReleaseError as exc:
        raise exc.with_package(package) from exc.__cause__

    handle = ManifestHandle(
        path=path, encoding=encoding, document=document, package=package
    )
    version = get_version(handle)
    if not is_valid_version(version):
        raise InvalidVersion(
            f"Not a valid semantic version: {version!r}", package=package, path=path
        )
    return handle


def get_version(handle: ManifestHandle) -> str:
    return str(handle.format.version_table(handle.document)["version"])


def set_version(handle: ManifestHandle, version: str) -> ManifestHandle:
    handle.format.version_table(handle.document)["version"] = version
    return handle


def depends_on(
    handle: ManifestHandle,
    dep: str,
    kinds: Iterable[DependencyKind] = DEPENDENCY_KINDS,
) -> bool:
    """Whether the manifest declares ``dep`` under any of ``kinds``."""
    for kind in kinds:
        table = handle.format.dependency_table(handle.document, kind)
        if table is not None and dep in table:
            return True
    return False


def get_dependency_version(
    handle: ManifestHandle, kind: DependencyKind, dep: str
) -> str | None:
    """Return the version or range declared for ``dep``, or None if absent.

    Entries are either a plain version string or a mapping carrying a
    ``version`` field alongside other metadata (path, features, sdk, ...).

    Raises:
        MissingDependencyVersion: The entry exists but has no version.
    """
    table = handle.format.dependency_table(handle.document, kind)
    if table is None or dep not in table:
        return None
    value = _entry_version(table[dep])
    if value is None:
        raise MissingDependencyVersion(
            f"{handle.package or handle.name} has a {kind} entry on {dep} without a "
            f"version number. Pin it to a MAJOR.MINOR.PATCH reference",
            package=handle.package,
            path=handle.path,
        )
    return value


def set_dependency_version(
    handle: ManifestHandle, kind: DependencyKind, dep: str, version: str
) -> ManifestHandle:
    """Rewrite the version of an existing dependency entry, keeping its shape.

    Absent dependencies are left alone.

    Raises:
        MissingDependencyVersion: The entry is a mapping without a version field.
    """
    table = handle.format.dependency_table(handle.document, kind)
    if table is None or dep not in table:
        return handle
    entry = table[dep]
    if isinstance(entry, MutableMapping):
        if _entry_version(entry) is None:
            raise MissingDependencyVersion(
                f"{handle.package or handle.name} has a {kind} entry on {dep} "
                f"without a version number",
                package=handle.package,
                path=handle.path,
            )
        entry["version"] = version
    else:
        table[dep] = version
    return handle


def serialize(handle: ManifestHandle) -> bytes:
    return handle.format.dump(handle.document).encode("utf-8")


def save(handle: ManifestHandle) -> Path:
    """Write the manifest back to the file it was loaded from."""
    handle.path.write_bytes(serialize(handle))
    return handle.path


def _entry_version(entry: Any) -> str | None:
    if isinstance(entry, str):
        return str(entry)
    if isinstance(entry, Mapping):
        value = entry.get("version")
        if isinstance(value, str) and value:
            return str(value)
    return None
