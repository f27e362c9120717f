"""
distgate — workspace package discovery.

File: src/distgate/workspace/discovery.py
Last updated: 2026-10-16

Purpose
- Enumerate distribution packages that have produced build output and parse
  their ``package.json`` manifests into immutable records.

Functional requirements
- A package without a build-output directory is never included.
- Results are ordered by directory name so every run visits packages in the
  same order.
- A built package whose manifest cannot be read or parsed is still included;
  the error travels with it so only checks that need the manifest are affected.
- ``workspace`` mode resolves package directories from ``pnpm-workspace.yaml``
  or the root manifest's ``workspaces`` field instead of a fixed packages root.

Non-functional requirements
- No side effects beyond reading files.
"""

from __future__ import annotations

import fnmatch
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from distgate.constants import DIST_DIRNAME, MANIFEST_FILENAME, PNPM_WORKSPACE_FILENAME

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from distgate.config.settings import ValidationSettings

logger = logging.getLogger(__name__)


class ManifestError(ValueError):
    """Raised when a package manifest is missing, unreadable, or malformed."""

    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


class NoBuiltPackagesError(RuntimeError):
    """Raised when discovery finds no package with build output."""

    def __init__(self, searched: Path | str) -> None:
        self.searched = Path(searched)
        super().__init__(
            f"no packages with build output found under {self.searched}; run the build first"
        )


@dataclass(frozen=True, slots=True)
class PackageManifest:
    """The subset of ``package.json`` the validator reads."""

    name: str
    version: str = "0.0.0"
    dependencies: dict[str, str] = field(default_factory=dict)
    peer_dependencies: dict[str, str] = field(default_factory=dict)
    private: bool = False

    @classmethod
    def from_dict(cls, payload: Mapping[str, object], *, source: Path) -> PackageManifest:
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ManifestError(source, "'name' must be a non-empty string")

        version = payload.get("version", "0.0.0")
        if not isinstance(version, str) or not version.strip():
            raise ManifestError(source, "'version' must be a non-empty string")

        return cls(
            name=name.strip(),
            version=version.strip(),
            dependencies=_dependency_mapping(payload.get("dependencies"), "dependencies", source),
            peer_dependencies=_dependency_mapping(
                payload.get("peerDependencies"), "peerDependencies", source
            ),
            private=_truthy(payload.get("private")),
        )

    def declared_dependency_names(self) -> frozenset[str]:
        """Union of dependency and peer-dependency names."""
        return frozenset(self.dependencies) | frozenset(self.peer_dependencies)


@dataclass(frozen=True, slots=True)
class Package:
    """One discovered workspace package with build output."""

    name: str
    directory: Path
    dist_dir: Path
    manifest: PackageManifest | None
    manifest_error: ManifestError | None = None

    def __post_init__(self) -> None:
        if (self.manifest is None) == (self.manifest_error is None):
            raise ValueError("Package needs exactly one of manifest or manifest_error")

    def require_manifest(self) -> PackageManifest:
        """Return the parsed manifest or re-raise the error recorded at discovery."""
        if self.manifest is None:
            assert self.manifest_error is not None
            raise self.manifest_error
        return self.manifest

    @property
    def declared_name(self) -> str | None:
        return self.manifest.name if self.manifest is not None else None

    @property
    def is_private(self) -> bool:
        return self.manifest is not None and self.manifest.private

    def declared_dependency_names(self) -> frozenset[str]:
        if self.manifest is None:
            return frozenset()
        return self.manifest.declared_dependency_names()


def read_manifest(path: Path | str) -> PackageManifest:
    """Parse a ``package.json`` file, raising :class:`ManifestError` on any problem."""

    manifest_path = Path(path)
    try:
        raw = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(manifest_path, f"unable to read manifest: {exc}") from exc

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ManifestError(manifest_path, f"invalid JSON: {exc}") from exc

    if not isinstance(payload, Mapping):
        raise ManifestError(manifest_path, "manifest root must be a JSON object")
    return PackageManifest.from_dict(payload, source=manifest_path)


def discover_packages(
    packages_dir: Path | str,
    dist_dirname: str = DIST_DIRNAME,
) -> tuple[Package, ...]:
    """Return packages directly under ``packages_dir`` that contain ``dist_dirname``."""

    root = Path(packages_dir)
    if not root.is_dir():
        return ()
    return _load_packages((entry for entry in root.iterdir()), dist_dirname)


def discover_workspace_packages(
    repo_root: Path | str,
    dist_dirname: str = DIST_DIRNAME,
) -> tuple[Package, ...]:
    """Return built packages matched by the repository's workspace globs."""

    return _load_packages(workspace_package_dirs(repo_root), dist_dirname)


def workspace_package_dirs(repo_root: Path | str) -> tuple[Path, ...]:
    """Expand workspace globs into package directories (those holding a manifest).

    ``pnpm-workspace.yaml`` takes precedence over the root manifest's
    ``workspaces`` field. Patterns prefixed with ``!`` exclude matches.
    """

    root = Path(repo_root)
    patterns = _workspace_patterns(root)
    includes = [pattern for pattern in patterns if not pattern.startswith("!")]
    excludes = [pattern[1:] for pattern in patterns if pattern.startswith("!")]

    matched: set[Path] = set()
    for pattern in includes:
        for candidate in root.glob(pattern.rstrip("/")):
            if not (candidate / MANIFEST_FILENAME).is_file():
                continue
            relative = candidate.relative_to(root).as_posix()
            if any(fnmatch.fnmatch(relative, excluded.rstrip("/")) for excluded in excludes):
                continue
            matched.add(candidate)
    return tuple(sorted(matched))


class PackageDiscovery:
    """Discovery front-end driven by :class:`ValidationSettings`."""

    def __init__(self, settings: ValidationSettings) -> None:
        self._settings = settings

    @property
    def search_root(self) -> Path:
        if self._settings.discovery_mode == "workspace":
            return self._settings.repo_root
        return self._settings.packages_dir

    def discover(self) -> tuple[Package, ...]:
        """Return built packages or raise :class:`NoBuiltPackagesError` when none exist."""

        if self._settings.discovery_mode == "workspace":
            packages = discover_workspace_packages(
                self._settings.repo_root, self._settings.dist_dirname
            )
        else:
            packages = discover_packages(self._settings.packages_dir, self._settings.dist_dirname)

        if not packages:
            raise NoBuiltPackagesError(self.search_root)
        return packages


def _load_packages(candidates: Iterable[Path], dist_dirname: str) -> tuple[Package, ...]:
    packages: dict[str, Package] = {}
    for directory in candidates:
        if not directory.is_dir():
            continue
        dist_dir = directory / dist_dirname
        if not dist_dir.is_dir():
            continue

        manifest: PackageManifest | None = None
        manifest_error: ManifestError | None = None
        try:
            manifest = read_manifest(directory / MANIFEST_FILENAME)
        except ManifestError as exc:
            logger.warning(
                "package manifest unusable",
                extra={"package": directory.name, "reason": exc.reason},
            )
            manifest_error = exc

        existing = packages.get(directory.name)
        if existing is not None:
            raise ManifestError(
                directory / MANIFEST_FILENAME,
                f"package directory name {directory.name!r} also used by {existing.directory}",
            )
        packages[directory.name] = Package(
            name=directory.name,
            directory=directory,
            dist_dir=dist_dir,
            manifest=manifest,
            manifest_error=manifest_error,
        )
    return tuple(packages[name] for name in sorted(packages))


def _workspace_patterns(root: Path) -> Sequence[str]:
    pnpm_file = root / PNPM_WORKSPACE_FILENAME
    if pnpm_file.is_file():
        try:
            payload = yaml.safe_load(pnpm_file.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ManifestError(pnpm_file, f"unable to parse workspace file: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise ManifestError(pnpm_file, "workspace file root must be a mapping")
        return _string_list(payload.get("packages", []), pnpm_file, "packages")

    manifest_file = root / MANIFEST_FILENAME
    if not manifest_file.is_file():
        return ()
    try:
        payload = json.loads(manifest_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ManifestError(manifest_file, f"unable to parse root manifest: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise ManifestError(manifest_file, "manifest root must be a JSON object")

    workspaces = payload.get("workspaces", [])
    # Yarn's object form: {"packages": [...], "nohoist": [...]}.
    if isinstance(workspaces, Mapping):
        workspaces = workspaces.get("packages", [])
    return _string_list(workspaces, manifest_file, "workspaces")


def _string_list(value: object, source: Path, field_name: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ManifestError(source, f"{field_name!r} must be a list of glob strings")
    return [item.strip() for item in value if item.strip()]


def _truthy(value: object) -> bool:
    # package.json consumers test "private" for truthiness, so "true" counts.
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)):
        return value == value and value != 0
    return value is not None and value is not False


def _dependency_mapping(value: object, field_name: str, source: Path) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ManifestError(source, f"{field_name!r} must be an object")
    parsed: dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise ManifestError(source, f"{field_name!r} must map names to version ranges")
        parsed[key] = item
    return {key: parsed[key] for key in sorted(parsed)}


__all__ = [
    "ManifestError",
    "NoBuiltPackagesError",
    "Package",
    "PackageDiscovery",
    "PackageManifest",
    "discover_packages",
    "discover_workspace_packages",
    "read_manifest",
    "workspace_package_dirs",
]
