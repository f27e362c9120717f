"""
distgate — unit tests for package discovery

File: tests/unit/workspace/test_discovery.py

Purpose
- Validate which workspace packages are considered built, and manifest parsing.

What this test file should cover
- Only directories holding build output are returned, in sorted order.
- Missing or malformed manifests are recorded on the package, not raised.
- ``private`` follows JavaScript truthiness.
- Workspace-glob discovery from pnpm-workspace.yaml and package.json.
- Empty discovery is fatal.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from distgate.workspace import (
    ManifestError,
    NoBuiltPackagesError,
    Package,
    PackageDiscovery,
    PackageManifest,
    discover_packages,
    read_manifest,
    workspace_package_dirs,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from distgate.config import ValidationSettings


def test_discovery_returns_only_built_packages_in_sorted_order(workspace) -> None:
    workspace.add_package("utils")
    workspace.add_package("core")
    workspace.add_package("docs", built=False)
    (workspace.packages_dir / "README.md").write_text("not a package", encoding="utf-8")

    packages = discover_packages(workspace.packages_dir)

    assert [package.name for package in packages] == ["core", "utils"]
    core = packages[0]
    assert core.declared_name == "@acme/core"
    assert core.dist_dir == workspace.packages_dir / "core" / "dist"
    assert core.manifest.version == "1.0.0"


def test_discovery_of_missing_packages_dir_is_empty(tmp_path: Path) -> None:
    assert discover_packages(tmp_path / "nope") == ()


def test_built_package_without_manifest_is_kept_with_error(workspace) -> None:
    workspace.add_package("core")
    directory = workspace.add_package("broken")
    (directory / "package.json").unlink()

    broken, core = discover_packages(workspace.packages_dir)

    assert broken.name == "broken"
    assert broken.manifest is None
    assert broken.declared_name is None
    assert not broken.is_private
    assert broken.declared_dependency_names() == frozenset()
    assert "unable to read manifest" in broken.manifest_error.reason
    with pytest.raises(ManifestError, match="unable to read manifest"):
        broken.require_manifest()
    assert core.manifest_error is None
    assert core.require_manifest().name == "@acme/core"


def test_malformed_manifest_is_recorded_with_path(workspace) -> None:
    directory = workspace.add_package("broken")
    (directory / "package.json").write_text("{not json", encoding="utf-8")

    (package,) = discover_packages(workspace.packages_dir)

    assert package.manifest_error.path == directory / "package.json"
    assert "invalid JSON" in package.manifest_error.reason


def test_package_requires_exactly_one_of_manifest_or_error(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="exactly one"):
        Package(name="x", directory=tmp_path, dist_dir=tmp_path / "dist", manifest=None)


def test_manifest_parses_dependency_sections(tmp_path: Path) -> None:
    path = tmp_path / "package.json"
    path.write_text(
        json.dumps(
            {
                "name": "@acme/ui",
                "version": "2.0.0-beta.1",
                "private": True,
                "dependencies": {"lit": "^3", "@acme/core": "workspace:*"},
                "peerDependencies": {"@acme/theme": "*"},
            }
        ),
        encoding="utf-8",
    )

    manifest = read_manifest(path)

    assert manifest.private is True
    assert manifest.version == "2.0.0-beta.1"
    assert manifest.declared_dependency_names() == frozenset({"lit", "@acme/core", "@acme/theme"})


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ({}, "'name'"),
        ({"name": "x", "dependencies": ["a"]}, "'dependencies'"),
        ({"name": "x", "peerDependencies": {"a": 1}}, "'peerDependencies'"),
    ],
)
def test_manifest_validation_errors(
    tmp_path: Path, payload: dict[str, object], message: str
) -> None:
    with pytest.raises(ManifestError, match=message):
        PackageManifest.from_dict(payload, source=tmp_path / "package.json")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (True, True),
        ("true", True),
        ("false", True),
        (1, True),
        ({}, True),
        (False, False),
        ("", False),
        (0, False),
        (None, False),
    ],
)
def test_private_flag_uses_truthiness(tmp_path: Path, value: object, expected: bool) -> None:
    manifest = PackageManifest.from_dict(
        {"name": "x", "private": value}, source=tmp_path / "package.json"
    )

    assert manifest.private is expected


def test_pnpm_workspace_globs_with_exclusions(workspace, tmp_path: Path) -> None:
    (tmp_path / "pnpm-workspace.yaml").write_text(
        "packages:\n  - 'packages/*'\n  - 'tools/*'\n  - '!packages/internal-*'\n",
        encoding="utf-8",
    )
    workspace.add_package("core")
    workspace.add_package("internal-fixtures")
    workspace.add_package("cli", parent=tmp_path / "tools")

    dirs = workspace_package_dirs(tmp_path)

    assert [path.relative_to(tmp_path).as_posix() for path in dirs] == [
        "packages/core",
        "tools/cli",
    ]


def test_package_json_workspaces_object_form(workspace, tmp_path: Path) -> None:
    (tmp_path / "package.json").write_text(
        json.dumps({"name": "root", "private": True, "workspaces": {"packages": ["libs/*"]}}),
        encoding="utf-8",
    )
    workspace.add_package("a", parent=tmp_path / "libs")
    workspace.add_package("b", parent=tmp_path / "libs", built=False)

    dirs = workspace_package_dirs(tmp_path)

    assert [path.name for path in dirs] == ["a", "b"]


def test_workspace_mode_discovery_skips_unbuilt(
    workspace,
    tmp_path: Path,
    settings_factory: Callable[..., ValidationSettings],
) -> None:
    (tmp_path / "package.json").write_text(
        json.dumps({"name": "root", "workspaces": ["packages/*"]}), encoding="utf-8"
    )
    workspace.add_package("core")
    workspace.add_package("draft", built=False)

    settings = settings_factory(discovery__mode="workspace")
    packages = PackageDiscovery(settings).discover()

    assert [package.name for package in packages] == ["core"]


def test_invalid_pnpm_workspace_file_raises(tmp_path: Path) -> None:
    (tmp_path / "pnpm-workspace.yaml").write_text("packages: [unclosed", encoding="utf-8")

    with pytest.raises(ManifestError, match="unable to parse workspace file"):
        workspace_package_dirs(tmp_path)


def test_empty_discovery_is_fatal(workspace, settings: ValidationSettings) -> None:
    workspace.add_package("draft", built=False)

    with pytest.raises(NoBuiltPackagesError) as excinfo:
        PackageDiscovery(settings).discover()

    assert excinfo.value.searched == settings.packages_dir
