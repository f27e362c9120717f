"""Workspace model: package discovery and internal dependency graph."""

from distgate.workspace.dependency_graph import (
    CycleError,
    DependencyGraph,
    resolve_internal_dependencies,
)
from distgate.workspace.discovery import (
    ManifestError,
    NoBuiltPackagesError,
    Package,
    PackageDiscovery,
    PackageManifest,
    discover_packages,
    discover_workspace_packages,
    read_manifest,
    workspace_package_dirs,
)

__all__ = [
    "CycleError",
    "DependencyGraph",
    "ManifestError",
    "NoBuiltPackagesError",
    "Package",
    "PackageDiscovery",
    "PackageManifest",
    "discover_packages",
    "discover_workspace_packages",
    "read_manifest",
    "resolve_internal_dependencies",
    "workspace_package_dirs",
]
