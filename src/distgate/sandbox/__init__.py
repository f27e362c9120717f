"""Isolated install environments and the package manager collaborator."""

from distgate.sandbox.package_manager import (
    Archive,
    ImportVerificationFailure,
    MissingArtifactError,
    NpmPackageManager,
    PackageManager,
    canonical_archive_name,
    import_check_script,
)
from distgate.sandbox.sandbox_manager import (
    SANDBOX_MANIFEST,
    SandboxEnvironment,
    SandboxError,
)

__all__ = [
    "Archive",
    "ImportVerificationFailure",
    "MissingArtifactError",
    "NpmPackageManager",
    "PackageManager",
    "SANDBOX_MANIFEST",
    "SandboxEnvironment",
    "SandboxError",
    "canonical_archive_name",
    "import_check_script",
]
