"""Stable constants shared across validation stages."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Schema version for ``distgate.toml``.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Workspace layout (relative to the repository root unless overridden by config).
PACKAGES_DIR: Final[PurePosixPath] = PurePosixPath("packages")
DIST_DIRNAME: Final[str] = "dist"
MANIFEST_FILENAME: Final[str] = "package.json"
PNPM_WORKSPACE_FILENAME: Final[str] = "pnpm-workspace.yaml"
SANDBOX_PREFIX: Final[str] = ".tmp-"

# Compiled output conventions.
COMPILED_EXTENSIONS: Final[tuple[str, ...]] = (".js",)
SOURCEMAP_SUFFIX: Final[str] = ".map"
SOURCEMAP_REFERENCE_MARKER: Final[str] = "sourceMappingURL="
LEGACY_LOADER_PATTERNS: Final[tuple[str, ...]] = ("require(",)

# Reporting thresholds.
BUNDLE_SIZE_WARN_GZIP_KB: Final[float] = 50.0
MATCH_PREVIEW_CHARS: Final[int] = 200

# Stage identifiers in authoritative execution order.
SYNTAX_STAGE_ID: Final[str] = "syntax_compliance"
BASELINE_STAGE_ID: Final[str] = "baseline_api"
EXPORTS_STAGE_ID: Final[str] = "package_exports"
BUNDLE_SIZE_STAGE_ID: Final[str] = "bundle_size"
MODULE_INTEGRITY_STAGE_ID: Final[str] = "module_integrity"

STAGE_IDS_IN_ORDER: Final[tuple[str, ...]] = (
    SYNTAX_STAGE_ID,
    BASELINE_STAGE_ID,
    EXPORTS_STAGE_ID,
    BUNDLE_SIZE_STAGE_ID,
    MODULE_INTEGRITY_STAGE_ID,
)

STAGE_TITLES: Final[dict[str, str]] = {
    SYNTAX_STAGE_ID: "Syntax compliance",
    BASELINE_STAGE_ID: "Web API baseline",
    EXPORTS_STAGE_ID: "Package exports",
    BUNDLE_SIZE_STAGE_ID: "Bundle size",
    MODULE_INTEGRITY_STAGE_ID: "Module integrity",
}

__all__ = [
    "BASELINE_STAGE_ID",
    "BUNDLE_SIZE_STAGE_ID",
    "BUNDLE_SIZE_WARN_GZIP_KB",
    "COMPILED_EXTENSIONS",
    "CONFIG_SCHEMA_VERSION",
    "DIST_DIRNAME",
    "EXPORTS_STAGE_ID",
    "LEGACY_LOADER_PATTERNS",
    "MANIFEST_FILENAME",
    "MATCH_PREVIEW_CHARS",
    "MODULE_INTEGRITY_STAGE_ID",
    "PACKAGES_DIR",
    "PNPM_WORKSPACE_FILENAME",
    "SANDBOX_PREFIX",
    "SOURCEMAP_REFERENCE_MARKER",
    "SOURCEMAP_SUFFIX",
    "STAGE_IDS_IN_ORDER",
    "STAGE_TITLES",
    "SYNTAX_STAGE_ID",
]
