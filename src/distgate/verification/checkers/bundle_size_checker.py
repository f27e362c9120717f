"""
Bundle Size Checker — observational size report.

Functional requirements:
- Sum raw and gzip-compressed sizes of a package's compiled (non-map) files.
- Never fails: packages above the configured gzip threshold are ``warn``.
"""

from __future__ import annotations

import gzip
from dataclasses import dataclass
from typing import TYPE_CHECKING

from distgate.constants import BUNDLE_SIZE_STAGE_ID, COMPILED_EXTENSIONS
from distgate.utils.fs import iter_files_with_suffix
from distgate.verification.checkers.base import (
    CheckerContext,
    CheckResult,
    CheckStatus,
    register_builtin_checker,
)

if TYPE_CHECKING:
    from pathlib import Path

# zlib's default level, so sizes line up with what bundlers report.
_GZIP_LEVEL = 6


@dataclass(frozen=True, slots=True)
class BundleMetrics:
    raw_bytes: int
    gzip_bytes: int
    file_count: int

    @property
    def raw_kb(self) -> float:
        return self.raw_bytes / 1024

    @property
    def gzip_kb(self) -> float:
        return self.gzip_bytes / 1024

    def describe(self) -> str:
        return f"{self.raw_kb:.2f} KB ({self.gzip_kb:.2f} KB gzipped)"


def measure_bundle(dist_dir: Path) -> BundleMetrics:
    raw_total = 0
    gzip_total = 0
    files = iter_files_with_suffix(dist_dir, COMPILED_EXTENSIONS)
    for compiled in files:
        content = compiled.read_bytes()
        raw_total += len(content)
        gzip_total += len(gzip.compress(content, compresslevel=_GZIP_LEVEL, mtime=0))
    return BundleMetrics(raw_bytes=raw_total, gzip_bytes=gzip_total, file_count=len(files))


@register_builtin_checker("bundle_size_checker")
class BundleSizeChecker:
    """Report per-package bundle size; over-threshold packages get a warning."""

    checker_id = "bundle_size_checker"
    stage = BUNDLE_SIZE_STAGE_ID
    scope = "package"

    def check(self, context: CheckerContext) -> CheckResult:
        metrics = measure_bundle(context.require_package().dist_dir)
        threshold = context.settings.bundle_size_warn_gzip_kb
        status = CheckStatus.WARN if metrics.gzip_kb > threshold else CheckStatus.PASS
        return context.result(
            self.checker_id,
            status,
            summary=metrics.describe(),
            metadata={
                "raw_bytes": metrics.raw_bytes,
                "gzip_bytes": metrics.gzip_bytes,
                "file_count": metrics.file_count,
                "warn_gzip_kb": threshold,
            },
        )


__all__ = ["BundleMetrics", "BundleSizeChecker", "measure_bundle"]
