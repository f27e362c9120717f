"""
Module Integrity Checker — ESM-only output.

Functional requirements:
- Recursively scan a package's compiled files for legacy synchronous loading
  (``require(`` by default).
- Any occurrence fails the package; the matching lines are surfaced,
  truncated to a short preview.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from distgate.constants import COMPILED_EXTENSIONS, MATCH_PREVIEW_CHARS, MODULE_INTEGRITY_STAGE_ID
from distgate.utils.fs import iter_files_with_suffix
from distgate.verification.checkers.base import (
    CheckerContext,
    CheckResult,
    CheckStatus,
    Violation,
    register_builtin_checker,
)

_MAX_REPORTED_MATCHES = 20


@dataclass(frozen=True, slots=True)
class LegacyLoaderMatch:
    path: Path
    line: int
    pattern: str
    preview: str


def scan_for_legacy_loaders(
    dist_dir: Path,
    patterns: Sequence[str],
    *,
    preview_chars: int = MATCH_PREVIEW_CHARS,
) -> tuple[LegacyLoaderMatch, ...]:
    matches: list[LegacyLoaderMatch] = []
    for compiled in iter_files_with_suffix(dist_dir, COMPILED_EXTENSIONS):
        text = compiled.read_text(encoding="utf-8", errors="replace")
        for line_number, line in enumerate(text.splitlines(), start=1):
            for pattern in patterns:
                if pattern in line:
                    matches.append(
                        LegacyLoaderMatch(
                            path=compiled,
                            line=line_number,
                            pattern=pattern,
                            preview=line.strip()[:preview_chars],
                        )
                    )
                    break
    return tuple(matches)


@register_builtin_checker("module_integrity_checker")
class ModuleIntegrityChecker:
    checker_id = "module_integrity_checker"
    stage = MODULE_INTEGRITY_STAGE_ID
    scope = "package"

    def check(self, context: CheckerContext) -> CheckResult:
        package = context.require_package()
        matches = scan_for_legacy_loaders(
            package.dist_dir, context.settings.legacy_loader_patterns
        )
        if not matches:
            return context.result(
                self.checker_id, CheckStatus.PASS, summary="No require() in ESM files"
            )

        reported = matches[:_MAX_REPORTED_MATCHES]
        return context.result(
            self.checker_id,
            CheckStatus.FAIL,
            summary=f"Found require() in ESM files ({len(matches)} occurrence(s))",
            violations=tuple(
                Violation(
                    code="module_integrity.legacy_loader",
                    message=match.preview,
                    path=match.path.relative_to(package.directory).as_posix(),
                    line=match.line,
                    details={"pattern": match.pattern},
                )
                for match in reported
            ),
            metadata={"match_count": len(matches)},
        )


__all__ = ["LegacyLoaderMatch", "ModuleIntegrityChecker", "scan_for_legacy_loaders"]
