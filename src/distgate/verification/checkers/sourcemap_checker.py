"""
Sourcemap Checker — package exports stage.

Functional requirements:
- For each compiled file with a companion ``<file>.map``: the map must parse
  as JSON with a non-empty ``sources`` list, and the compiled file must carry
  a ``sourceMappingURL=`` reference.
- Compiled files without a map are tolerated.
- The first invalid map fails the package; remaining files are not inspected.
"""

from __future__ import annotations

import json
from pathlib import Path

from distgate.constants import (
    COMPILED_EXTENSIONS,
    EXPORTS_STAGE_ID,
    SOURCEMAP_REFERENCE_MARKER,
    SOURCEMAP_SUFFIX,
)
from distgate.utils.fs import iter_files_with_suffix
from distgate.verification.checkers.base import (
    CheckerContext,
    CheckResult,
    CheckStatus,
    Violation,
    register_builtin_checker,
)


class InvalidSourcemapError(ValueError):
    """A companion map is malformed or incomplete, or its reference is missing."""

    def __init__(self, path: Path, code: str, reason: str) -> None:
        self.path = path
        self.code = code
        self.reason = reason
        super().__init__(f"{path.name}: {reason}")


def validate_sourcemaps(dist_dir: Path) -> int:
    """Validate every compiled file's companion map; return how many maps were checked."""

    checked = 0
    for compiled in iter_files_with_suffix(dist_dir, COMPILED_EXTENSIONS):
        map_path = compiled.with_name(compiled.name + SOURCEMAP_SUFFIX)
        if not map_path.is_file():
            continue

        try:
            payload = json.loads(map_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise InvalidSourcemapError(
                map_path, "sourcemap.invalid", f"invalid sourcemap: {exc}"
            ) from exc

        sources = payload.get("sources") if isinstance(payload, dict) else None
        if not isinstance(sources, list) or not sources:
            raise InvalidSourcemapError(map_path, "sourcemap.no_sources", "has no sources")

        content = compiled.read_text(encoding="utf-8", errors="replace")
        if SOURCEMAP_REFERENCE_MARKER not in content:
            raise InvalidSourcemapError(
                compiled, "sourcemap.missing_reference", "missing sourcemap reference"
            )
        checked += 1
    return checked


@register_builtin_checker("sourcemap_checker")
class SourcemapChecker:
    checker_id = "sourcemap_checker"
    stage = EXPORTS_STAGE_ID
    scope = "package"

    def check(self, context: CheckerContext) -> CheckResult:
        package = context.require_package()
        try:
            checked = validate_sourcemaps(package.dist_dir)
        except InvalidSourcemapError as exc:
            return context.result(
                self.checker_id,
                CheckStatus.FAIL,
                summary=str(exc),
                violations=(
                    Violation(
                        code=exc.code,
                        message=exc.reason,
                        path=_relative(exc.path, package.directory),
                    ),
                ),
            )
        return context.result(
            self.checker_id,
            CheckStatus.PASS,
            summary="Sourcemaps valid",
            metadata={"maps_checked": checked},
        )


def _relative(path: Path, base: Path) -> str:
    try:
        return path.relative_to(base).as_posix()
    except ValueError:
        return path.as_posix()


__all__ = ["InvalidSourcemapError", "SourcemapChecker", "validate_sourcemaps"]
