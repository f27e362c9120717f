"""
Metadata Lint Checker — package exports stage.

Functional requirements:
- Runs the configured package-metadata linter (``publint`` by default) in the
  package directory.
- Findings are warnings unless ``exports.metadata_lint_strict`` is set.
- A package whose manifest failed to load reports ``error`` without running the tool.
"""

from __future__ import annotations

from distgate.constants import EXPORTS_STAGE_ID
from distgate.verification.checkers.base import (
    CheckerContext,
    CheckResult,
    CheckStatus,
    CommandChecker,
    register_builtin_checker,
)


@register_builtin_checker("metadata_lint_checker")
class MetadataLintChecker(CommandChecker):
    checker_id = "metadata_lint_checker"
    stage = EXPORTS_STAGE_ID
    scope = "package"
    failure_code = "exports.metadata_lint"

    def check(self, context: CheckerContext) -> CheckResult:
        invalid = context.manifest_error_result(self.checker_id)
        if invalid is not None:
            return invalid
        return super().check(context)

    def build_command(self, context: CheckerContext) -> tuple[str, ...]:
        return context.settings.metadata_lint_command

    def failure_status_for(self, context: CheckerContext) -> CheckStatus:
        if context.settings.metadata_lint_strict:
            return CheckStatus.FAIL
        return CheckStatus.WARN


__all__ = ["MetadataLintChecker"]
