"""
Export Integrity Checker — package exports stage.

Functional requirements:
- Adapts ``IsolatedImportTester`` to the checker contract.
- A package whose manifest failed to load reports ``error`` without packing.
- Private packages report ``skip``; failures carry the exception kind and the
  state the import test had reached.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from distgate.constants import EXPORTS_STAGE_ID
from distgate.sandbox.package_manager import NpmPackageManager, PackageManager
from distgate.verification.checkers.base import (
    CheckerContext,
    CheckResult,
    CheckStatus,
    Violation,
    register_builtin_checker,
)
from distgate.verification.import_tester import IsolatedImportTester

if TYPE_CHECKING:
    from distgate.verification.import_tester import ImportTestOutcome

PackageManagerFactory = Callable[[CheckerContext], PackageManager]

_VIOLATION_CODES: dict[str, str] = {
    "CycleError": "exports.dependency_cycle",
    "MissingArtifactError": "exports.missing_artifact",
    "ImportVerificationFailure": "exports.import_failed",
    "ToolInvocationFailure": "exports.tool_failed",
}


def npm_package_manager(context: CheckerContext) -> PackageManager:
    settings = context.settings
    return NpmPackageManager(
        context.executor,
        npm_command=settings.package_manager_command,
        node_command=settings.node_command,
        timeout_seconds=settings.command_timeout_seconds,
    )


@register_builtin_checker("export_integrity_checker")
class ExportIntegrityChecker:
    """Packs, installs, and imports a package in an isolated sandbox."""

    checker_id = "export_integrity_checker"
    stage = EXPORTS_STAGE_ID
    scope = "package"

    def __init__(self, package_manager_factory: PackageManagerFactory | None = None) -> None:
        self._package_manager_factory = package_manager_factory or npm_package_manager

    def check(self, context: CheckerContext) -> CheckResult:
        package = context.require_package()
        invalid = context.manifest_error_result(self.checker_id)
        if invalid is not None:
            return invalid
        tester = IsolatedImportTester(
            self._package_manager_factory(context),
            sandbox_root=context.settings.sandbox_root,
        )
        outcome = tester.run(package, context.packages or (package,))
        return self._to_result(context, outcome)

    def _to_result(self, context: CheckerContext, outcome: ImportTestOutcome) -> CheckResult:
        metadata = {
            "transitions": [state.value for state in outcome.transitions],
            "install_order": list(outcome.install_order),
        }
        if outcome.status is CheckStatus.SKIP:
            return context.result(
                self.checker_id, CheckStatus.SKIP, summary="Skipped (private package)"
            )
        if outcome.status is CheckStatus.PASS:
            return context.result(
                self.checker_id, CheckStatus.PASS, summary="ESM imports work", metadata=metadata
            )

        kind = outcome.error_kind or "Error"
        failed_after = outcome.failed_after.value if outcome.failed_after is not None else None
        return context.result(
            self.checker_id,
            CheckStatus.FAIL,
            summary=f"Import test failed: {outcome.error}",
            violations=(
                Violation(
                    code=_VIOLATION_CODES.get(kind, "exports.import_test_error"),
                    message=outcome.error or kind,
                    details={"error_kind": kind, "failed_after": failed_after},
                ),
            ),
            metadata=metadata,
        )


__all__ = ["ExportIntegrityChecker", "PackageManagerFactory", "npm_package_manager"]
