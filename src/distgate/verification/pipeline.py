"""
distgate — validation pipeline

File: src/distgate/verification/pipeline.py
Last updated: 2026-10-16

Purpose
- Define the stage catalog and run every stage over the discovered packages.

Normative behavior
- Stage order is fixed: syntax_compliance, baseline_api, package_exports,
  bundle_size, module_integrity.
- Package-scoped stages run each checker once per package in discovery order;
  distribution-scoped stages run each checker once.
- Every checker invocation is isolated: an unexpected exception becomes an
  ``error`` result for that checker only, and later checkers and stages run.
- A stage passes iff none of its results is ``fail`` or ``error``; the run
  passes iff every stage passes.
- Execution is sequential and blocking.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Protocol

# Importing the checker modules registers them in DEFAULT_CHECKER_REGISTRY.
import distgate.verification.checkers.baseline_checker  # noqa: F401
import distgate.verification.checkers.bundle_size_checker  # noqa: F401
import distgate.verification.checkers.export_checker  # noqa: F401
import distgate.verification.checkers.metadata_lint_checker  # noqa: F401
import distgate.verification.checkers.module_integrity_checker  # noqa: F401
import distgate.verification.checkers.sourcemap_checker  # noqa: F401
import distgate.verification.checkers.syntax_checker  # noqa: F401
from distgate.constants import (
    BASELINE_STAGE_ID,
    BUNDLE_SIZE_STAGE_ID,
    EXPORTS_STAGE_ID,
    MODULE_INTEGRITY_STAGE_ID,
    STAGE_TITLES,
    SYNTAX_STAGE_ID,
)
from distgate.observability.logging import correlation_scope
from distgate.utils.ids import generate_run_id
from distgate.verification.checkers.base import (
    DEFAULT_CHECKER_REGISTRY,
    CheckerContext,
    CheckerRegistry,
    CheckerScope,
    CheckResult,
    CheckStatus,
    CommandExecutor,
    JSONValue,
    LocalSubprocessExecutor,
    Violation,
    elapsed_ms,
)
from distgate.workspace.discovery import PackageDiscovery

if TYPE_CHECKING:
    from distgate.config.settings import ValidationSettings
    from distgate.workspace.discovery import Package

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PipelineStage:
    """Stage definition: which checkers run, and whether per package or once."""

    stage_id: str
    order: int
    checker_ids: tuple[str, ...]
    scope: CheckerScope = "package"

    def __post_init__(self) -> None:
        if not self.stage_id:
            raise ValueError("PipelineStage.stage_id must be non-empty")
        if self.order <= 0:
            raise ValueError("PipelineStage.order must be > 0")
        if not self.checker_ids:
            raise ValueError("PipelineStage.checker_ids must contain at least one checker id")

    @property
    def title(self) -> str:
        return STAGE_TITLES.get(self.stage_id, self.stage_id)


DEFAULT_STAGES: Final[tuple[PipelineStage, ...]] = (
    PipelineStage(SYNTAX_STAGE_ID, 1, ("syntax_checker",)),
    PipelineStage(BASELINE_STAGE_ID, 2, ("baseline_checker",), scope="distribution"),
    PipelineStage(
        EXPORTS_STAGE_ID,
        3,
        ("sourcemap_checker", "export_integrity_checker", "metadata_lint_checker"),
    ),
    PipelineStage(BUNDLE_SIZE_STAGE_ID, 4, ("bundle_size_checker",)),
    PipelineStage(MODULE_INTEGRITY_STAGE_ID, 5, ("module_integrity_checker",)),
)


@dataclass(frozen=True, slots=True)
class StageResult:
    """Aggregated stage-level result."""

    stage_id: str
    stage_order: int
    title: str
    checker_results: tuple[CheckResult, ...]
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return not any(result.is_failure for result in self.checker_results)

    @property
    def failures(self) -> tuple[CheckResult, ...]:
        return tuple(result for result in self.checker_results if result.is_failure)

    @property
    def warnings(self) -> tuple[CheckResult, ...]:
        return tuple(
            result for result in self.checker_results if result.status is CheckStatus.WARN
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "stage_id": self.stage_id,
            "stage_order": self.stage_order,
            "title": self.title,
            "passed": self.passed,
            "duration_ms": self.duration_ms,
            "checker_results": [result.to_dict() for result in self.checker_results],
        }


@dataclass(frozen=True, slots=True)
class ValidationReport:
    """Per-stage results for one run, in stage order."""

    run_id: str
    packages: tuple[str, ...]
    stage_results: tuple[StageResult, ...]

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.stage_results, key=lambda item: item.stage_order))
        object.__setattr__(self, "stage_results", ordered)

    @property
    def passed(self) -> bool:
        return all(stage.passed for stage in self.stage_results)

    @property
    def results_by_stage(self) -> Mapping[str, StageResult]:
        return {stage.stage_id: stage for stage in self.stage_results}

    def stage(self, stage_id: str) -> StageResult:
        return self.results_by_stage[stage_id]

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "run_id": self.run_id,
            "passed": self.passed,
            "packages": list(self.packages),
            "stages": [stage.to_dict() for stage in self.stage_results],
        }


class PipelineObserver(Protocol):
    """Receives progress as the run advances; used for console output."""

    def stage_started(self, stage: PipelineStage) -> None: ...

    def package_started(self, stage: PipelineStage, package: Package) -> None: ...

    def check_completed(self, stage: PipelineStage, result: CheckResult) -> None: ...

    def stage_completed(self, stage: PipelineStage, result: StageResult) -> None: ...


class ValidationOrchestrator:
    """Runs the stage catalog over the discovered packages with failure isolation."""

    def __init__(
        self,
        settings: ValidationSettings,
        *,
        executor: CommandExecutor | None = None,
        registry: CheckerRegistry | None = None,
        stages: Sequence[PipelineStage] = DEFAULT_STAGES,
        observer: PipelineObserver | None = None,
        run_id: str | None = None,
    ) -> None:
        self._settings = settings
        self._executor = executor or LocalSubprocessExecutor(
            default_timeout_seconds=settings.command_timeout_seconds,
            max_output_chars=settings.max_output_chars,
        )
        self._registry = registry if registry is not None else DEFAULT_CHECKER_REGISTRY
        self._stages = tuple(sorted(stages, key=lambda item: item.order))
        self._observer = observer
        self.run_id = run_id or generate_run_id()

        for stage in self._stages:
            for checker_id in stage.checker_ids:
                if not self._registry.contains(checker_id):
                    raise ValueError(
                        f"stage {stage.stage_id!r} names unknown checker {checker_id!r}"
                    )

    @property
    def stages(self) -> tuple[PipelineStage, ...]:
        return self._stages

    def discover(self) -> tuple[Package, ...]:
        """Discover built packages; raises ``NoBuiltPackagesError`` when there are none."""
        return PackageDiscovery(self._settings).discover()

    def run(self, packages: Sequence[Package] | None = None) -> ValidationReport:
        with correlation_scope(run_id=self.run_id):
            discovered = tuple(packages) if packages is not None else self.discover()
            logger.info(
                "validation started",
                extra={"packages": [package.name for package in discovered]},
            )

            stage_results = [self._run_stage(stage, discovered) for stage in self._stages]
            report = ValidationReport(
                run_id=self.run_id,
                packages=tuple(package.name for package in discovered),
                stage_results=tuple(stage_results),
            )
            logger.info("validation finished", extra={"passed": report.passed})
            return report

    def _run_stage(self, stage: PipelineStage, packages: tuple[Package, ...]) -> StageResult:
        started_ns = time.monotonic_ns()
        results: list[CheckResult] = []

        with correlation_scope(stage=stage.stage_id):
            self._notify("stage_started", stage)
            if stage.scope == "distribution":
                for checker_id in stage.checker_ids:
                    results.append(self._invoke(stage, checker_id, None, packages))
            else:
                for package in packages:
                    with correlation_scope(package=package.name):
                        self._notify("package_started", stage, package)
                        for checker_id in stage.checker_ids:
                            results.append(self._invoke(stage, checker_id, package, packages))

            stage_result = StageResult(
                stage_id=stage.stage_id,
                stage_order=stage.order,
                title=stage.title,
                checker_results=tuple(results),
                duration_ms=elapsed_ms(started_ns),
            )
            if not stage_result.passed:
                logger.warning(
                    "stage failed",
                    extra={"failed_checks": len(stage_result.failures)},
                )
            self._notify("stage_completed", stage, stage_result)
        return stage_result

    def _invoke(
        self,
        stage: PipelineStage,
        checker_id: str,
        package: Package | None,
        packages: tuple[Package, ...],
    ) -> CheckResult:
        started_ns = time.monotonic_ns()
        context = CheckerContext(
            settings=self._settings,
            executor=self._executor,
            stage=stage.stage_id,
            package=package,
            packages=packages,
        )
        with correlation_scope(checker=checker_id):
            try:
                result = self._registry.create(checker_id).check(context)
            except Exception as exc:  # noqa: BLE001
                logger.exception("checker raised unexpectedly")
                result = context.result(
                    checker_id,
                    CheckStatus.ERROR,
                    summary=f"{type(exc).__name__}: {exc}",
                    violations=(
                        Violation(
                            code="checker.unexpected_error",
                            message=str(exc) or type(exc).__name__,
                            details={"error_kind": type(exc).__name__},
                        ),
                    ),
                )

        result = result.with_duration(elapsed_ms(started_ns))
        self._notify("check_completed", stage, result)
        return result

    def _notify(self, event: str, *args: object) -> None:
        if self._observer is None:
            return
        getattr(self._observer, event)(*args)


__all__ = [
    "DEFAULT_STAGES",
    "PipelineObserver",
    "PipelineStage",
    "StageResult",
    "ValidationOrchestrator",
    "ValidationReport",
]
