"""
distgate — isolated import tester.

File: src/distgate/verification/import_tester.py
Last updated: 2026-10-16

Purpose
- Prove a package is importable exactly as an external consumer would import it.

Normative behavior
- States run in order: START, SANDBOX_CREATED, DEPENDENCIES_PACKED,
  DEPENDENCIES_INSTALLED, TARGET_PACKED, TARGET_INSTALLED, IMPORT_VERIFIED,
  TORN_DOWN. Any failure moves to FAILED and then TORN_DOWN.
- Every transition is recorded on the outcome.
- Private packages skip the machine: no sandbox, no pack, no install.
- Internal dependencies are installed in topological order before the target;
  a dependency cycle fails the test before any sandbox is created.
- Sandbox teardown happens exactly once per run, whatever state was reached.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from distgate.sandbox.package_manager import ImportVerificationFailure, MissingArtifactError
from distgate.sandbox.sandbox_manager import SandboxEnvironment, SandboxError
from distgate.verification.checkers.base import CheckStatus, ToolInvocationFailure
from distgate.workspace.dependency_graph import CycleError, DependencyGraph
from distgate.workspace.discovery import ManifestError

if TYPE_CHECKING:
    from distgate.sandbox.package_manager import Archive, PackageManager
    from distgate.workspace.discovery import Package

logger = logging.getLogger(__name__)

SandboxFactory = Callable[[Path], SandboxEnvironment]

# Failures that end the state machine for one package; anything else is a bug
# and propagates (after teardown) to the orchestrator.
_EXPECTED_FAILURES: tuple[type[Exception], ...] = (
    CycleError,
    ManifestError,
    MissingArtifactError,
    ImportVerificationFailure,
    ToolInvocationFailure,
    SandboxError,
    OSError,
)


class ImportTestState(StrEnum):
    START = "start"
    SANDBOX_CREATED = "sandbox_created"
    DEPENDENCIES_PACKED = "dependencies_packed"
    DEPENDENCIES_INSTALLED = "dependencies_installed"
    TARGET_PACKED = "target_packed"
    TARGET_INSTALLED = "target_installed"
    IMPORT_VERIFIED = "import_verified"
    FAILED = "failed"
    TORN_DOWN = "torn_down"


@dataclass(frozen=True, slots=True)
class ImportTestOutcome:
    """Result of one isolated import test."""

    package: str
    status: CheckStatus
    transitions: tuple[ImportTestState, ...] = ()
    install_order: tuple[str, ...] = ()
    failed_after: ImportTestState | None = None
    error_kind: str | None = None
    error: str | None = None

    @property
    def passed(self) -> bool:
        return self.status in {CheckStatus.PASS, CheckStatus.SKIP}

    @property
    def teardown_count(self) -> int:
        return self.transitions.count(ImportTestState.TORN_DOWN)


class IsolatedImportTester:
    """Packs, installs, and loads one package inside a fresh sandbox."""

    def __init__(
        self,
        package_manager: PackageManager,
        *,
        sandbox_root: Path,
        sandbox_factory: SandboxFactory = SandboxEnvironment,
    ) -> None:
        self._package_manager = package_manager
        self._sandbox_root = Path(sandbox_root)
        self._sandbox_factory = sandbox_factory

    def run(
        self,
        package: Package,
        packages: Sequence[Package],
        *,
        graph: DependencyGraph | None = None,
    ) -> ImportTestOutcome:
        if package.is_private:
            logger.debug("import test skipped for private package")
            return ImportTestOutcome(package=package.name, status=CheckStatus.SKIP)

        by_name = {item.name: item for item in packages}
        resolved_graph = graph if graph is not None else DependencyGraph.from_packages(packages)
        transitions: list[ImportTestState] = [ImportTestState.START]
        install_order: tuple[str, ...] = ()
        failure: Exception | None = None
        failed_after: ImportTestState | None = None
        sandbox: SandboxEnvironment | None = None

        def advance(state: ImportTestState) -> None:
            transitions.append(state)
            logger.debug("import test state -> %s", state.value)

        try:
            install_order = resolved_graph.install_order(package.name)
            sandbox = self._sandbox_factory(self._sandbox_root)
            path = sandbox.acquire()
            advance(ImportTestState.SANDBOX_CREATED)

            archives: list[Archive] = [
                self._package_manager.pack(by_name[name], path) for name in install_order
            ]
            advance(ImportTestState.DEPENDENCIES_PACKED)

            for archive in archives:
                self._package_manager.install(archive, path)
            advance(ImportTestState.DEPENDENCIES_INSTALLED)

            target = self._package_manager.pack(package, path)
            advance(ImportTestState.TARGET_PACKED)

            self._package_manager.install(target, path)
            advance(ImportTestState.TARGET_INSTALLED)

            self._package_manager.verify_import(package.require_manifest().name, path)
            advance(ImportTestState.IMPORT_VERIFIED)
        except _EXPECTED_FAILURES as exc:
            failure = exc
            failed_after = transitions[-1]
            advance(ImportTestState.FAILED)
            logger.info(
                "import test failed after %s: %s",
                failed_after.value,
                exc,
                extra={"error_kind": type(exc).__name__},
            )
        finally:
            if sandbox is not None:
                sandbox.release()
            advance(ImportTestState.TORN_DOWN)

        if failure is None:
            return ImportTestOutcome(
                package=package.name,
                status=CheckStatus.PASS,
                transitions=tuple(transitions),
                install_order=install_order,
            )
        return ImportTestOutcome(
            package=package.name,
            status=CheckStatus.FAIL,
            transitions=tuple(transitions),
            install_order=install_order,
            failed_after=failed_after,
            error_kind=type(failure).__name__,
            error=str(failure),
        )


__all__ = [
    "ImportTestOutcome",
    "ImportTestState",
    "IsolatedImportTester",
    "SandboxFactory",
]
