"""
distgate — unit tests for the isolated import test

File: tests/unit/verification/test_import_tester.py

Purpose
- Validate the pack/install/import state machine and its teardown guarantee.

What this test file should cover
- Private packages are skipped without a sandbox.
- Dependencies are packed and installed in topological order before the target.
- Every failure path records FAILED and tears down exactly once.
- Cycles fail before any sandbox is created.

Functional requirements
- No real package manager; a recording fake stands in.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from distgate.sandbox import (
    Archive,
    ImportVerificationFailure,
    MissingArtifactError,
    SandboxEnvironment,
)
from distgate.verification.checkers.base import CheckStatus, CommandResult
from distgate.verification.import_tester import (
    ImportTestState,
    IsolatedImportTester,
)
from distgate.workspace import Package, PackageManifest

S = ImportTestState


def _package(
    name: str, *, deps: tuple[str, ...] = (), private: bool = False, root: Path
) -> Package:
    directory = root / "packages" / name
    return Package(
        name=name,
        directory=directory,
        dist_dir=directory / "dist",
        manifest=PackageManifest(
            name=f"@acme/{name}",
            dependencies={dep: "*" for dep in deps},
            private=private,
        ),
    )


class FakePackageManager:
    """Records every call; raises the configured error at the configured step."""

    def __init__(
        self, *, fail_on: tuple[str, str] | None = None, error: Exception | None = None
    ) -> None:
        self.calls: list[tuple[str, str]] = []
        self.sandboxes: list[Path] = []
        self._fail_on = fail_on
        self._error = error

    def _record(self, action: str, subject: str) -> None:
        self.calls.append((action, subject))
        if self._fail_on == (action, subject) and self._error is not None:
            raise self._error

    def pack(self, package: Package, destination: Path) -> Archive:
        self.sandboxes.append(destination)
        self._record("pack", package.name)
        return Archive(package=package.name, path=destination / f"{package.name}.tgz")

    def install(self, archive: Archive, install_root: Path) -> None:
        self._record("install", archive.package)

    def verify_import(self, declared_name: str, install_root: Path) -> None:
        self._record("import", declared_name)


class CountingSandbox(SandboxEnvironment):
    instances: list[CountingSandbox] = []

    def __init__(self, root: Path | str) -> None:
        super().__init__(root)
        self.release_calls = 0
        CountingSandbox.instances.append(self)

    def release(self) -> bool:
        self.release_calls += 1
        return super().release()


@pytest.fixture(autouse=True)
def _reset_counting_sandboxes() -> None:
    CountingSandbox.instances.clear()


def _missing(name: str) -> MissingArtifactError:
    return MissingArtifactError(name, Path("/sandbox"), f"acme-{name}-1.0.0.tgz")


def _import_failure(declared_name: str) -> ImportVerificationFailure:
    result = CommandResult(argv=("node",), exit_code=1, stdout="", stderr="boom", duration_ms=1)
    return ImportVerificationFailure(declared_name, result)


def _tester(manager: FakePackageManager, root: Path) -> IsolatedImportTester:
    return IsolatedImportTester(manager, sandbox_root=root, sandbox_factory=CountingSandbox)


def test_private_package_is_skipped_without_sandbox(tmp_path: Path) -> None:
    manager = FakePackageManager()
    private = _package("internal", private=True, root=tmp_path)

    outcome = _tester(manager, tmp_path).run(private, (private,))

    assert outcome.status is CheckStatus.SKIP
    assert outcome.passed
    assert outcome.transitions == ()
    assert manager.calls == []
    assert CountingSandbox.instances == []


def test_dependencies_installed_in_order_before_target(tmp_path: Path) -> None:
    manager = FakePackageManager()
    packages = (
        _package("app", deps=("@acme/ui", "@acme/core", "left-pad"), root=tmp_path),
        _package("core", root=tmp_path),
        _package("ui", deps=("@acme/core",), root=tmp_path),
    )

    outcome = _tester(manager, tmp_path).run(packages[0], packages)

    assert outcome.status is CheckStatus.PASS
    assert outcome.install_order == ("core", "ui")
    assert manager.calls == [
        ("pack", "core"),
        ("pack", "ui"),
        ("install", "core"),
        ("install", "ui"),
        ("pack", "app"),
        ("install", "app"),
        ("import", "@acme/app"),
    ]
    assert outcome.transitions == (
        S.START,
        S.SANDBOX_CREATED,
        S.DEPENDENCIES_PACKED,
        S.DEPENDENCIES_INSTALLED,
        S.TARGET_PACKED,
        S.TARGET_INSTALLED,
        S.IMPORT_VERIFIED,
        S.TORN_DOWN,
    )
    assert outcome.teardown_count == 1
    assert len(set(manager.sandboxes)) == 1
    assert manager.sandboxes[0].parent == tmp_path.resolve()
    assert not manager.sandboxes[0].exists()
    assert [sandbox.release_calls for sandbox in CountingSandbox.instances] == [1]


@pytest.mark.parametrize(
    ("fail_on", "error", "failed_after"),
    [
        (("pack", "core"), _missing("core"), S.SANDBOX_CREATED),
        (("install", "core"), OSError("disk full"), S.DEPENDENCIES_PACKED),
        (("pack", "app"), _missing("app"), S.DEPENDENCIES_INSTALLED),
        (("install", "app"), OSError("EACCES"), S.TARGET_PACKED),
        (("import", "@acme/app"), _import_failure("@acme/app"), S.TARGET_INSTALLED),
    ],
)
def test_failure_at_any_step_tears_down_exactly_once(
    tmp_path: Path,
    fail_on: tuple[str, str],
    error: Exception,
    failed_after: ImportTestState,
) -> None:
    manager = FakePackageManager(fail_on=fail_on, error=error)
    packages = (
        _package("app", deps=("@acme/core",), root=tmp_path),
        _package("core", root=tmp_path),
    )

    outcome = _tester(manager, tmp_path).run(packages[0], packages)

    assert outcome.status is CheckStatus.FAIL
    assert not outcome.passed
    assert outcome.failed_after is failed_after
    assert outcome.transitions[-2:] == (S.FAILED, S.TORN_DOWN)
    assert outcome.teardown_count == 1
    assert outcome.error_kind == type(error).__name__
    assert [sandbox.release_calls for sandbox in CountingSandbox.instances] == [1]
    assert not any(path.exists() for path in manager.sandboxes)
    assert list(tmp_path.glob(".tmp-*")) == []


def test_cycle_fails_fast_before_sandbox_creation(tmp_path: Path) -> None:
    manager = FakePackageManager()
    packages = (
        _package("a", deps=("@acme/b",), root=tmp_path),
        _package("b", deps=("@acme/a",), root=tmp_path),
    )

    outcome = _tester(manager, tmp_path).run(packages[0], packages)

    assert outcome.status is CheckStatus.FAIL
    assert outcome.error_kind == "CycleError"
    assert outcome.failed_after is S.START
    assert outcome.transitions == (S.START, S.FAILED, S.TORN_DOWN)
    assert manager.calls == []
    assert CountingSandbox.instances == []


def test_unexpected_error_still_tears_down_and_propagates(tmp_path: Path) -> None:
    manager = FakePackageManager(fail_on=("import", "@acme/solo"), error=KeyError("bug"))
    solo = _package("solo", root=tmp_path)

    with pytest.raises(KeyError):
        _tester(manager, tmp_path).run(solo, (solo,))

    assert [sandbox.release_calls for sandbox in CountingSandbox.instances] == [1]
    assert list(tmp_path.glob(".tmp-*")) == []
