"""
distgate — shared test fixtures

File: tests/conftest.py

Purpose
- Build throwaway workspaces on disk and settings pointing at them.
- Provide a scripted command executor so no test ever spawns npm or node.

Functional requirements
- Deterministic: fakes answer by argv prefix, latest rule wins.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

import pytest

from distgate.config import ValidationSettings, load_config
from distgate.sandbox.package_manager import canonical_archive_name
from distgate.verification.checkers.base import CommandResult, CommandSpec


@dataclass(frozen=True, slots=True)
class FakeOutcome:
    exit_code: int | None = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 1
    timed_out: bool = False
    error: str | None = None


Responder = FakeOutcome | Callable[[CommandSpec], FakeOutcome]


class FakeExecutor:
    """Command executor that answers from rules keyed by argv prefix."""

    def __init__(self) -> None:
        self.rules: list[tuple[tuple[str, ...], Responder]] = []
        self.calls: list[CommandSpec] = []

    def on(
        self, *prefix: str, outcome: Responder | None = None, **fields: object
    ) -> FakeExecutor:
        """Answer commands starting with ``prefix``; ``fields`` build a ``FakeOutcome``."""
        if outcome is None:
            outcome = FakeOutcome(**fields)  # type: ignore[arg-type]
        self.rules.append((tuple(prefix), outcome))
        return self

    def simulate_npm(self) -> FakeExecutor:
        """Make ``npm pack`` drop a real (empty) archive and report it as JSON."""
        return self.on("npm", "pack", outcome=_simulated_pack)

    def run(self, spec: CommandSpec) -> CommandResult:
        self.calls.append(spec)
        outcome: Responder = FakeOutcome()
        for prefix, responder in reversed(self.rules):
            if spec.argv[: len(prefix)] == prefix:
                outcome = responder
                break
        if callable(outcome):
            outcome = outcome(spec)
        return CommandResult(
            argv=spec.argv,
            exit_code=outcome.exit_code,
            stdout=outcome.stdout,
            stderr=outcome.stderr,
            duration_ms=outcome.duration_ms,
            timed_out=outcome.timed_out,
            error=outcome.error,
        )

    def command_lines(self) -> list[str]:
        return [spec.command_line for spec in self.calls]


def _simulated_pack(spec: CommandSpec) -> FakeOutcome:
    assert spec.cwd is not None
    manifest = json.loads((spec.cwd / "package.json").read_text(encoding="utf-8"))
    filename = canonical_archive_name(manifest["name"], manifest.get("version", "0.0.0"))
    destination = Path(spec.argv[spec.argv.index("--pack-destination") + 1])
    (destination / filename).write_bytes(b"")
    return FakeOutcome(stdout=json.dumps([{"filename": filename}]))


class WorkspaceBuilder:
    """Writes ``packages/<dir>/package.json`` plus optional build output."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.packages_dir = root / "packages"
        self.packages_dir.mkdir(parents=True, exist_ok=True)

    def add_package(
        self,
        dirname: str,
        *,
        name: str | None = None,
        version: str = "1.0.0",
        dependencies: Mapping[str, str] | None = None,
        peer_dependencies: Mapping[str, str] | None = None,
        private: bool = False,
        files: Mapping[str, str] | None = None,
        built: bool = True,
        parent: Path | None = None,
    ) -> Path:
        directory = (parent or self.packages_dir) / dirname
        directory.mkdir(parents=True, exist_ok=True)
        manifest: dict[str, object] = {"name": name or f"@acme/{dirname}", "version": version}
        if dependencies:
            manifest["dependencies"] = dict(dependencies)
        if peer_dependencies:
            manifest["peerDependencies"] = dict(peer_dependencies)
        if private:
            manifest["private"] = True
        (directory / "package.json").write_text(json.dumps(manifest), encoding="utf-8")

        if built:
            dist = directory / "dist"
            dist.mkdir(exist_ok=True)
            for relative, content in (files or {"index.js": "export const value = 1;\n"}).items():
                target = dist / relative
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(content, encoding="utf-8")
        return directory


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceBuilder:
    return WorkspaceBuilder(tmp_path)


@pytest.fixture
def settings_factory(tmp_path: Path) -> Callable[..., ValidationSettings]:
    """Settings for ``tmp_path`` with dotted-key overrides (``bundle_size.warn_gzip_kb``)."""

    def build(**overrides: object) -> ValidationSettings:
        cli_overrides = {key.replace("__", "."): value for key, value in overrides.items()}
        config = load_config(base_dir=tmp_path, cli_overrides=cli_overrides, environ={})
        return ValidationSettings.from_config(config, repo_root=tmp_path)

    return build


@pytest.fixture
def settings(settings_factory: Callable[..., ValidationSettings]) -> ValidationSettings:
    return settings_factory()
