"""
distgate — package manager collaborator.

File: src/distgate/sandbox/package_manager.py
Last updated: 2026-10-16

Purpose
- Pack a workspace package into an installable archive, install archives into
  a sandbox, and load an installed package the way an external consumer would.

Functional requirements
- Packing writes straight into the sandbox (``--pack-destination``) so no
  archive is left in source package directories.
- The produced archive is taken from the tool's JSON report; the canonical
  file-naming convention is only a fallback.
- A missing archive raises ``MissingArtifactError``; a failed module load
  raises ``ImportVerificationFailure``; any other non-zero exit raises
  ``ToolInvocationFailure``.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from distgate.verification.checkers.base import (
    CommandExecutor,
    CommandResult,
    CommandSpec,
    ToolInvocationFailure,
    run_checked,
)

if TYPE_CHECKING:
    from distgate.workspace.discovery import Package

logger = logging.getLogger(__name__)

_ARCHIVE_SUFFIX = ".tgz"


class MissingArtifactError(FileNotFoundError):
    """The packing step finished but no matching archive could be found."""

    def __init__(self, package: str, destination: Path, expected: str) -> None:
        self.package = package
        self.destination = destination
        self.expected = expected
        super().__init__(f"no archive for {package!r} in {destination} (expected {expected})")


class ImportVerificationFailure(RuntimeError):
    """Loading the installed package by its declared name did not succeed."""

    def __init__(self, declared_name: str, result: CommandResult) -> None:
        self.declared_name = declared_name
        self.result = result
        output = result.diagnostic_output()
        detail = f": {output}" if output else ""
        super().__init__(f"import of {declared_name!r} failed{detail}")


@dataclass(frozen=True, slots=True)
class Archive:
    """A packed, installable representation of exactly one package."""

    package: str
    path: Path


def canonical_archive_name(declared_name: str, version: str) -> str:
    """``@scope/name`` at ``1.2.3`` packs to ``scope-name-1.2.3.tgz``."""

    return f"{_safe_name(declared_name)}-{version}{_ARCHIVE_SUFFIX}"


def _safe_name(name: str) -> str:
    return name.replace("@", "", 1).replace("/", "-", 1)


def import_check_script(declared_name: str) -> str:
    """ES module source that exits non-zero unless the namespace has an own export."""

    specifier = json.dumps(declared_name)
    return (
        f"import * as pkg from {specifier};"
        " if (!pkg || Object.keys(pkg).length === 0) process.exit(1);"
    )


@runtime_checkable
class PackageManager(Protocol):
    """Pack, install, and module-load primitives used by the import tester."""

    def pack(self, package: Package, destination: Path) -> Archive: ...

    def install(self, archive: Archive, install_root: Path) -> None: ...

    def verify_import(self, declared_name: str, install_root: Path) -> None: ...


class NpmPackageManager:
    """``npm``/``node`` implementation of :class:`PackageManager`."""

    def __init__(
        self,
        executor: CommandExecutor,
        *,
        npm_command: Sequence[str] = ("npm",),
        node_command: Sequence[str] = ("node",),
        timeout_seconds: float | None = None,
    ) -> None:
        self._executor = executor
        self._npm = tuple(npm_command)
        self._node = tuple(node_command)
        self._timeout_seconds = timeout_seconds

    def pack(self, package: Package, destination: Path) -> Archive:
        manifest = package.require_manifest()
        before = _archive_names(destination)
        spec = self._spec(
            (*self._npm, "pack", "--json", "--pack-destination", str(destination)),
            cwd=package.directory,
        )
        result = run_checked(self._executor, spec)

        reported = _reported_filename(result.stdout)
        if reported is not None and (destination / reported).is_file():
            return Archive(package=package.name, path=destination / reported)

        expected = canonical_archive_name(manifest.name, manifest.version)
        located = _locate_archive(destination, expected, _safe_name(manifest.name), before)
        if located is None:
            raise MissingArtifactError(package.name, destination, expected)
        logger.debug(
            "archive located by naming convention",
            extra={"archive": located.name, "package": package.name},
        )
        return Archive(package=package.name, path=located)

    def install(self, archive: Archive, install_root: Path) -> None:
        relative = f"./{archive.path.name}"
        spec = self._spec((*self._npm, "install", relative), cwd=install_root)
        run_checked(self._executor, spec)

    def verify_import(self, declared_name: str, install_root: Path) -> None:
        spec = self._spec(
            (*self._node, "--input-type=module", "-e", import_check_script(declared_name)),
            cwd=install_root,
        )
        result = self._executor.run(spec)
        if result.error is not None and result.exit_code is None and not result.timed_out:
            raise ToolInvocationFailure(result)
        if not result.is_success(spec):
            raise ImportVerificationFailure(declared_name, result)

    def _spec(self, argv: Sequence[str], *, cwd: Path) -> CommandSpec:
        return CommandSpec(argv=tuple(argv), cwd=cwd, timeout_seconds=self._timeout_seconds)


def _reported_filename(stdout: str) -> str | None:
    """Extract ``filename`` from ``npm pack --json`` output, if it is parseable."""

    text = stdout.strip()
    if not text:
        return None
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return None

    entries = payload if isinstance(payload, list) else [payload]
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        filename = entry.get("filename")
        if isinstance(filename, str) and filename.endswith(_ARCHIVE_SUFFIX):
            # Some npm versions report scoped names as "@scope/name-1.0.0.tgz".
            return _safe_name(filename)
    return None


def _archive_names(directory: Path) -> frozenset[str]:
    if not directory.is_dir():
        return frozenset()
    return frozenset(
        entry.name
        for entry in directory.iterdir()
        if entry.is_file() and entry.name.endswith(_ARCHIVE_SUFFIX)
    )


def _locate_archive(
    destination: Path, expected: str, safe_name: str, before: frozenset[str]
) -> Path | None:
    exact = destination / expected
    if exact.is_file():
        return exact

    # Only archives this pack produced; "<name>-<version>.tgz" with a numeric version start.
    pattern = re.compile(rf"^{re.escape(safe_name)}-\d[^/]*{re.escape(_ARCHIVE_SUFFIX)}$")
    candidates = sorted(
        name for name in _archive_names(destination) - before if pattern.match(name)
    )
    return destination / candidates[0] if candidates else None


__all__ = [
    "Archive",
    "ImportVerificationFailure",
    "MissingArtifactError",
    "NpmPackageManager",
    "PackageManager",
    "canonical_archive_name",
    "import_check_script",
]
