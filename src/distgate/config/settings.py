"""Typed, immutable view of the effective config handed to every stage."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class ValidationSettings:
    """Static run configuration, constructed once and passed explicitly."""

    repo_root: Path
    packages_dir: Path
    dist_dirname: str
    sandbox_root: Path
    discovery_mode: str
    syntax_command: tuple[str, ...]
    syntax_target: str
    syntax_module_mode: bool
    baseline_command: tuple[str, ...]
    package_manager_command: tuple[str, ...]
    node_command: tuple[str, ...]
    metadata_lint_command: tuple[str, ...]
    metadata_lint_strict: bool
    bundle_size_warn_gzip_kb: float
    legacy_loader_patterns: tuple[str, ...]
    command_timeout_seconds: float | None
    max_output_chars: int
    log_level: str
    log_dir: Path | None = None

    @classmethod
    def from_config(cls, config: Mapping[str, Any], *, repo_root: Path | str) -> ValidationSettings:
        """Build settings from a validated, path-normalized config mapping."""

        paths = config["paths"]
        syntax = config["syntax"]
        exports = config["exports"]
        execution = config["execution"]
        observability = config["observability"]

        timeout = float(execution["command_timeout_seconds"])
        log_dir = observability.get("log_dir")

        return cls(
            repo_root=Path(repo_root).resolve(),
            packages_dir=Path(paths["packages_dir"]),
            dist_dirname=str(paths["dist_dirname"]),
            sandbox_root=Path(paths["sandbox_root"]),
            discovery_mode=str(config["discovery"]["mode"]),
            syntax_command=tuple(syntax["command"]),
            syntax_target=str(syntax["target"]),
            syntax_module_mode=bool(syntax["module_mode"]),
            baseline_command=tuple(config["baseline"]["command"]),
            package_manager_command=tuple(exports["package_manager_command"]),
            node_command=tuple(exports["node_command"]),
            metadata_lint_command=tuple(exports["metadata_lint_command"]),
            metadata_lint_strict=bool(exports["metadata_lint_strict"]),
            bundle_size_warn_gzip_kb=float(config["bundle_size"]["warn_gzip_kb"]),
            legacy_loader_patterns=tuple(config["module_integrity"]["patterns"]),
            command_timeout_seconds=timeout if timeout > 0 else None,
            max_output_chars=int(execution["max_output_chars"]),
            log_level=str(observability["log_level"]),
            log_dir=Path(log_dir) if isinstance(log_dir, str) else None,
        )


__all__ = ["ValidationSettings"]
