"""Command-line interface for distgate."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from distgate import __version__
from distgate.config import (
    ConfigLoadError,
    ConfigValidationError,
    ValidationSettings,
    load_config,
)
from distgate.main import ExitCode
from distgate.observability import LoggingConfig, setup_structured_logging, shutdown_logging
from distgate.ui.render import ConsoleReporter, create_reporter
from distgate.utils import atomic_write, generate_run_id
from distgate.verification.pipeline import ValidationOrchestrator
from distgate.workspace import ManifestError, NoBuiltPackagesError

if TYPE_CHECKING:
    from distgate.verification.checkers.base import CommandExecutor
    from distgate.verification.pipeline import ValidationReport

logger = logging.getLogger("distgate.cli")


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser; every option is optional."""

    parser = argparse.ArgumentParser(
        prog="distgate",
        description=(
            "distgate: validate built workspace packages before publishing.\n\n"
            "Runs five stages in order: syntax compliance, web API baseline,\n"
            "package exports, bundle size, module integrity.\n"
            "Exit status: 0 all passed, 1 validation failed, 2 invalid configuration."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--repo-root",
        default=".",
        help="Repository root directory (default: current working directory).",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to a distgate TOML config (default: <repo-root>/distgate.toml if present).",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show per-package progress, timings and debug logs.",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also honoured via the NO_COLOR environment variable).",
    )
    parser.add_argument(
        "--json-report",
        dest="json_report",
        default=None,
        help="Write the full machine-readable report to this path.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run_cli(
    argv: Sequence[str] | None = None,
    *,
    executor: CommandExecutor | None = None,
    reporter: ConsoleReporter | None = None,
) -> int:
    """Parse argv, run the validation pipeline, and return the process exit code."""

    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    output = reporter or create_reporter(no_color=args.no_color, verbose=args.verbose)

    try:
        return _cmd_validate(args, output, executor=executor)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return int(exc.exit_code)


def _cmd_validate(
    args: argparse.Namespace,
    reporter: ConsoleReporter,
    *,
    executor: CommandExecutor | None,
) -> int:
    repo_root = _repo_root(args)
    settings = _load_settings(args, repo_root)
    run_id = generate_run_id()

    logging_handle = setup_structured_logging(
        LoggingConfig(run_id=run_id, log_dir=settings.log_dir, level=settings.log_level)
    )
    try:
        orchestrator = ValidationOrchestrator(
            settings,
            executor=executor,
            observer=reporter,
            run_id=run_id,
        )
        try:
            packages = orchestrator.discover()
        except NoBuiltPackagesError as exc:
            logger.error("no built packages", extra={"searched": str(exc.searched)})
            reporter.fatal(str(exc))
            return int(ExitCode.VALIDATION_FAILED)
        except ManifestError as exc:
            logger.error("unreadable workspace definition", extra={"path": str(exc.path)})
            reporter.fatal(f"invalid workspace definition {exc}")
            return int(ExitCode.VALIDATION_FAILED)

        reporter.banner(packages)
        report = orchestrator.run(packages)
        reporter.summary(report)

        if args.json_report:
            _write_json_report(Path(args.json_report), report, repo_root=repo_root)
        return int(ExitCode.SUCCESS if report.passed else ExitCode.VALIDATION_FAILED)
    finally:
        shutdown_logging(logging_handle)


def _repo_root(args: argparse.Namespace) -> Path:
    root = Path(args.repo_root).expanduser().resolve()
    if not root.is_dir():
        raise CLIError(
            f"repository root is not a directory: {root}", exit_code=ExitCode.CONFIG_ERROR
        )
    return root


def _load_settings(args: argparse.Namespace, repo_root: Path) -> ValidationSettings:
    overrides: dict[str, Any] = {}
    if args.verbose:
        overrides["observability.log_level"] = "DEBUG"
    try:
        config = load_config(args.config_path, base_dir=repo_root, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(f"invalid configuration: {exc}", exit_code=ExitCode.CONFIG_ERROR) from exc
    return ValidationSettings.from_config(config, repo_root=repo_root)


def _write_json_report(path: Path, report: ValidationReport, *, repo_root: Path) -> None:
    target = path if path.is_absolute() else repo_root / path
    target.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(target, json.dumps(report.to_dict(), indent=2, sort_keys=True) + "\n")


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
