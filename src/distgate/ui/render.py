"""Console rendering for validation runs.

File: src/distgate/ui/render.py
Last updated: 2026-10-16

Purpose
- Print progress as stages complete, then a summary table and the final verdict.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.

What should be included in this file
- ``ReportStyle`` with the marker styles, ``ConsoleReporter`` (a pipeline
  observer backed by a ``rich`` console), and a factory.

Non-functional requirements
- Output is deterministic for a given report: no timestamps, stable ordering.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import IO, TYPE_CHECKING, Final

from rich.console import Console
from rich.style import Style
from rich.table import Table
from rich.text import Text

from distgate.verification.checkers.base import CheckStatus

if TYPE_CHECKING:
    from distgate.verification.checkers.base import CheckResult
    from distgate.verification.pipeline import PipelineStage, StageResult, ValidationReport
    from distgate.workspace.discovery import Package

STATUS_MARKERS: Final[dict[CheckStatus, str]] = {
    CheckStatus.PASS: "✓",
    CheckStatus.FAIL: "✗",
    CheckStatus.ERROR: "✗",
    CheckStatus.WARN: "⚠",
    CheckStatus.SKIP: "⊘",
}

# Lines of captured tool output shown beneath a failing result.
_OUTPUT_PREVIEW_LINES: Final[int] = 20


def _color_allowed(no_color_flag: bool, stream: IO[str]) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


@dataclass(frozen=True, slots=True)
class ReportStyle:
    """Console styles for each result status and for section chrome."""

    passed: Style = field(default_factory=lambda: Style(color="green", bold=True))
    failed: Style = field(default_factory=lambda: Style(color="red", bold=True))
    warned: Style = field(default_factory=lambda: Style(color="yellow"))
    skipped: Style = field(default_factory=lambda: Style(color="cyan"))
    heading: Style = field(default_factory=lambda: Style(bold=True))
    muted: Style = field(default_factory=lambda: Style(dim=True))

    def for_status(self, status: CheckStatus) -> Style:
        if status is CheckStatus.PASS:
            return self.passed
        if status in (CheckStatus.FAIL, CheckStatus.ERROR):
            return self.failed
        if status is CheckStatus.WARN:
            return self.warned
        return self.skipped


class ConsoleReporter:
    """Human-readable run output; implements the pipeline observer protocol."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        stream: IO[str] | None = None,
        style: ReportStyle | None = None,
    ) -> None:
        target = stream if stream is not None else sys.stdout
        color = _color_allowed(no_color, target)
        self.verbose = verbose
        self.style = style or ReportStyle()
        self.console = Console(
            file=target,
            no_color=not color,
            force_terminal=color or None,
            color_system="auto" if color else None,
            highlight=False,
            soft_wrap=True,
        )

    def banner(self, packages: tuple[Package, ...]) -> None:
        self.console.print(Text("Distribution validation", style=self.style.heading))
        names = ", ".join(package.name for package in packages)
        self.console.print(
            Text(f"Validating {len(packages)} package(s): {names}", style=self.style.muted)
        )

    def stage_started(self, stage: PipelineStage) -> None:
        self.console.print()
        self.console.print(Text(f"{stage.order}. {stage.title}", style=self.style.heading))

    def package_started(self, stage: PipelineStage, package: Package) -> None:
        if self.verbose:
            self.console.print(Text(f"  {package.name}", style=self.style.muted))

    def check_completed(self, stage: PipelineStage, result: CheckResult) -> None:
        label = result.package or "distribution"
        line = Text("  ")
        line.append(STATUS_MARKERS[result.status], style=self.style.for_status(result.status))
        line.append(f" {label}")
        detail = result.summary or _default_summary(result)
        if detail:
            line.append(f": {detail}", style=self.style.muted if not result.is_failure else "")
        self.console.print(line)

        if result.is_failure or (self.verbose and result.violations):
            for violation in result.violations:
                location = ""
                if violation.path:
                    location = violation.path
                    if violation.line is not None:
                        location = f"{location}:{violation.line}"
                    location = f"{location}: "
                self._print_block(f"{location}{violation.message}")

    def stage_completed(self, stage: PipelineStage, result: StageResult) -> None:
        if self.verbose:
            self.console.print(
                Text(f"  ({result.duration_ms} ms)", style=self.style.muted)
            )

    def summary(self, report: ValidationReport) -> None:
        table = Table(title="Summary", title_justify="left", show_edge=False, pad_edge=False)
        table.add_column("Stage")
        table.add_column("Result")
        table.add_column("Checks", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Warnings", justify="right")

        for stage in report.stage_results:
            status = CheckStatus.PASS if stage.passed else CheckStatus.FAIL
            table.add_row(
                stage.title,
                Text(
                    f"{STATUS_MARKERS[status]} {'passed' if stage.passed else 'failed'}",
                    style=self.style.for_status(status),
                ),
                str(len(stage.checker_results)),
                str(len(stage.failures)),
                str(len(stage.warnings)),
            )

        self.console.print()
        self.console.print(table)
        self.console.print()
        if report.passed:
            self.console.print(
                Text("All validation stages passed.", style=self.style.passed)
            )
        else:
            failed = [stage.title for stage in report.stage_results if not stage.passed]
            self.console.print(
                Text(f"Validation failed: {', '.join(failed)}", style=self.style.failed)
            )

    def fatal(self, message: str) -> None:
        marker = STATUS_MARKERS[CheckStatus.FAIL]
        self.console.print(Text(f"{marker} {message}", style=self.style.failed))

    def _print_block(self, text: str) -> None:
        lines = text.splitlines() or [""]
        shown = lines[:_OUTPUT_PREVIEW_LINES]
        for item in shown:
            self.console.print(Text(f"      {item}", style=self.style.muted))
        hidden = len(lines) - len(shown)
        if hidden > 0:
            self.console.print(Text(f"      ... {hidden} more line(s)", style=self.style.muted))


def _default_summary(result: CheckResult) -> str:
    if result.status is CheckStatus.PASS:
        return "ok"
    if result.status is CheckStatus.SKIP:
        return "skipped"
    return result.status.value


def create_reporter(
    *, no_color: bool = False, verbose: bool = False, stream: IO[str] | None = None
) -> ConsoleReporter:
    """Create a console reporter with the given settings."""

    return ConsoleReporter(no_color=no_color, verbose=verbose, stream=stream)


__all__ = ["STATUS_MARKERS", "ConsoleReporter", "ReportStyle", "create_reporter"]
