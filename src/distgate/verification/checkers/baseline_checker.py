"""
Baseline Checker — web platform API baseline stage.

Functional requirements:
- Runs the configured linter script once for the whole distribution, from the
  repository root.
- Non-zero exit fails the stage; captured output is surfaced.
"""

from __future__ import annotations

from distgate.constants import BASELINE_STAGE_ID
from distgate.verification.checkers.base import (
    CheckerContext,
    CommandChecker,
    register_builtin_checker,
)


@register_builtin_checker("baseline_checker")
class BaselineChecker(CommandChecker):
    """Distribution-wide baseline API lint."""

    checker_id = "baseline_checker"
    stage = BASELINE_STAGE_ID
    scope = "distribution"
    failure_code = "baseline.non_baseline_api"

    def build_command(self, context: CheckerContext) -> tuple[str, ...]:
        return context.settings.baseline_command


__all__ = ["BaselineChecker"]
