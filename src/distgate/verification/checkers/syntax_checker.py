"""
Syntax Checker — syntax compliance stage.

Functional requirements:
- Runs the configured syntax checker (``es-check`` by default) over one
  package's compiled output.
- Non-zero exit fails the package; captured output is surfaced.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from distgate.constants import SYNTAX_STAGE_ID
from distgate.verification.checkers.base import (
    CheckerContext,
    CommandChecker,
    register_builtin_checker,
)

if TYPE_CHECKING:
    from pathlib import Path


@register_builtin_checker("syntax_checker")
class SyntaxChecker(CommandChecker):
    """Per-package syntax target compliance."""

    checker_id = "syntax_checker"
    stage = SYNTAX_STAGE_ID
    scope = "package"
    failure_code = "syntax.noncompliant"

    def build_command(self, context: CheckerContext) -> tuple[str, ...]:
        settings = context.settings
        pattern = f"{context.require_package().dist_dir.as_posix()}/**/*.js"
        command = (*settings.syntax_command, settings.syntax_target, pattern)
        if settings.syntax_module_mode:
            command = (*command, "--module")
        return command

    def working_directory(self, context: CheckerContext) -> Path:
        return context.settings.repo_root


__all__ = ["SyntaxChecker"]
