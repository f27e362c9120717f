"""
distgate — stage checkers.

File: src/distgate/verification/checkers/__init__.py
Last updated: 2026-10-16

Purpose
- Each checker inspects built output for one distribution contract.

What should be included in this file
- The checker contract re-exported from ``base``. Concrete checkers register
  themselves in ``DEFAULT_CHECKER_REGISTRY`` when imported; the pipeline
  imports them, so this package stays import-light for the sandbox layer.
"""

from distgate.verification.checkers.base import (
    DEFAULT_CHECKER_REGISTRY,
    FAILURE_STATUSES,
    BaseChecker,
    CheckerContext,
    CheckerRegistry,
    CheckResult,
    CheckStatus,
    CommandChecker,
    CommandExecutor,
    CommandResult,
    CommandSpec,
    LocalSubprocessExecutor,
    ToolInvocationFailure,
    Violation,
    register_builtin_checker,
    run_checked,
)

__all__ = [
    "BaseChecker",
    "CheckResult",
    "CheckStatus",
    "CheckerContext",
    "CheckerRegistry",
    "CommandChecker",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "DEFAULT_CHECKER_REGISTRY",
    "FAILURE_STATUSES",
    "LocalSubprocessExecutor",
    "ToolInvocationFailure",
    "Violation",
    "register_builtin_checker",
    "run_checked",
]
