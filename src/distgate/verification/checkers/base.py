"""
distgate — checker contract and command execution.

File: src/distgate/verification/checkers/base.py
Last updated: 2026-10-16

Purpose
- Defines the checker interface: inputs (settings, package, executor) and outputs
  (a structured, immutable ``CheckResult``).
- Defines blocking command execution used by checkers and the package manager.

What should be included in this file
- Standard output fields: status, violations, command lines, duration, metadata.
- Registry and decorator for built-in checkers.
- ``CommandChecker`` base for stages that wrap one opaque external tool.

Functional requirements
- Command execution is synchronous: one subprocess at a time, the caller blocks
  until it exits, and the result captures exit code and output.
- A non-zero exit is a ``fail`` with captured diagnostics; a tool that cannot
  be spawned is an ``error``.

Non-functional requirements
- Deterministic result formatting (sorted violations, stable dict export).
"""

from __future__ import annotations

import inspect
import math
import os
import subprocess
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Final, Literal, NoReturn, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from distgate.config.settings import ValidationSettings
    from distgate.workspace.discovery import Package

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

CheckerScope = Literal["package", "distribution"]
CheckerFactory = Callable[[], "BaseChecker"]

_MAX_JSON_DEPTH: Final[int] = 16


class CheckStatus(StrEnum):
    """Canonical checker statuses for deterministic downstream handling."""

    PASS = "pass"
    FAIL = "fail"
    WARN = "warn"
    ERROR = "error"
    SKIP = "skip"


FAILURE_STATUSES: Final[frozenset[CheckStatus]] = frozenset({CheckStatus.FAIL, CheckStatus.ERROR})


class ToolInvocationFailure(RuntimeError):
    """An external tool exited non-zero or could not be spawned."""

    def __init__(self, result: CommandResult, message: str | None = None) -> None:
        self.result = result
        detail = message or _describe_failure(result)
        super().__init__(detail)

    @property
    def spawn_failed(self) -> bool:
        result = self.result
        return result.error is not None and result.exit_code is None and not result.timed_out


@dataclass(frozen=True, slots=True)
class Violation:
    """Machine-readable description of one broken distribution contract."""

    code: str
    message: str
    severity: str = "error"
    path: str | None = None
    line: int | None = None
    details: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.code.strip():
            _fail("Violation.code", "must be non-empty")
        if self.line is not None and self.line < 1:
            _fail("Violation.line", "must be >= 1")
        object.__setattr__(
            self, "details", _canonicalize_json_object(self.details, "Violation.details")
        )

    def sort_key(self) -> tuple[str, str, int, str, str]:
        return (
            self.path or "",
            self.code,
            self.line if self.line is not None else -1,
            self.severity,
            self.message,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "path": self.path,
            "line": self.line,
            "details": self.details,
        }


@dataclass(frozen=True, slots=True)
class CheckResult:
    """Result envelope emitted by every checker; immutable once recorded."""

    status: CheckStatus
    checker_id: str
    stage: str
    package: str | None = None
    summary: str | None = None
    violations: tuple[Violation, ...] = ()
    command_lines: tuple[str, ...] = ()
    duration_ms: int = 0
    metadata: dict[str, JSONValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", _as_check_status(self.status, "CheckResult.status"))
        if not self.checker_id:
            _fail("CheckResult.checker_id", "must be non-empty")
        if not self.stage:
            _fail("CheckResult.stage", "must be non-empty")
        if self.duration_ms < 0:
            _fail("CheckResult.duration_ms", "must be >= 0")
        object.__setattr__(self, "violations", normalize_violations(self.violations))
        object.__setattr__(self, "command_lines", tuple(self.command_lines))
        object.__setattr__(
            self, "metadata", _canonicalize_json_object(self.metadata, "CheckResult.metadata")
        )

    @property
    def is_failure(self) -> bool:
        return self.status in FAILURE_STATUSES

    def with_duration(self, duration_ms: int) -> CheckResult:
        return CheckResult(
            status=self.status,
            checker_id=self.checker_id,
            stage=self.stage,
            package=self.package,
            summary=self.summary,
            violations=self.violations,
            command_lines=self.command_lines,
            duration_ms=max(duration_ms, 0),
            metadata=self.metadata,
        )

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "status": self.status.value,
            "checker_id": self.checker_id,
            "stage": self.stage,
            "package": self.package,
            "summary": self.summary,
            "violations": [item.to_dict() for item in self.violations],
            "command_lines": list(self.command_lines),
            "duration_ms": self.duration_ms,
            "metadata": self.metadata,
        }


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """Portable command invocation contract."""

    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict)
    timeout_seconds: float | None = None
    allowed_exit_codes: tuple[int, ...] = (0,)
    inherit_env: bool = True

    def __post_init__(self) -> None:
        argv = tuple(item for item in self.argv if item)
        if not argv:
            _fail("CommandSpec.argv", "must not be empty")
        object.__setattr__(self, "argv", argv)
        if self.cwd is not None:
            object.__setattr__(self, "cwd", Path(self.cwd))
        if self.timeout_seconds is not None and (
            not math.isfinite(self.timeout_seconds) or self.timeout_seconds <= 0
        ):
            _fail("CommandSpec.timeout_seconds", "must be > 0 when provided")
        if not self.allowed_exit_codes:
            _fail("CommandSpec.allowed_exit_codes", "must not be empty")

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)

    def build_env(self) -> dict[str, str] | None:
        if self.inherit_env:
            if not self.env:
                return None
            env = dict(os.environ)
            env.update(self.env)
            return env
        return dict(self.env)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one blocking command execution."""

    argv: tuple[str, ...]
    exit_code: int | None
    stdout: str
    stderr: str
    duration_ms: int
    timed_out: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        if self.timed_out and self.exit_code is not None:
            _fail("CommandResult.exit_code", "must be None when timed_out is true")

    def is_success(self, spec: CommandSpec | None = None) -> bool:
        if self.timed_out or self.error is not None or self.exit_code is None:
            return False
        if spec is None:
            return self.exit_code == 0
        return self.exit_code in spec.allowed_exit_codes

    def diagnostic_output(self) -> str:
        """Captured output to show a user: stderr first, then stdout."""
        parts = [text.strip() for text in (self.stderr, self.stdout) if text.strip()]
        if not parts and self.error:
            return self.error
        return "\n".join(parts)

    def to_dict(self) -> dict[str, JSONValue]:
        return {
            "argv": list(self.argv),
            "exit_code": self.exit_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "duration_ms": self.duration_ms,
            "timed_out": self.timed_out,
            "error": self.error,
        }


@runtime_checkable
class CommandExecutor(Protocol):
    """Blocking command execution interface."""

    def run(self, spec: CommandSpec) -> CommandResult: ...


class LocalSubprocessExecutor:
    """Run commands with ``subprocess.run``; the caller blocks until exit."""

    def __init__(
        self,
        *,
        default_timeout_seconds: float | None = None,
        max_output_chars: int | None = 200_000,
    ) -> None:
        if default_timeout_seconds is not None and default_timeout_seconds <= 0:
            raise ValueError("default_timeout_seconds must be > 0 when provided")
        if max_output_chars is not None and max_output_chars <= 0:
            raise ValueError("max_output_chars must be > 0 when provided")
        self._default_timeout_seconds = default_timeout_seconds
        self._max_output_chars = max_output_chars

    def run(self, spec: CommandSpec) -> CommandResult:
        started_ns = time.monotonic_ns()
        timeout = spec.timeout_seconds
        if timeout is None:
            timeout = self._default_timeout_seconds
        try:
            completed = subprocess.run(
                list(spec.argv),
                cwd=spec.cwd,
                env=spec.build_env(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                check=False,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            return CommandResult(
                argv=spec.argv,
                exit_code=None,
                stdout=self._clip(_normalize_output_text(exc.stdout)),
                stderr=self._clip(_normalize_output_text(exc.stderr)),
                duration_ms=elapsed_ms(started_ns),
                timed_out=True,
                error=f"command timed out after {timeout:.3f}s",
            )
        except OSError as exc:
            return CommandResult(
                argv=spec.argv,
                exit_code=None,
                stdout="",
                stderr="",
                duration_ms=elapsed_ms(started_ns),
                error=str(exc),
            )

        return CommandResult(
            argv=spec.argv,
            exit_code=completed.returncode,
            stdout=self._clip(_normalize_output_text(completed.stdout)),
            stderr=self._clip(_normalize_output_text(completed.stderr)),
            duration_ms=elapsed_ms(started_ns),
        )

    def _clip(self, text: str) -> str:
        return _truncate_text(text, self._max_output_chars)


def run_checked(executor: CommandExecutor, spec: CommandSpec) -> CommandResult:
    """Run ``spec`` and raise :class:`ToolInvocationFailure` unless it succeeded."""

    result = executor.run(spec)
    if not result.is_success(spec):
        raise ToolInvocationFailure(result)
    return result


@dataclass(frozen=True, slots=True)
class CheckerContext:
    """Everything a checker may read; ``package`` is None for distribution-wide checkers."""

    settings: ValidationSettings
    executor: CommandExecutor
    stage: str
    package: Package | None = None
    packages: tuple[Package, ...] = ()

    def require_package(self) -> Package:
        if self.package is None:
            _fail("CheckerContext.package", "package-scoped checker invoked without a package")
        return self.package

    def command(self, argv: Sequence[str], *, cwd: Path | None = None) -> CommandSpec:
        """Build a ``CommandSpec`` honouring the configured timeout."""
        return CommandSpec(
            argv=tuple(argv),
            cwd=cwd,
            timeout_seconds=self.settings.command_timeout_seconds,
        )

    def result(
        self,
        checker_id: str,
        status: CheckStatus,
        *,
        summary: str | None = None,
        violations: Iterable[Violation] = (),
        command_lines: Iterable[str] = (),
        metadata: Mapping[str, JSONValue] | None = None,
    ) -> CheckResult:
        return CheckResult(
            status=status,
            checker_id=checker_id,
            stage=self.stage,
            package=self.package.name if self.package is not None else None,
            summary=summary,
            violations=tuple(violations),
            command_lines=tuple(command_lines),
            metadata=dict(metadata or {}),
        )

    def manifest_error_result(self, checker_id: str) -> CheckResult | None:
        """``error`` result for a package whose manifest failed to load, else None."""
        package = self.package
        if package is None or package.manifest_error is None:
            return None
        error = package.manifest_error
        return self.result(
            checker_id,
            CheckStatus.ERROR,
            summary=f"Invalid package manifest: {error.reason}",
            violations=(
                Violation(
                    code="manifest.invalid",
                    message=error.reason,
                    path=error.path.name,
                ),
            ),
        )


@runtime_checkable
class BaseChecker(Protocol):
    """Checker protocol implemented by every stage inspector."""

    checker_id: str
    scope: CheckerScope

    def check(self, context: CheckerContext) -> CheckResult: ...


class CommandChecker:
    """Base for checkers that wrap one opaque external tool as a pass/fail subprocess."""

    checker_id = "command_checker"
    scope: CheckerScope = "package"
    failure_code = "tool.nonzero_exit"
    failure_status = CheckStatus.FAIL

    def build_command(self, context: CheckerContext) -> tuple[str, ...]:
        raise NotImplementedError

    def working_directory(self, context: CheckerContext) -> Path:
        if context.package is not None:
            return context.package.directory
        return context.settings.repo_root

    def failure_status_for(self, context: CheckerContext) -> CheckStatus:
        return self.failure_status

    def check(self, context: CheckerContext) -> CheckResult:
        spec = context.command(self.build_command(context), cwd=self.working_directory(context))
        try:
            result = run_checked(context.executor, spec)
        except ToolInvocationFailure as exc:
            failed = exc.result
            status = CheckStatus.ERROR if exc.spawn_failed else self.failure_status_for(context)
            output = failed.diagnostic_output()
            return context.result(
                self.checker_id,
                status,
                summary=str(exc),
                violations=(
                    Violation(
                        code="tool.spawn_failed" if exc.spawn_failed else self.failure_code,
                        message=output or str(exc),
                        severity="error" if status in FAILURE_STATUSES else "warning",
                        details={"exit_code": failed.exit_code},
                    ),
                ),
                command_lines=(spec.command_line,),
            )

        return context.result(
            self.checker_id,
            CheckStatus.PASS,
            command_lines=(spec.command_line,),
            metadata={"exit_code": result.exit_code},
        )


class CheckerRegistry:
    """Deterministic checker factory registry."""

    def __init__(self) -> None:
        self._factories: dict[str, CheckerFactory] = {}

    def register(self, checker_id: str, factory: CheckerFactory) -> None:
        normalized_id = checker_id.strip()
        if not normalized_id:
            _fail("checker_id", "must be non-empty")
        if not callable(factory):
            _fail("factory", "must be callable")
        if normalized_id in self._factories:
            _fail("checker_id", f"{normalized_id!r} is already registered")
        self._factories[normalized_id] = factory

    def contains(self, checker_id: str) -> bool:
        return checker_id in self._factories

    def create(self, checker_id: str) -> BaseChecker:
        factory = self._factories.get(checker_id)
        if factory is None:
            known = ", ".join(self.registered_ids())
            _fail("checker_id", f"unknown checker {checker_id!r}; registered: [{known}]")
        checker = factory()
        if not isinstance(checker, BaseChecker):
            _fail("factory", f"{checker_id!r} factory did not return a BaseChecker")
        return checker

    def registered_ids(self) -> tuple[str, ...]:
        return tuple(sorted(self._factories))


CheckerType = TypeVar("CheckerType", bound=BaseChecker)

DEFAULT_CHECKER_REGISTRY = CheckerRegistry()


def register_builtin_checker(
    checker_id: str,
    *,
    registry: CheckerRegistry | None = None,
) -> Callable[[type[CheckerType]], type[CheckerType]]:
    """Decorator that registers built-in checker classes."""

    target = registry if registry is not None else DEFAULT_CHECKER_REGISTRY

    def decorator(checker_cls: type[CheckerType]) -> type[CheckerType]:
        _validate_zero_arg_constructor(checker_cls, checker_id=checker_id)
        target.register(checker_id, lambda: checker_cls())
        return checker_cls

    return decorator


def normalize_violations(violations: Iterable[Violation]) -> tuple[Violation, ...]:
    """Return violations sorted deterministically by semantic key."""

    parsed: list[Violation] = []
    for index, item in enumerate(violations):
        if not isinstance(item, Violation):
            _fail(f"violations[{index}]", f"expected Violation, got {type(item).__name__}")
        parsed.append(item)
    parsed.sort(key=lambda item: item.sort_key())
    return tuple(parsed)


def elapsed_ms(started_ns: int) -> int:
    delta_ns = time.monotonic_ns() - started_ns
    if delta_ns < 0:
        return 0
    return delta_ns // 1_000_000


def _describe_failure(result: CommandResult) -> str:
    command = " ".join(result.argv)
    if result.timed_out:
        return f"{command}: {result.error}"
    if result.error is not None:
        return f"{command}: could not be started ({result.error})"
    return f"{command}: exited with status {result.exit_code}"


def _normalize_output_text(raw: bytes | str | None) -> str:
    if raw is None:
        return ""
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _truncate_text(text: str, max_chars: int | None) -> str:
    if max_chars is None or len(text) <= max_chars:
        return text
    omitted = len(text) - max_chars
    return f"{text[:max_chars]}\n...[truncated {omitted} chars]"


def _validate_zero_arg_constructor(checker_cls: type[object], *, checker_id: str) -> None:
    signature = inspect.signature(checker_cls)
    for parameter in signature.parameters.values():
        if (
            parameter.kind
            in {
                inspect.Parameter.POSITIONAL_ONLY,
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                inspect.Parameter.KEYWORD_ONLY,
            }
            and parameter.default is inspect.Signature.empty
        ):
            _fail(
                "checker_cls",
                (
                    f"{checker_id!r} checker decorator requires a zero-arg constructor; "
                    f"parameter '{parameter.name}' is required"
                ),
            )


def _as_check_status(value: object, path: str) -> CheckStatus:
    if isinstance(value, CheckStatus):
        return value
    if not isinstance(value, str):
        _fail(path, f"expected CheckStatus or string, got {type(value).__name__}")
    try:
        return CheckStatus(value)
    except ValueError:
        allowed = ", ".join(item.value for item in CheckStatus)
        _fail(path, f"invalid value {value!r}; expected one of: {allowed}")


def _as_json_value(value: object, path: str, *, depth: int = 0) -> JSONValue:
    if depth > _MAX_JSON_DEPTH:
        _fail(path, f"JSON nesting exceeds max depth {_MAX_JSON_DEPTH}")
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            _fail(path, "float values must be finite")
        return value
    if isinstance(value, Sequence) and not isinstance(value, (bytes, bytearray)):
        return [
            _as_json_value(item, f"{path}[{index}]", depth=depth + 1)
            for index, item in enumerate(value)
        ]
    if isinstance(value, Mapping):
        parsed: dict[str, JSONValue] = {}
        for key in sorted(value):
            if not isinstance(key, str):
                _fail(path, f"object key must be string, got {type(key).__name__}")
            parsed[key] = _as_json_value(value[key], f"{path}.{key}", depth=depth + 1)
        return parsed
    _fail(path, f"value is not JSON-serializable ({type(value).__name__})")


def _canonicalize_json_object(value: object, path: str) -> dict[str, JSONValue]:
    parsed = _as_json_value(value, path)
    if not isinstance(parsed, dict):
        _fail(path, "expected JSON object")
    return parsed


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


__all__ = [
    "BaseChecker",
    "CheckResult",
    "CheckStatus",
    "CheckerContext",
    "CheckerFactory",
    "CheckerRegistry",
    "CheckerScope",
    "CommandChecker",
    "CommandExecutor",
    "CommandResult",
    "CommandSpec",
    "DEFAULT_CHECKER_REGISTRY",
    "FAILURE_STATUSES",
    "JSONScalar",
    "JSONValue",
    "LocalSubprocessExecutor",
    "ToolInvocationFailure",
    "Violation",
    "elapsed_ms",
    "normalize_violations",
    "register_builtin_checker",
    "run_checked",
]
