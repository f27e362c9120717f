"""
distgate — configuration schema and validation.

File: src/distgate/config/schema.py
Last updated: 2026-10-16

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema versioning and migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Deterministic deep-merge helpers used by the loader.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject unknown sections and fields so typos never silently disable a stage.

Non-functional requirements
- Keep rules deterministic and easy to audit.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from distgate.constants import (
    BUNDLE_SIZE_WARN_GZIP_KB,
    CONFIG_SCHEMA_VERSION,
    DIST_DIRNAME,
    LEGACY_LOADER_PATTERNS,
    PACKAGES_DIR,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

DISCOVERY_MODES: Final[tuple[str, ...]] = ("packages_dir", "workspace")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

# Config paths that should be normalized relative to config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("paths", "packages_dir"),
    ("paths", "sandbox_root"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class PathsConfig(TypedDict):
    packages_dir: str
    dist_dirname: str
    sandbox_root: str


class DiscoveryConfig(TypedDict):
    mode: Literal["packages_dir", "workspace"]


class SyntaxConfig(TypedDict):
    command: list[str]
    target: str
    module_mode: bool


class BaselineConfig(TypedDict):
    command: list[str]


class ExportsConfig(TypedDict):
    package_manager_command: list[str]
    node_command: list[str]
    metadata_lint_command: list[str]
    metadata_lint_strict: bool


class BundleSizeConfig(TypedDict):
    warn_gzip_kb: float


class ModuleIntegrityConfig(TypedDict):
    patterns: list[str]


class ExecutionConfig(TypedDict):
    command_timeout_seconds: float
    max_output_chars: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: NotRequired[str]


class DistgateConfig(TypedDict):
    meta: MetaConfig
    paths: PathsConfig
    discovery: DiscoveryConfig
    syntax: SyntaxConfig
    baseline: BaselineConfig
    exports: ExportsConfig
    bundle_size: BundleSizeConfig
    module_integrity: ModuleIntegrityConfig
    execution: ExecutionConfig
    observability: ObservabilityConfig


DEFAULT_CONFIG: Final[DistgateConfig] = {
    "meta": {
        "schema_version": ConfigSchemaVersion,
    },
    "paths": {
        "packages_dir": str(PACKAGES_DIR),
        "dist_dirname": DIST_DIRNAME,
        "sandbox_root": ".",
    },
    "discovery": {
        "mode": "packages_dir",
    },
    "syntax": {
        "command": ["npx", "es-check"],
        "target": "es2022",
        "module_mode": True,
    },
    "baseline": {
        "command": ["npm", "run", "check:eslint:dist"],
    },
    "exports": {
        "package_manager_command": ["npm"],
        "node_command": ["node"],
        "metadata_lint_command": ["npx", "publint"],
        "metadata_lint_strict": False,
    },
    "bundle_size": {
        "warn_gzip_kb": BUNDLE_SIZE_WARN_GZIP_KB,
    },
    "module_integrity": {
        "patterns": list(LEGACY_LOADER_PATTERNS),
    },
    "execution": {
        # 0 disables the per-command timeout.
        "command_timeout_seconds": 0.0,
        "max_output_chars": 200_000,
    },
    "observability": {
        "log_level": "WARNING",
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result with normalized config when no issues were found."""

    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


_FieldValidator = Callable[[object, str, _IssueCollector], object | None]


def default_config() -> DistgateConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Return deterministic migration guidance for schema version mismatch."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade distgate.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade distgate"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    _reject_unknown_keys(root, set(_SECTION_FIELDS), "", issues)
    _require_keys(root, set(_SECTION_FIELDS), "", issues)

    normalized: dict[str, Any] = {}
    for section_name in sorted(_SECTION_FIELDS):
        raw = root.get(section_name)
        if raw is None:
            continue
        section = _as_object(raw, section_name, issues)
        if section is None:
            continue
        normalized[section_name] = _validate_section(section, section_name, issues)

    meta = normalized.get("meta")
    if isinstance(meta, Mapping):
        version = meta.get("schema_version")
        if isinstance(version, int) and version != ConfigSchemaVersion:
            issues.add("meta.schema_version", migration_guidance(version))

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _validate_section(
    payload: Mapping[str, object],
    path: str,
    issues: _IssueCollector,
) -> dict[str, Any]:
    fields = _SECTION_FIELDS[path]
    optional = _OPTIONAL_FIELDS.get(path, frozenset())
    _reject_unknown_keys(payload, set(fields), path, issues)
    _require_keys(payload, set(fields) - optional, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(fields):
        if key not in payload:
            continue
        parsed = fields[key](payload[key], _join(path, key), issues)
        if parsed is not None:
            out[key] = parsed
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_dirname(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_path_text(value, path, issues)
    if parsed is None:
        return None
    if "/" in parsed or "\\" in parsed or parsed in {".", ".."}:
        issues.add(path, "must be a single directory name")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        issues.add(path, f"expected array of strings, got {type(value).__name__}")
        return None
    parsed: list[str] = []
    for index, item in enumerate(value):
        text = _as_str(item, f"{path}[{index}]", issues)
        if text is None:
            return None
        parsed.append(text)
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_log_level(value: object, path: str, issues: _IssueCollector) -> str | None:
    if isinstance(value, str):
        value = value.strip().upper()
    return _as_enum(value, path, issues, allowed_values=LOG_LEVELS)


_SECTION_FIELDS: Final[Mapping[str, Mapping[str, _FieldValidator]]] = {
    "meta": {
        "schema_version": lambda v, p, i: _as_int(v, p, i, minimum=1),
    },
    "paths": {
        "packages_dir": _as_path_text,
        "dist_dirname": _as_dirname,
        "sandbox_root": _as_path_text,
    },
    "discovery": {
        "mode": lambda v, p, i: _as_enum(v, p, i, allowed_values=DISCOVERY_MODES),
    },
    "syntax": {
        "command": _as_str_list,
        "target": _as_str,
        "module_mode": _as_bool,
    },
    "baseline": {
        "command": _as_str_list,
    },
    "exports": {
        "package_manager_command": _as_str_list,
        "node_command": _as_str_list,
        "metadata_lint_command": _as_str_list,
        "metadata_lint_strict": _as_bool,
    },
    "bundle_size": {
        "warn_gzip_kb": lambda v, p, i: _as_float(v, p, i, minimum=0.0),
    },
    "module_integrity": {
        "patterns": _as_str_list,
    },
    "execution": {
        "command_timeout_seconds": lambda v, p, i: _as_float(v, p, i, minimum=0.0),
        "max_output_chars": lambda v, p, i: _as_int(v, p, i, minimum=1),
    },
    "observability": {
        "log_level": _as_log_level,
        "log_dir": _as_path_text,
    },
}

_OPTIONAL_FIELDS: Final[Mapping[str, frozenset[str]]] = {
    "observability": frozenset({"log_dir"}),
}


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: copy.deepcopy(value[key]) for key in sorted(value)}


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DISCOVERY_MODES",
    "DistgateConfig",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
