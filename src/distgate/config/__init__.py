"""
distgate config package public API.

File: src/distgate/config/__init__.py
Last updated: 2026-10-16

Purpose
- Export config loading/validation entrypoints and public error types.

Functional requirements
- Support loading from ``distgate.toml`` + ``DISTGATE_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from distgate.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    load_config,
    normalize_paths,
)
from distgate.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    DistgateConfig,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)
from distgate.config.settings import ValidationSettings

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "DistgateConfig",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "ValidationSettings",
    "assert_valid_config",
    "default_config",
    "load_config",
    "merge_config",
    "migration_guidance",
    "normalize_paths",
    "validate_config",
]
