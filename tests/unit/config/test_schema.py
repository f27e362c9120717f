"""
distgate — unit tests for config schema validation

File: tests/unit/config/test_schema.py

Purpose
- Validate strict config schema behavior and structured errors.

What this test file should cover
- Built-in defaults validate.
- Unknown keys and invalid types are rejected with actionable paths.
- Schema version mismatches carry migration guidance.
- Deep merge is deterministic and non-destructive.
"""

from __future__ import annotations

import pytest

from distgate.config.schema import (
    ConfigSchemaVersion,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)


def test_default_config_validates_successfully() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.issues == ()
    assert result.config is not None
    assert result.config["meta"]["schema_version"] == ConfigSchemaVersion


def test_unknown_section_and_field_are_reported_with_paths() -> None:
    config = merge_config(
        default_config(),
        {"bundel_size": {"warn_gzip_kb": 10}, "syntax": {"targt": "es2020"}},
    )

    result = validate_config(config)

    assert not result.is_valid
    paths = {issue.path for issue in result.issues}
    assert "bundel_size" in paths
    assert "syntax.targt" in paths


def test_invalid_types_and_enums_are_rejected() -> None:
    config = merge_config(
        default_config(),
        {
            "discovery": {"mode": "everything"},
            "exports": {"metadata_lint_strict": "yes"},
            "bundle_size": {"warn_gzip_kb": -1},
            "syntax": {"command": []},
        },
    )

    result = validate_config(config)
    messages = {issue.path: issue.message for issue in result.issues}

    assert "expected one of" in messages["discovery.mode"]
    assert "expected boolean" in messages["exports.metadata_lint_strict"]
    assert "must be >=" in messages["bundle_size.warn_gzip_kb"]
    assert messages["syntax.command"] == "must not be empty"


def test_dist_dirname_must_be_a_single_directory_name() -> None:
    config = merge_config(default_config(), {"paths": {"dist_dirname": "build/out"}})

    result = validate_config(config)

    assert [issue.path for issue in result.issues] == ["paths.dist_dirname"]


def test_schema_version_mismatch_includes_migration_guidance() -> None:
    config = merge_config(default_config(), {"meta": {"schema_version": ConfigSchemaVersion + 1}})

    with pytest.raises(ConfigValidationError, match="upgrade distgate") as excinfo:
        assert_valid_config(config)

    assert excinfo.value.issues[0].path == "meta.schema_version"


def test_log_level_is_normalized_to_upper_case() -> None:
    config = merge_config(default_config(), {"observability": {"log_level": "debug"}})

    validated = assert_valid_config(config)

    assert validated["observability"]["log_level"] == "DEBUG"


def test_merge_config_does_not_mutate_inputs() -> None:
    base = default_config()
    overlay = {"module_integrity": {"patterns": ["require(", "module.exports"]}}

    merged = merge_config(base, overlay)

    assert merged["module_integrity"]["patterns"] == ["require(", "module.exports"]
    assert base["module_integrity"]["patterns"] == ["require("]
    assert overlay == {"module_integrity": {"patterns": ["require(", "module.exports"]}}
