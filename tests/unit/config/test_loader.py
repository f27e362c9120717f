"""
distgate — unit tests for config loader

File: tests/unit/config/test_loader.py

Purpose
- Validate deterministic config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Deterministic env var path mapping and type coercion.
- Path normalization relative to the config file.
- Conversion into ``ValidationSettings``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from distgate.config import ValidationSettings
from distgate.config.loader import (
    ConfigLoadError,
    load_config,
)


def _write_config(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    config_path = tmp_path / "distgate.toml"
    default_path = tmp_path / "empty.toml"
    _write_config(default_path, "")
    _write_config(
        config_path,
        """
[bundle_size]
warn_gzip_kb = 40.0
""".strip(),
    )
    env = {"DISTGATE_BUNDLE_SIZE_WARN_GZIP_KB": "30"}

    default_loaded = load_config(default_path, environ={})
    file_loaded = load_config(config_path, environ={})
    env_loaded = load_config(config_path, environ=env)
    cli_loaded = load_config(
        config_path,
        environ=env,
        cli_overrides={"bundle_size.warn_gzip_kb": 20.0},
    )

    assert default_loaded["bundle_size"]["warn_gzip_kb"] == 50.0
    assert file_loaded["bundle_size"]["warn_gzip_kb"] == 40.0
    assert env_loaded["bundle_size"]["warn_gzip_kb"] == 30.0
    assert cli_loaded["bundle_size"]["warn_gzip_kb"] == 20.0


def test_missing_default_config_file_falls_back_to_defaults(tmp_path: Path) -> None:
    loaded = load_config(base_dir=tmp_path, environ={})

    assert loaded["discovery"]["mode"] == "packages_dir"
    assert loaded["paths"]["packages_dir"] == (tmp_path.resolve() / "packages").as_posix()
    assert loaded["syntax"]["command"] == ["npx", "es-check"]


def test_explicit_config_path_must_exist(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "missing.toml", environ={})


def test_env_mapping_coerces_booleans_and_strings(tmp_path: Path) -> None:
    loaded = load_config(
        base_dir=tmp_path,
        environ={
            "DISTGATE_EXPORTS_METADATA_LINT_STRICT": "yes",
            "DISTGATE_DISCOVERY_MODE": "workspace",
            "DISTGATE_SYNTAX_TARGET": "es2020",
        },
    )

    assert loaded["exports"]["metadata_lint_strict"] is True
    assert loaded["discovery"]["mode"] == "workspace"
    assert loaded["syntax"]["target"] == "es2020"


def test_invalid_env_coercion_raises_actionable_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="DISTGATE_EXECUTION_MAX_OUTPUT_CHARS"):
        load_config(base_dir=tmp_path, environ={"DISTGATE_EXECUTION_MAX_OUTPUT_CHARS": "lots"})


def test_invalid_toml_raises_load_error(tmp_path: Path) -> None:
    config_path = tmp_path / "distgate.toml"
    _write_config(config_path, "[paths\npackages_dir = 1")

    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ={})


def test_path_normalization_is_relative_to_config_file(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "distgate.toml"
    _write_config(
        config_path,
        """
[paths]
packages_dir = "libs"

[observability]
log_dir = "logs"
""".strip(),
    )

    loaded = load_config(config_path, environ={})
    base = config_path.parent.resolve()

    assert loaded["paths"]["packages_dir"] == (base / "libs").as_posix()
    assert loaded["paths"]["sandbox_root"] == base.as_posix()
    assert loaded["observability"]["log_dir"] == (base / "logs").as_posix()


def test_settings_from_config_disables_zero_timeout(tmp_path: Path) -> None:
    loaded = load_config(base_dir=tmp_path, environ={})
    settings = ValidationSettings.from_config(loaded, repo_root=tmp_path)

    assert settings.command_timeout_seconds is None
    assert settings.repo_root == tmp_path.resolve()
    assert settings.syntax_command == ("npx", "es-check")
    assert settings.legacy_loader_patterns == ("require(",)
    assert settings.log_dir is None


def test_settings_from_config_keeps_positive_timeout(tmp_path: Path) -> None:
    loaded = load_config(
        base_dir=tmp_path,
        environ={"DISTGATE_EXECUTION_COMMAND_TIMEOUT_SECONDS": "90"},
    )
    settings = ValidationSettings.from_config(loaded, repo_root=tmp_path)

    assert settings.command_timeout_seconds == 90.0
