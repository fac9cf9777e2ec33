"""Tests for configuration loading with safe-mode fallback."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from guidancekit.core.config import AppConfig, GateConfig, load_config


def test_defaults_without_file(isolate_config: Path) -> None:
    config, result = load_config()
    assert result.path == isolate_config
    assert not result.file_loaded
    assert result.error is None
    assert config.gates.diff_size_threshold == 300
    assert config.gates.destructive_ops and config.gates.secrets and config.gates.diff_size
    assert not config.gates.tool_allowlist
    assert config.optimizer.promotion_wins == 2
    assert config.compiler.max_constitution_lines == 60


def test_toml_file_is_loaded(isolate_config: Path) -> None:
    isolate_config.write_text(
        "log_level = 'DEBUG'\n"
        "[gates]\n"
        "tool_allowlist = true\n"
        "allowed_tools = ['Read', 'mcp__*']\n"
        "[optimizer]\n"
        "min_events_for_optimization = 3\n",
        encoding="utf-8",
    )
    config, result = load_config()
    assert result.file_loaded
    assert config.log_level == "DEBUG"
    assert config.gates.allowed_tools == ["Read", "mcp__*"]
    assert config.optimizer.min_events_for_optimization == 3


def test_json_file_is_loaded(tmp_path: Path) -> None:
    path = tmp_path / "guidance.json"
    path.write_text(json.dumps({"ledger": {"max_events": 100}}), encoding="utf-8")
    config, result = load_config(path)
    assert result.file_loaded
    assert config.ledger.max_events == 100


def test_env_overrides_file(isolate_config: Path) -> None:
    isolate_config.write_text("[gates]\ndiff_size_threshold = 100\nsecrets = false\n", encoding="utf-8")
    config, result = load_config(env={"GK_GATES__DIFF_SIZE_THRESHOLD": "50"})
    assert config.gates.diff_size_threshold == 50
    assert config.gates.secrets is False
    assert "gates.diff_size_threshold" in result.env_overrides


def test_syntax_error_falls_back_to_defaults(isolate_config: Path) -> None:
    isolate_config.write_text("[gates\nbroken", encoding="utf-8")
    config, result = load_config()
    assert result.error is not None
    assert "Syntax error" in result.error
    assert config.gates.diff_size_threshold == 300


def test_invalid_values_fall_back_to_defaults(isolate_config: Path) -> None:
    isolate_config.write_text("[gates]\ndiff_size_threshold = -5\n", encoding="utf-8")
    config, result = load_config()
    assert result.error is not None
    assert config.gates.diff_size_threshold == 300


def test_invalid_regex_rejected() -> None:
    with pytest.raises(ValidationError):
        GateConfig(secret_patterns=["("])


def test_app_config_sections_are_independent() -> None:
    first = AppConfig()
    second = AppConfig()
    first.gates.allowed_tools.append("Read")
    assert second.gates.allowed_tools == []
