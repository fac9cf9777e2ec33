"""Application configuration management.

Handles loading and validating configuration from multiple sources:
    - TOML/JSON config files
    - Environment variables (GK_* prefix)
    - Default values

Key components:
    - AppConfig: Main configuration model
    - load_config(): Safe config loading with fallback
    - ConfigLoadResult: Metadata about config source
"""

from __future__ import annotations

import json
import os
import re
import tomllib
from collections.abc import Mapping
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal
from unittest.mock import patch

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from guidancekit.core.console import get_logger

CONFIG_ENV_VAR = "GUIDANCEKIT_CONFIG"

logger = get_logger(__name__)


class ConfigError(RuntimeError):
    """Raised when a configuration file cannot be parsed."""


# -----------------------------------------------------------------------------
# Sub-configuration Models
# -----------------------------------------------------------------------------


class CompilerConfig(BaseModel):
    """Guidance compiler configuration."""

    default_risk_class: Literal["critical", "high", "medium", "low"] = Field(
        default="medium", description="Risk class for rules without a risk annotation."
    )
    max_constitution_lines: int = Field(
        default=60, ge=1, description="Maximum lines in the rendered constitution text."
    )
    auto_generate_ids: bool = Field(
        default=True, description="Synthesize AUTO-### ids for actionable untagged bullets."
    )


class LedgerConfig(BaseModel):
    """Run ledger configuration."""

    max_events: int = Field(
        default=0, ge=0, description="Retention limit; oldest events are dropped. 0 = unbounded."
    )
    max_violations_per_event: int = Field(
        default=0, ge=0, description="Threshold used by the default violation-rate evaluator."
    )
    max_rework_ratio: float = Field(
        default=0.3, ge=0.0, description="Threshold used by the default diff-quality evaluator."
    )
    forbidden_packages: list[str] = Field(
        default_factory=list, description="Package names rejected by the dependency evaluator."
    )


class OptimizerConfig(BaseModel):
    """Optimizer loop configuration."""

    top_violations_per_cycle: int = Field(
        default=3, ge=1, description="Number of ranked violations addressed per cycle."
    )
    min_events_for_optimization: int = Field(
        default=10, ge=0, description="Ledger size below which a cycle is a no-op."
    )
    repeat_offense_threshold: int = Field(
        default=2, ge=0, description="Violation frequency above which a change counts as a win."
    )
    promotion_wins: int = Field(
        default=2, ge=1, description="Winning cycles required before a shard is promoted."
    )


class GateConfig(BaseModel):
    """Enforcement gate configuration."""

    destructive_ops: bool = Field(default=True, description="Enable the destructive-ops gate.")
    tool_allowlist: bool = Field(default=False, description="Enable the tool allowlist gate.")
    diff_size: bool = Field(default=True, description="Enable the diff-size gate.")
    secrets: bool = Field(default=True, description="Enable the secrets gate.")
    diff_size_threshold: int = Field(
        default=300, ge=0, description="Lines changed in one file before the diff-size gate warns."
    )
    allowed_tools: list[str] = Field(
        default_factory=list,
        description="Allowed tool names; a trailing '*' matches any suffix.",
    )
    destructive_patterns: list[str] = Field(
        default_factory=list, description="Extra regexes treated as destructive commands."
    )
    secret_patterns: list[str] = Field(
        default_factory=list, description="Extra regexes treated as secrets."
    )

    @field_validator("destructive_patterns", "secret_patterns", mode="after")
    @classmethod
    def ensure_patterns_compile(cls, v: list[str]) -> list[str]:
        """Reject patterns that are not valid regular expressions."""
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid pattern {pattern!r}: {exc}") from exc
        return v


@dataclass
class ConfigLoadResult:
    path: Path
    file_loaded: bool
    env_overrides: set[str]
    error: str | None = None


class AppConfig(BaseSettings):
    """Application-wide configuration with nested sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="GK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    optimizer: OptimizerConfig = Field(default_factory=OptimizerConfig)
    gates: GateConfig = Field(default_factory=GateConfig)
    log_level: str = Field(default="INFO", description="Log level for guidancekit output.")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
    ]:
        # Environment variables override config file entries.
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


def _resolve_config_path(config_path: Path | None, env_vars: Mapping[str, str]) -> Path:
    candidate = config_path or env_vars.get(CONFIG_ENV_VAR) or (Path.home() / ".guidancekit.toml")
    return Path(candidate).expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    raw = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    parser = json.loads if suffix == ".json" else tomllib.loads

    try:
        data = parser(raw)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Syntax error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping.")

    return data


def _detect_env_overrides(env_vars: Mapping[str, str]) -> set[str]:
    """Detect which fields are overridden by environment variables.

    For nested models, detects vars like GK_GATES__DIFF_SIZE_THRESHOLD.
    """
    prefix = AppConfig.model_config.get("env_prefix", "")
    delimiter = AppConfig.model_config.get("env_nested_delimiter", "__")
    overrides: set[str] = set()

    nested_models: dict[str, type[BaseModel]] = {
        "compiler": CompilerConfig,
        "ledger": LedgerConfig,
        "optimizer": OptimizerConfig,
        "gates": GateConfig,
    }

    for group_name, model_cls in nested_models.items():
        for field in model_cls.model_fields:
            env_key = f"{prefix}{group_name}{delimiter}{field}".upper()
            if env_key in env_vars:
                overrides.add(f"{group_name}.{field}")

    return overrides


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[AppConfig, ConfigLoadResult]:
    """
    Load configuration with Safe Mode fallback.
    If the file is invalid, returns default config + error message.
    """
    env_vars: Mapping[str, str] = os.environ if env is None else {**os.environ, **env}
    resolved_path = _resolve_config_path(config_path, env_vars)
    env_overrides = _detect_env_overrides(env_vars)

    error: str | None = None
    file_loaded = False
    file_data: dict[str, Any] = {}

    try:
        file_data = _read_config_file(resolved_path)
        file_loaded = resolved_path.exists()
    except ConfigError as exc:
        error = str(exc)

    context_manager = (
        patch.dict(os.environ, env_vars, clear=False) if env is not None else nullcontext()
    )

    try:
        with context_manager:
            config = AppConfig(**file_data)
    except ValidationError as exc:
        error = str(exc)
        config = AppConfig()

    if error:
        logger.warning("Falling back to default configuration: %s", error)

    load_result = ConfigLoadResult(
        path=resolved_path,
        file_loaded=file_loaded,
        env_overrides=env_overrides,
        error=error,
    )

    return config, load_result


__all__ = [
    "AppConfig",
    "CompilerConfig",
    "ConfigError",
    "ConfigLoadResult",
    "GateConfig",
    "LedgerConfig",
    "OptimizerConfig",
    "load_config",
]
