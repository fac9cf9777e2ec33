"""Gate signature catalog loading.

Loads destructive-command and secret signatures from gate_rules.yaml in
the package templates directory and compiles them once. Configured extra
patterns are appended by EnforcementGates.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from guidancekit.core.result import ConfigurationError


@dataclass(frozen=True)
class DestructiveSignature:
    """A command shape that needs explicit confirmation before running."""

    name: str
    description: str
    pattern: re.Pattern[str]


@dataclass(frozen=True)
class SecretPrefix:
    """Known API key prefix pattern."""

    prefix: str
    description: str
    min_length: int = 16


@dataclass(frozen=True)
class SecretSignature:
    """A secret-shaped substring; the ``value`` group (or whole match) is the secret."""

    name: str
    description: str
    pattern: re.Pattern[str]


@dataclass(frozen=True)
class GateRules:
    """Compiled signature catalog."""

    destructive: tuple[DestructiveSignature, ...]
    secrets: tuple[SecretSignature, ...]
    version: str = "1.0"


def _get_templates_dir() -> Path:
    """Get the templates directory path."""
    return Path(__file__).parent.parent / "templates"


def _compile(pattern: str, name: str, flags: int = 0) -> re.Pattern[str]:
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise ConfigurationError(
            "Invalid gate pattern", context={"rule": name, "error": str(exc)}
        ) from exc


def build_known_prefix_signature(prefixes: tuple[SecretPrefix, ...]) -> SecretSignature | None:
    """Build one alternation signature covering every known key prefix."""
    if not prefixes:
        return None
    alternatives = "|".join(
        f"{re.escape(p.prefix)}[A-Za-z0-9_\\-]{{{p.min_length},}}" for p in prefixes
    )
    return SecretSignature(
        name="known-prefix",
        description="Provider API key or token",
        pattern=re.compile(f"(?<![A-Za-z0-9_])(?P<value>{alternatives})"),
    )


def parse_gate_rules(data: Mapping[str, Any]) -> GateRules:
    """Turn a parsed catalog mapping into compiled signatures."""
    destructive = tuple(
        DestructiveSignature(
            name=entry["name"],
            description=entry.get("description", ""),
            pattern=_compile(
                entry["pattern"],
                entry["name"],
                re.IGNORECASE if entry.get("case_insensitive") else 0,
            ),
        )
        for entry in data.get("destructive_operations", [])
    )

    secret_section = data.get("secret_detection", {})
    prefixes = tuple(
        SecretPrefix(
            prefix=entry["prefix"],
            description=entry.get("description", ""),
            min_length=entry.get("min_length", 16),
        )
        for entry in secret_section.get("known_prefixes", [])
    )
    secrets = [
        SecretSignature(
            name=entry["name"],
            description=entry.get("description", ""),
            pattern=_compile(entry["pattern"], entry["name"]),
        )
        for entry in secret_section.get("patterns", [])
    ]
    prefix_signature = build_known_prefix_signature(prefixes)
    if prefix_signature is not None:
        secrets.insert(0, prefix_signature)

    return GateRules(
        destructive=destructive,
        secrets=tuple(secrets),
        version=str(data.get("version", "1.0")),
    )


@lru_cache(maxsize=1)
def load_gate_rules() -> GateRules:
    """Load the shipped signature catalog.

    Uses LRU cache to avoid repeated file I/O.

    Raises:
        ConfigurationError: if the catalog is missing or malformed.
    """
    path = _get_templates_dir() / "gate_rules.yaml"
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(
            "Cannot load gate rules", context={"path": str(path), "error": str(exc)}
        ) from exc

    if not isinstance(data, dict):
        raise ConfigurationError("Gate rules root must be a mapping", context={"path": str(path)})

    try:
        return parse_gate_rules(data)
    except (KeyError, TypeError) as exc:
        raise ConfigurationError(
            "Malformed gate rule entry", context={"path": str(path), "error": str(exc)}
        ) from exc


__all__ = [
    "DestructiveSignature",
    "GateRules",
    "SecretPrefix",
    "SecretSignature",
    "build_known_prefix_signature",
    "load_gate_rules",
    "parse_gate_rules",
]
