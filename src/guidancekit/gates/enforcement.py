"""Enforcement gates evaluated before a tool invocation runs.

Every gate is a pure function of its input plus static configuration:
it returns a GateResult when it fires and None otherwise. Gates never
raise on string or integer input; anything unrecognized is "no match".

Decision severity, most restrictive first:
    block > require-confirmation > warn > allow
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from guidancekit.core.config import GateConfig
from guidancekit.core.console import get_logger
from guidancekit.gates.rules import (
    DestructiveSignature,
    GateRules,
    SecretSignature,
    load_gate_rules,
)
from guidancekit.gates.types import GateDecision, GateResult

logger = get_logger(__name__)

DESTRUCTIVE_OPS_GATE = "destructive-ops"
TOOL_ALLOWLIST_GATE = "tool-allowlist"
DIFF_SIZE_GATE = "diff-size"
SECRETS_GATE = "secrets"

# Values that reference the environment rather than embedding a secret
_ENV_REFERENCE = re.compile(
    r"^(?:\$\{?[A-Za-z_]\w*\}?|process\.env\b|os\.environ\b|os\.getenv\b|getenv\(|ENV\[|env\()"
)
# Unquoted calls and subscripts such as get_password(), or attribute reads on
# a config object such as settings.db_password
_EXPRESSION = re.compile(
    r"^(?:[A-Za-z_][\w.]*[(\[]|(?:self|cls|settings|config|cfg|conf|options|args)\.[A-Za-z_][\w.]*$)"
)


def mask_secret(value: str) -> str:
    """Mask a secret, keeping at most a 4-char prefix; short values are fully masked."""
    if len(value) < 8:
        return "*" * len(value)
    return value[:4] + "*" * (len(value) - 4)


def is_env_reference(value: str) -> bool:
    return bool(_ENV_REFERENCE.match(value.strip()))


class EnforcementGates:
    """Runtime gates for destructive commands, tools, diff size, and secrets."""

    def __init__(self, config: GateConfig | None = None, rules: GateRules | None = None) -> None:
        self._config = config or GateConfig()
        catalog = rules or load_gate_rules()

        self._destructive: tuple[DestructiveSignature, ...] = (
            *catalog.destructive,
            *(
                DestructiveSignature(f"custom-{i + 1}", "Configured destructive pattern", re.compile(p))
                for i, p in enumerate(self._config.destructive_patterns)
            ),
        )
        self._secrets: tuple[SecretSignature, ...] = (
            *catalog.secrets,
            *(
                SecretSignature(f"custom-{i + 1}", "Configured secret pattern", re.compile(p))
                for i, p in enumerate(self._config.secret_patterns)
            ),
        )

    @property
    def config(self) -> GateConfig:
        return self._config

    # ------------------------------------------------------------------
    # Individual gates
    # ------------------------------------------------------------------

    def evaluate_destructive_ops(self, command: str) -> GateResult | None:
        if not self._config.destructive_ops or not command:
            return None

        matched = [sig for sig in self._destructive if sig.pattern.search(command)]
        if not matched:
            return None

        names = tuple(sig.name for sig in matched)
        logger.debug("Destructive command gate fired: %s", ", ".join(names))
        return GateResult(
            gate_name=DESTRUCTIVE_OPS_GATE,
            decision=GateDecision.REQUIRE_CONFIRMATION,
            reason="Destructive operation detected: "
            + "; ".join(sig.description for sig in matched),
            triggered_rules=names,
            remediation=(
                "Confirm intent and prepare a rollback plan first: back up affected data, "
                "create a recovery branch or snapshot, and prefer a scoped, reversible command."
            ),
            metadata={"command": self.redact_secrets(command)},
        )

    def evaluate_tool_allowlist(self, tool_name: str) -> GateResult | None:
        """Block tools not covered by the allowlist.

        An enabled gate with an empty allowlist blocks every tool.
        """
        if not self._config.tool_allowlist:
            return None
        if any(_tool_matches(tool_name, entry) for entry in self._config.allowed_tools):
            return None

        logger.debug("Tool allowlist gate blocked %s", tool_name)
        return GateResult(
            gate_name=TOOL_ALLOWLIST_GATE,
            decision=GateDecision.BLOCK,
            reason=f"Tool {tool_name!r} is not on the allowlist",
            triggered_rules=(TOOL_ALLOWLIST_GATE,),
            remediation="Use an allowlisted tool or add this tool to gates.allowed_tools.",
            metadata={"tool": tool_name, "allowed_tools": list(self._config.allowed_tools)},
        )

    def evaluate_diff_size(self, file_path: str, line_count: int) -> GateResult | None:
        threshold = self._config.diff_size_threshold
        if not self._config.diff_size or line_count <= threshold:
            return None

        return GateResult(
            gate_name=DIFF_SIZE_GATE,
            decision=GateDecision.WARN,
            reason=f"Diff for {file_path} touches {line_count} lines (threshold {threshold})",
            triggered_rules=(DIFF_SIZE_GATE,),
            remediation=(
                "Stage changes incrementally: split the edit into smaller, reviewable "
                "commits and run tests between steps."
            ),
            metadata={"file_path": file_path, "line_count": line_count, "threshold": threshold},
        )

    def evaluate_secrets(self, content: str) -> GateResult | None:
        if not self._config.secrets or not content:
            return None

        found = self._find_secrets(content)
        if not found:
            return None

        kinds = tuple(dict.fromkeys(found.values()))
        logger.debug("Secrets gate fired: %d value(s), kinds=%s", len(found), ", ".join(kinds))
        return GateResult(
            gate_name=SECRETS_GATE,
            decision=GateDecision.BLOCK,
            reason=f"Detected {len(found)} secret-shaped value(s) in content",
            triggered_rules=kinds,
            remediation=(
                "Remove the secret, rotate the credential, and load it from the "
                "environment or a secret manager."
            ),
            metadata={
                "redacted_secrets": [mask_secret(value) for value in found],
                "secret_types": list(kinds),
            },
        )

    def redact_secrets(self, text: str) -> str:
        """Return ``text`` with every detected secret value masked."""
        for value in sorted(self._find_secrets(text), key=len, reverse=True):
            text = text.replace(value, mask_secret(value))
        return text

    def _find_secrets(self, content: str) -> dict[str, str]:
        """Map each literal secret value in ``content`` to its signature name."""
        found: dict[str, str] = {}
        for signature in self._secrets:
            for match in signature.pattern.finditer(content):
                value = _secret_value(match)
                if not value or value in found or is_env_reference(value):
                    continue
                if _is_unquoted(match) and _EXPRESSION.match(value):
                    continue
                found[value] = signature.name
        return found

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def evaluate_command(self, command: str) -> list[GateResult]:
        """Run every gate that applies to a shell command."""
        results = (self.evaluate_destructive_ops(command), self.evaluate_secrets(command))
        return [result for result in results if result is not None]

    def evaluate_tool_call(
        self,
        tool_name: str,
        *,
        command: str | None = None,
        file_path: str | None = None,
        line_count: int | None = None,
        content: str | None = None,
    ) -> list[GateResult]:
        """Run every gate applicable to one tool invocation."""
        results: list[GateResult | None] = [self.evaluate_tool_allowlist(tool_name)]
        if command:
            results.extend(self.evaluate_command(command))
        if file_path is not None and line_count is not None:
            results.append(self.evaluate_diff_size(file_path, line_count))
        if content:
            results.append(self.evaluate_secrets(content))
        return [result for result in results if result is not None]

    @staticmethod
    def aggregate_decision(results: Iterable[GateResult]) -> GateDecision:
        """Most restrictive decision among results; allow when there are none."""
        return max(
            (result.decision for result in results),
            key=lambda decision: decision.severity,
            default=GateDecision.ALLOW,
        )

    def active_gate_count(self) -> int:
        config = self._config
        return sum((config.destructive_ops, config.tool_allowlist, config.diff_size, config.secrets))


def _tool_matches(tool_name: str, entry: str) -> bool:
    if entry.endswith("*"):
        return tool_name.startswith(entry[:-1])
    return tool_name == entry


def _secret_value(match: re.Match[str]) -> str:
    if "value" in match.re.groupindex:
        return match.group("value") or ""
    return match.group(0)


def _is_unquoted(match: re.Match[str]) -> bool:
    return "quote" in match.re.groupindex and not match.group("quote")


def create_gates(config: GateConfig | None = None) -> EnforcementGates:
    return EnforcementGates(config)


__all__ = [
    "DESTRUCTIVE_OPS_GATE",
    "DIFF_SIZE_GATE",
    "SECRETS_GATE",
    "TOOL_ALLOWLIST_GATE",
    "EnforcementGates",
    "create_gates",
    "is_env_reference",
    "mask_secret",
]
