"""Gate decision types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class GateDecision(StrEnum):
    """Outcome of a gate, ordered from least to most restrictive."""

    ALLOW = "allow"
    WARN = "warn"
    REQUIRE_CONFIRMATION = "require-confirmation"
    BLOCK = "block"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY: dict[GateDecision, int] = {
    GateDecision.ALLOW: 0,
    GateDecision.WARN: 1,
    GateDecision.REQUIRE_CONFIRMATION: 2,
    GateDecision.BLOCK: 3,
}


@dataclass(frozen=True)
class GateResult:
    """Result of one gate that fired for a prospective action."""

    gate_name: str
    decision: GateDecision
    reason: str
    triggered_rules: tuple[str, ...] = ()
    remediation: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


__all__ = ["GateDecision", "GateResult"]
