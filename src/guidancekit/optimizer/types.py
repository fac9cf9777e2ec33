"""Types produced by the optimizer loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from guidancekit.ledger.ledger import OptimizationMetrics, ViolationRanking

ChangeType = Literal["modify", "add", "promote"]
ADRDecision = Literal["promote", "reject"]


@dataclass(frozen=True)
class RuleChange:
    """A proposed edit to the policy, triggered by one ranked violation."""

    change_id: str
    target_rule_id: str
    change_type: ChangeType
    proposed_text: str
    rationale: str
    triggering_violation: ViolationRanking
    original_text: str | None = None


@dataclass(frozen=True)
class ChangeEvaluation:
    """Heuristic comparison of a change against baseline ledger metrics."""

    change: RuleChange
    baseline: OptimizationMetrics
    candidate: OptimizationMetrics
    should_promote: bool
    reason: str


@dataclass(frozen=True)
class RuleADR:
    """Decision record for one evaluated change."""

    number: int
    title: str
    rationale: str
    decision: ADRDecision
    consequences: str
    change: RuleChange
    evaluation: ChangeEvaluation
    created_at: int


@dataclass(frozen=True)
class CycleResult:
    rankings: list[ViolationRanking] = field(default_factory=list)
    changes: list[RuleChange] = field(default_factory=list)
    evaluations: list[ChangeEvaluation] = field(default_factory=list)
    adrs: list[RuleADR] = field(default_factory=list)
    promoted: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.rankings or self.changes or self.adrs or self.promoted)


__all__ = [
    "ADRDecision",
    "ChangeEvaluation",
    "ChangeType",
    "CycleResult",
    "OptimizationMetrics",
    "RuleADR",
    "RuleChange",
    "ViolationRanking",
]
