"""
Optimizer loop for guidance rules.

Consumes a RunLedger and a PolicyBundle, ranks violations, proposes rule
changes, evaluates them heuristically, records ADRs, and promotes shards
that win repeated cycles into the constitution. Promotion is one-way.
"""

from guidancekit.optimizer.adr import render_adr, render_adr_log
from guidancekit.optimizer.loop import OptimizerLoop, create_optimizer
from guidancekit.optimizer.tracker import PromotionTracker
from guidancekit.optimizer.types import (
    ChangeEvaluation,
    CycleResult,
    RuleADR,
    RuleChange,
)

__all__ = [
    "ChangeEvaluation",
    "CycleResult",
    "OptimizerLoop",
    "PromotionTracker",
    "RuleADR",
    "RuleChange",
    "create_optimizer",
    "render_adr",
    "render_adr_log",
]
