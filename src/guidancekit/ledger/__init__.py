"""
Run ledger and evaluators.

The ledger records one RunEvent per completed task, supplied by the
external task harness, and answers aggregation queries used by the
optimizer loop: metrics (violations per 10 tasks, self-correction rate,
mean rework) and violation rankings (frequency x rework cost).
"""

from guidancekit.ledger.evaluators import (
    DiffQualityEvaluator,
    Evaluator,
    EvaluatorResult,
    ForbiddenCommandEvaluator,
    ForbiddenDependencyEvaluator,
    TestsPassEvaluator,
    ViolationRateEvaluator,
)
from guidancekit.ledger.events import DiffSummary, RunEvent, TestResults, Violation, create_event
from guidancekit.ledger.ledger import (
    OptimizationMetrics,
    RunLedger,
    ViolationRanking,
    create_ledger,
    validate_events,
)

__all__ = [
    "DiffQualityEvaluator",
    "DiffSummary",
    "Evaluator",
    "EvaluatorResult",
    "ForbiddenCommandEvaluator",
    "ForbiddenDependencyEvaluator",
    "OptimizationMetrics",
    "RunEvent",
    "RunLedger",
    "TestResults",
    "TestsPassEvaluator",
    "Violation",
    "ViolationRanking",
    "ViolationRateEvaluator",
    "create_event",
    "create_ledger",
    "validate_events",
]
