"""
Runtime enforcement gates.

Stateless checks run before a tool invocation executes. Each gate returns
a GateResult when it fires and None otherwise; ``aggregate_decision``
folds a list of results into the most restrictive decision.
"""

from guidancekit.gates.enforcement import EnforcementGates, create_gates, mask_secret
from guidancekit.gates.rules import GateRules, load_gate_rules
from guidancekit.gates.types import GateDecision, GateResult

__all__ = [
    "EnforcementGates",
    "GateDecision",
    "GateResult",
    "GateRules",
    "create_gates",
    "load_gate_rules",
    "mask_secret",
]
