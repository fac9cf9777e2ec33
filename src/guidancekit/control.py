"""
Guidance control plane.

Single entry point wiring the compiler, run ledger, optimizer loop, and
enforcement gates around one held PolicyBundle. The embedding harness
calls ``initialize`` with guidance text, feeds completed-task events to
``record_event``, periodically runs ``optimize``, and asks ``gates``
before executing tools.
"""

from __future__ import annotations

from dataclasses import dataclass

from guidancekit.core.config import AppConfig
from guidancekit.core.console import get_logger
from guidancekit.core.result import PolicyNotLoadedError
from guidancekit.gates.enforcement import EnforcementGates
from guidancekit.ledger.events import RunEvent
from guidancekit.ledger.ledger import OptimizationMetrics, RunLedger
from guidancekit.optimizer.loop import OptimizerLoop
from guidancekit.optimizer.types import CycleResult
from guidancekit.policy.compiler import GuidanceCompiler
from guidancekit.policy.types import PolicyBundle

logger = get_logger(__name__)


@dataclass(frozen=True)
class ControlPlaneStatus:
    """Point-in-time snapshot of the control plane."""

    initialized: bool
    constitution_loaded: bool
    shard_count: int
    active_gates: int
    ledger_event_count: int
    last_optimization_run: int | None
    metrics: OptimizationMetrics


class GuidanceControlPlane:
    """Owns one policy bundle plus the ledger, optimizer, and gates acting on it."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self._config = config or AppConfig()
        self._compiler = GuidanceCompiler(self._config.compiler)
        self._ledger = RunLedger(self._config.ledger)
        self._optimizer = OptimizerLoop(
            self._config.optimizer,
            max_constitution_lines=self._config.compiler.max_constitution_lines,
        )
        self._gates = EnforcementGates(self._config.gates)
        self._bundle: PolicyBundle | None = None

    @property
    def config(self) -> AppConfig:
        return self._config

    def initialize(self, root_text: str, local_text: str | None = None) -> PolicyBundle:
        """Compile guidance text and hold the resulting bundle."""
        self._bundle = self._compiler.compile(root_text, local_text)
        logger.info(
            "Guidance compiled: %d constitution rules, %d shards, hash %s",
            len(self._bundle.constitution.rules),
            len(self._bundle.shards),
            self._bundle.constitution.hash,
        )
        return self._bundle

    @property
    def bundle(self) -> PolicyBundle:
        if self._bundle is None:
            raise PolicyNotLoadedError("Control plane has no compiled policy; call initialize()")
        return self._bundle

    @property
    def ledger(self) -> RunLedger:
        return self._ledger

    @property
    def optimizer(self) -> OptimizerLoop:
        return self._optimizer

    @property
    def gates(self) -> EnforcementGates:
        return self._gates

    def record_event(self, event: RunEvent) -> RunEvent:
        """Log a completed-task event, stamping the current guidance hash if unset."""
        if not event.guidance_hash and self._bundle is not None:
            event = event.model_copy(update={"guidance_hash": self._bundle.constitution.hash})
        return self._ledger.log_event(event)

    def optimize(self) -> CycleResult:
        """Run one optimizer cycle and apply its promotions to the held bundle.

        Raises:
            PolicyNotLoadedError: if ``initialize`` has not been called.
        """
        bundle = self.bundle
        result = self._optimizer.run_cycle(self._ledger, bundle)
        if result.promoted:
            self._bundle = self._optimizer.apply_promotions(bundle, result.promoted, result.changes)
        return result

    def status(self) -> ControlPlaneStatus:
        bundle = self._bundle
        return ControlPlaneStatus(
            initialized=bundle is not None,
            constitution_loaded=bundle is not None and bool(bundle.constitution.rules),
            shard_count=len(bundle.shards) if bundle is not None else 0,
            active_gates=self._gates.active_gate_count(),
            ledger_event_count=self._ledger.event_count,
            last_optimization_run=self._optimizer.last_run,
            metrics=self._ledger.compute_metrics(),
        )


__all__ = ["ControlPlaneStatus", "GuidanceControlPlane"]
