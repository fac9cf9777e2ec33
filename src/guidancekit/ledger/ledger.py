"""Append-only run ledger with aggregation queries.

The ledger is mutated only by appending (``log_event``, ``finalize_event``,
``import_events``) or by ``clear``. Logged events are frozen models, so
nothing a caller holds can change ledger contents after the fact.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from guidancekit.core.config import LedgerConfig
from guidancekit.core.console import get_logger
from guidancekit.core.result import Err, LedgerImportError, Ok, Result
from guidancekit.ledger.evaluators import (
    DiffQualityEvaluator,
    Evaluator,
    EvaluatorResult,
    ForbiddenCommandEvaluator,
    ForbiddenDependencyEvaluator,
    TestsPassEvaluator,
    ViolationRateEvaluator,
)
from guidancekit.ledger.events import RunEvent, create_event, new_event_id, now_ms

logger = get_logger(__name__)


@dataclass(frozen=True)
class OptimizationMetrics:
    """Aggregate quality metrics over a set of events."""

    violation_rate: float = 0.0  # violations per 10 tasks
    self_correction_rate: float = 0.0
    rework_lines: float = 0.0  # mean per task
    task_count: int = 0


@dataclass(frozen=True)
class ViolationRanking:
    """Violation statistics for one rule id; derived, never stored."""

    rule_id: str
    frequency: int
    cost: int  # sum of rework lines of the events carrying the violation
    score: int


def validate_events(payload: Iterable[RunEvent | Mapping[str, Any]]) -> Result[list[RunEvent], LedgerImportError]:
    """Validate imported events without touching any ledger."""
    events: list[RunEvent] = []
    for position, item in enumerate(payload):
        if isinstance(item, RunEvent):
            events.append(item)
            continue
        try:
            events.append(RunEvent.model_validate(item))
        except PydanticValidationError as exc:
            return Err(
                LedgerImportError(
                    "Invalid run event in import payload",
                    context={"position": position, "errors": exc.error_count()},
                )
            )
    return Ok(events)


class RunLedger:
    """In-memory, append-only log of run events."""

    def __init__(
        self,
        config: LedgerConfig | None = None,
        evaluators: Sequence[Evaluator] | None = None,
    ) -> None:
        self._config = config or LedgerConfig()
        self._events: list[RunEvent] = []
        if evaluators is None:
            evaluators = [
                TestsPassEvaluator(),
                ForbiddenCommandEvaluator(),
                ForbiddenDependencyEvaluator(self._config.forbidden_packages),
                ViolationRateEvaluator(self._config.max_violations_per_event),
                DiffQualityEvaluator(self._config.max_rework_ratio),
            ]
        self._evaluators: list[Evaluator] = list(evaluators)

    # ------------------------------------------------------------------
    # Appends
    # ------------------------------------------------------------------

    def log_event(self, event: RunEvent) -> RunEvent:
        """Append an event, assigning a fresh id when it has none."""
        if not event.event_id:
            event = event.model_copy(update={"event_id": new_event_id()})
        self._append(event)
        logger.debug(
            "Logged event %s for task %s (%d violations)",
            event.event_id,
            event.task_id,
            len(event.violations),
        )
        return event

    def create_event(self, task_id: str, intent: str = "general", guidance_hash: str = "") -> RunEvent:
        """Build a zero-valued event; it is not logged until finalized."""
        return create_event(task_id, intent, guidance_hash)

    def finalize_event(self, event: RunEvent) -> RunEvent:
        """Stamp elapsed duration since the event's timestamp and log it."""
        duration = max(0, now_ms() - event.timestamp)
        return self.log_event(event.model_copy(update={"duration_ms": duration}))

    def import_events(self, events: Iterable[RunEvent | Mapping[str, Any]]) -> int:
        """Append exported events after validating all of them.

        Raises:
            LedgerImportError: if any payload entry is invalid; nothing is appended.
        """
        validated = validate_events(events).unwrap()
        for event in validated:
            self._append(event)
        logger.debug("Imported %d run events", len(validated))
        return len(validated)

    def _append(self, event: RunEvent) -> None:
        self._events.append(event)
        limit = self._config.max_events
        if limit and len(self._events) > limit:
            dropped = len(self._events) - limit
            del self._events[:dropped]
            logger.debug("Ledger retention dropped %d oldest event(s)", dropped)

    def clear(self) -> None:
        self._events = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def event_count(self) -> int:
        return len(self._events)

    def get_events(self) -> list[RunEvent]:
        return list(self._events)

    def get_events_by_task(self, task_id: str) -> list[RunEvent]:
        return [e for e in self._events if e.task_id == task_id]

    def get_recent_events(self, count: int) -> list[RunEvent]:
        """Last ``count`` events in insertion order."""
        if count <= 0:
            return []
        return self._events[-count:]

    def get_events_in_range(self, start_ms: int, end_ms: int) -> list[RunEvent]:
        """Events whose timestamp lies in ``[start_ms, end_ms]``."""
        return [e for e in self._events if start_ms <= e.timestamp <= end_ms]

    def export_events(self) -> list[dict[str, Any]]:
        """JSON-compatible copies of every event, for caller-side persistence."""
        return [event.model_dump(mode="json") for event in self._events]

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def compute_metrics(self, events: Sequence[RunEvent] | None = None) -> OptimizationMetrics:
        evts = self._events if events is None else events
        if not evts:
            return OptimizationMetrics()

        total_violations = sum(len(e.violations) for e in evts)
        corrected = sum(1 for e in evts for v in e.violations if v.auto_corrected)
        return OptimizationMetrics(
            violation_rate=total_violations / len(evts) * 10,
            self_correction_rate=corrected / total_violations if total_violations else 0.0,
            rework_lines=sum(e.rework_lines for e in evts) / len(evts),
            task_count=len(evts),
        )

    def rank_violations(self, events: Sequence[RunEvent] | None = None) -> list[ViolationRanking]:
        """Rank rule ids by frequency x cost, ties broken by frequency."""
        evts = self._events if events is None else events
        stats: dict[str, list[int]] = {}
        for event in evts:
            for violation in event.violations:
                entry = stats.setdefault(violation.rule_id, [0, 0])
                entry[0] += 1
                entry[1] += event.rework_lines

        rankings = [
            ViolationRanking(rule_id, frequency, cost, frequency * cost)
            for rule_id, (frequency, cost) in stats.items()
        ]
        # sorted() is stable, so equal entries keep first-seen order
        return sorted(rankings, key=lambda r: (r.score, r.frequency), reverse=True)

    # ------------------------------------------------------------------
    # Evaluators
    # ------------------------------------------------------------------

    @property
    def evaluators(self) -> list[Evaluator]:
        return list(self._evaluators)

    def add_evaluator(self, evaluator: Evaluator) -> None:
        self._evaluators.append(evaluator)

    def remove_evaluator(self, name: str) -> None:
        self._evaluators = [e for e in self._evaluators if e.name != name]

    def evaluate(self, event: RunEvent) -> list[EvaluatorResult]:
        return [evaluator.evaluate(event) for evaluator in self._evaluators]


def create_ledger(config: LedgerConfig | None = None) -> RunLedger:
    return RunLedger(config)


__all__ = [
    "OptimizationMetrics",
    "RunLedger",
    "ViolationRanking",
    "create_ledger",
    "validate_events",
]
