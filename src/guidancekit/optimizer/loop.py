"""
Optimizer loop.

Edits guidance the way code is edited:
1. Rank violations from the run ledger by frequency x rework cost
2. Propose one rule change for each of the top N
3. Evaluate each change against baseline ledger metrics
4. Record an ADR for every evaluated change, win or not
5. Count wins per rule; a shard that wins enough cycles is promoted
   into the constitution

The evaluation step is a heuristic: candidate metrics are recomputed from
the same ledger with the target rule's violations projected away. It is
not a controlled experiment and should be read as directional guidance.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import replace

from guidancekit.core.config import OptimizerConfig
from guidancekit.core.console import get_logger
from guidancekit.ledger.events import now_ms
from guidancekit.ledger.ledger import OptimizationMetrics, RunLedger, ViolationRanking
from guidancekit.optimizer.tracker import PromotionTracker
from guidancekit.optimizer.types import ChangeEvaluation, CycleResult, RuleADR, RuleChange
from guidancekit.policy.bundle import assemble_bundle
from guidancekit.policy.compiler import infer_intents
from guidancekit.policy.types import PolicyBundle, Rule

logger = get_logger(__name__)

_FREQUENT_VIOLATION = 5
_COSTLY_VIOLATION = 50


class OptimizerLoop:
    """Closed-loop rule optimizer over a run ledger and a policy bundle."""

    def __init__(
        self,
        config: OptimizerConfig | None = None,
        *,
        max_constitution_lines: int = 60,
    ) -> None:
        self._config = config or OptimizerConfig()
        self._max_constitution_lines = max_constitution_lines
        self._tracker = PromotionTracker(self._config.promotion_wins)
        self._proposed: list[RuleChange] = []
        self._evaluations: list[ChangeEvaluation] = []
        self._adrs: list[RuleADR] = []
        self._last_run: int | None = None

    @property
    def config(self) -> OptimizerConfig:
        return self._config

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def run_cycle(self, ledger: RunLedger, bundle: PolicyBundle) -> CycleResult:
        """Run one optimization cycle. Sparse ledgers produce an empty result."""
        self._last_run = now_ms()

        if ledger.event_count < self._config.min_events_for_optimization:
            logger.info(
                "Skipping optimization: %d events < minimum %d",
                ledger.event_count,
                self._config.min_events_for_optimization,
            )
            return CycleResult()

        rankings = ledger.rank_violations()
        if not rankings:
            logger.info("Skipping optimization: no violations recorded")
            return CycleResult()

        top = rankings[: self._config.top_violations_per_cycle]
        changes = self.propose_changes(top, bundle)
        self._proposed.extend(changes)

        baseline = ledger.compute_metrics()
        evaluations: list[ChangeEvaluation] = []
        adrs: list[RuleADR] = []
        promoted: list[str] = []

        for change in changes:
            evaluation = self.evaluate_change(change, baseline, ledger)
            evaluations.append(evaluation)
            self._evaluations.append(evaluation)

            rule_id = change.target_rule_id
            if evaluation.should_promote:
                self._tracker.record_win(rule_id)
                if self._tracker.is_eligible(rule_id) and bundle.has_shard(rule_id):
                    promoted.append(rule_id)
            else:
                self._tracker.reset(rule_id)

            adrs.append(self._record_adr(evaluation, bundle))

        logger.info(
            "Optimization cycle: %d ranked, %d changes, %d promoted",
            len(rankings),
            len(changes),
            len(promoted),
        )
        return CycleResult(
            rankings=rankings,
            changes=changes,
            evaluations=evaluations,
            adrs=adrs,
            promoted=promoted,
        )

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def propose_changes(
        self, rankings: Sequence[ViolationRanking], bundle: PolicyBundle
    ) -> list[RuleChange]:
        changes: list[RuleChange] = []
        for ranking in rankings:
            rule = bundle.get_rule(ranking.rule_id)
            if rule is None:
                changes.append(self._propose_new_rule(ranking))
            else:
                changes.append(self._propose_modification(rule, ranking, bundle))
        return changes

    def _propose_modification(
        self, rule: Rule, ranking: ViolationRanking, bundle: PolicyBundle
    ) -> RuleChange:
        base = rule.text.rstrip(". ")
        if ranking.frequency > _FREQUENT_VIOLATION:
            proposed = f"{base}. This rule requires automated enforcement via gates."
        elif ranking.cost > _COSTLY_VIOLATION:
            proposed = (
                f"[HIGH PRIORITY] {base}. Violations of this rule are costly "
                f"({ranking.cost} rework lines)."
            )
        else:
            proposed = f"{base}. Reinforced after {ranking.frequency} recorded violation(s)."

        change_type = "modify"
        if (
            bundle.has_shard(rule.id)
            and self._tracker.wins(rule.id) >= self._config.promotion_wins - 1
        ):
            change_type = "promote"

        return RuleChange(
            change_id=uuid.uuid4().hex,
            target_rule_id=rule.id,
            change_type=change_type,
            original_text=rule.text,
            proposed_text=proposed,
            rationale=(
                f"Violated {ranking.frequency} times costing {ranking.cost} rework lines "
                f"(score: {ranking.score})"
            ),
            triggering_violation=ranking,
        )

    def _propose_new_rule(self, ranking: ViolationRanking) -> RuleChange:
        return RuleChange(
            change_id=uuid.uuid4().hex,
            target_rule_id=ranking.rule_id,
            change_type="add",
            proposed_text=(
                f"Ensure compliance for violations recorded as {ranking.rule_id} "
                f"({ranking.frequency} occurrences, {ranking.cost} rework lines)."
            ),
            rationale=(
                f"No existing rule covers violations recorded as {ranking.rule_id}; "
                f"{ranking.frequency} occurrences detected."
            ),
            triggering_violation=ranking,
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate_change(
        self,
        change: RuleChange,
        baseline: OptimizationMetrics,
        ledger: RunLedger,
    ) -> ChangeEvaluation:
        """Compare baseline metrics with a projection that drops the target's violations.

        The promotion verdict is a repeat-offense heuristic: a rule whose
        violations keep recurring more than the configured threshold is
        judged worth strengthening.
        """
        target = change.target_rule_id
        projected = [
            event.model_copy(
                update={"violations": tuple(v for v in event.violations if v.rule_id != target)}
            )
            if any(v.rule_id == target for v in event.violations)
            else event
            for event in ledger.get_events()
        ]
        candidate = ledger.compute_metrics(projected)

        frequency = change.triggering_violation.frequency
        threshold = self._config.repeat_offense_threshold
        should_promote = frequency > threshold
        if should_promote:
            reason = (
                f"{target} violated {frequency} times (> {threshold}); projected violation rate "
                f"{baseline.violation_rate:.2f} -> {candidate.violation_rate:.2f} per 10 tasks"
            )
        else:
            reason = (
                f"{target} violated {frequency} times (<= {threshold}); "
                "not enough repeat offenses to justify the change"
            )

        return ChangeEvaluation(
            change=change,
            baseline=baseline,
            candidate=candidate,
            should_promote=should_promote,
            reason=reason,
        )

    def _record_adr(self, evaluation: ChangeEvaluation, bundle: PolicyBundle) -> RuleADR:
        change = evaluation.change
        rule_id = change.target_rule_id
        wins = self._tracker.wins(rule_id)

        if evaluation.should_promote:
            consequences = (
                f"{rule_id} records a winning cycle ({wins}/{self._tracker.threshold}). "
                f"Projected violation rate {evaluation.baseline.violation_rate:.2f} -> "
                f"{evaluation.candidate.violation_rate:.2f} per 10 tasks."
            )
            if self._tracker.is_eligible(rule_id) and bundle.has_shard(rule_id):
                consequences += f" {rule_id} is eligible for promotion to the constitution."
        else:
            consequences = f"{rule_id} keeps its current text and tier; wins remain at {wins}."

        adr = RuleADR(
            number=len(self._adrs) + 1,
            title=f"{change.change_type.capitalize()} rule {rule_id}",
            rationale=change.rationale,
            decision="promote" if evaluation.should_promote else "reject",
            consequences=consequences,
            change=change,
            evaluation=evaluation,
            created_at=now_ms(),
        )
        self._adrs.append(adr)
        return adr

    # ------------------------------------------------------------------
    # Bundle updates
    # ------------------------------------------------------------------

    def apply_promotions(
        self,
        bundle: PolicyBundle,
        rule_ids: Iterable[str],
        changes: Sequence[RuleChange] = (),
    ) -> PolicyBundle:
        """Move the named shards into the constitution.

        A matching ``modify``/``promote`` change supplies the promoted text.
        Ids that are not shards are ignored, so reapplying is a no-op.
        """
        texts = {
            c.target_rule_id: c.proposed_text
            for c in changes
            if c.change_type in ("modify", "promote")
        }
        promote_ids = {rule_id for rule_id in rule_ids if bundle.has_shard(rule_id)}
        if not promote_ids:
            return bundle

        promoted_rules: list[Rule] = []
        remaining: list[Rule] = []
        for shard in bundle.shards:
            rule = shard.rule
            if rule.id in promote_ids:
                promoted_rules.append(
                    replace(rule, is_constitution=True, text=texts.get(rule.id, rule.text))
                )
            else:
                remaining.append(rule)

        logger.info("Promoted %s to the constitution", ", ".join(r.id for r in promoted_rules))
        return self._rebuild(bundle, [*bundle.constitution.rules, *promoted_rules], remaining)

    def apply_additions(self, bundle: PolicyBundle, changes: Sequence[RuleChange]) -> PolicyBundle:
        """Add ``add`` changes as optimizer-sourced shards; known ids are skipped."""
        added: list[Rule] = []
        seen: set[str] = set()
        for change in changes:
            rule_id = change.target_rule_id
            if change.change_type != "add" or bundle.get_rule(rule_id) is not None or rule_id in seen:
                continue
            seen.add(rule_id)
            added.append(
                Rule(
                    id=rule_id,
                    text=change.proposed_text,
                    intents=infer_intents(change.proposed_text),
                    source="optimizer",
                    section="optimizer",
                )
            )
        if not added:
            return bundle
        shard_rules = [shard.rule for shard in bundle.shards]
        return self._rebuild(bundle, list(bundle.constitution.rules), [*shard_rules, *added])

    def _rebuild(
        self, bundle: PolicyBundle, constitution_rules: list[Rule], shard_rules: list[Rule]
    ) -> PolicyBundle:
        return assemble_bundle(
            constitution_rules,
            shard_rules,
            compiled_at=bundle.manifest.compiled_at,
            source_hashes=bundle.manifest.source_hashes,
            max_constitution_lines=self._max_constitution_lines,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    @property
    def last_run(self) -> int | None:
        return self._last_run

    @property
    def adrs(self) -> list[RuleADR]:
        return list(self._adrs)

    @property
    def proposed_changes(self) -> list[RuleChange]:
        return list(self._proposed)

    @property
    def evaluations(self) -> list[ChangeEvaluation]:
        return list(self._evaluations)

    @property
    def promotion_tracker(self) -> dict[str, int]:
        return self._tracker.snapshot()


def create_optimizer(config: OptimizerConfig | None = None) -> OptimizerLoop:
    return OptimizerLoop(config)


__all__ = ["OptimizerLoop", "create_optimizer"]
