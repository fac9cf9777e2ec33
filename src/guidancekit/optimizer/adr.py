"""Markdown rendering of rule-change ADRs for documentation tooling."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from guidancekit.optimizer.types import RuleADR


def render_adr(adr: RuleADR) -> str:
    """Render one ADR as a markdown document."""
    change = adr.change
    evaluation = adr.evaluation
    date = datetime.fromtimestamp(adr.created_at / 1000, UTC).strftime("%Y-%m-%d")

    lines = [
        f"# ADR-{adr.number:03d}: {adr.title}",
        "",
        f"- **Date:** {date}",
        f"- **Decision:** {adr.decision}",
        f"- **Change:** `{change.change_type}` on `{change.target_rule_id}`",
        "",
        "## Context",
        "",
        adr.rationale,
        "",
    ]
    if change.original_text:
        lines.extend(["## Original rule", "", f"> {change.original_text}", ""])
    lines.extend(
        [
            "## Proposed rule",
            "",
            f"> {change.proposed_text}",
            "",
            "## Evaluation",
            "",
            "| Metric | Baseline | Candidate |",
            "|---|---|---|",
            f"| Violations / 10 tasks | {evaluation.baseline.violation_rate:.2f} | "
            f"{evaluation.candidate.violation_rate:.2f} |",
            f"| Self-correction rate | {evaluation.baseline.self_correction_rate:.2f} | "
            f"{evaluation.candidate.self_correction_rate:.2f} |",
            f"| Mean rework lines | {evaluation.baseline.rework_lines:.1f} | "
            f"{evaluation.candidate.rework_lines:.1f} |",
            "",
            evaluation.reason,
            "",
            "## Consequences",
            "",
            adr.consequences,
        ]
    )
    return "\n".join(lines)


def render_adr_log(adrs: Sequence[RuleADR]) -> str:
    """Render ADR history as a single markdown index followed by every record."""
    if not adrs:
        return ""

    lines = ["# Rule Decision Log", ""]
    for adr in adrs:
        lines.append(f"- ADR-{adr.number:03d} {adr.title} ({adr.decision})")
    for adr in adrs:
        lines.extend(["", "---", "", render_adr(adr)])
    return "\n".join(lines)


__all__ = ["render_adr", "render_adr_log"]
