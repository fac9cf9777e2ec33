"""Run event models recorded by the ledger.

Events are frozen pydantic models. Every field carries a default, so a
partial payload from the task harness validates instead of being rejected.
"""

from __future__ import annotations

import time
import uuid

from pydantic import BaseModel, ConfigDict, Field

from guidancekit.policy.types import RiskClass


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_event_id() -> str:
    return uuid.uuid4().hex


class Violation(BaseModel):
    """A recorded instance of a rule not being followed during a task."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    rule_id: str
    description: str = ""
    severity: RiskClass = "medium"
    auto_corrected: bool = False
    location: str | None = None


class DiffSummary(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    lines_added: int = Field(default=0, ge=0)
    lines_removed: int = Field(default=0, ge=0)
    files_changed: int = Field(default=0, ge=0)


class TestResults(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Keep pytest from collecting this model as a test class.
    __test__ = False

    ran: bool = False
    passed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)


class RunEvent(BaseModel):
    """Telemetry for one completed task."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event_id: str = ""
    task_id: str = ""
    guidance_hash: str = ""
    retrieved_rule_ids: tuple[str, ...] = ()
    tools_used: tuple[str, ...] = ()
    files_touched: tuple[str, ...] = ()
    diff_summary: DiffSummary = Field(default_factory=DiffSummary)
    test_results: TestResults = Field(default_factory=TestResults)
    violations: tuple[Violation, ...] = ()
    outcome_accepted: bool | None = None
    rework_lines: int = Field(default=0, ge=0)
    intent: str = "general"
    timestamp: int = Field(default_factory=now_ms)
    duration_ms: int = Field(default=0, ge=0)
    session_id: str | None = None


def create_event(task_id: str, intent: str = "general", guidance_hash: str = "") -> RunEvent:
    """Build a zero-valued event stamped with a fresh id and the current time."""
    return RunEvent(
        event_id=new_event_id(),
        task_id=task_id,
        guidance_hash=guidance_hash,
        intent=intent,
    )


__all__ = [
    "DiffSummary",
    "RunEvent",
    "TestResults",
    "Violation",
    "create_event",
    "new_event_id",
    "now_ms",
]
