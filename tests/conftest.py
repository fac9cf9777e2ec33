from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from guidancekit.core.config import AppConfig, OptimizerConfig  # noqa: E402
from guidancekit.ledger.events import RunEvent, Violation  # noqa: E402
from guidancekit.ledger.ledger import RunLedger  # noqa: E402
from guidancekit.policy.compiler import GuidanceCompiler  # noqa: E402
from guidancekit.policy.types import PolicyBundle  # noqa: E402

SAMPLE_GUIDANCE = """\
# Project Guidance

## Safety Invariants
- [R001] Never commit hardcoded secrets (critical) @security verify:secrets-scan
- [R002] Always run the test suite before pushing @testing

## Conventions
- [R010] Prefer small focused functions @architecture
- [R011] Avoid N+1 queries in request handlers (high) @performance [sql]
- [R012] Use structured logging for service code [bash]
- You should keep commit messages short
- This bullet is just a note
"""


@pytest.fixture(autouse=True)
def isolate_config(tmp_path: Path, monkeypatch: Any) -> Path:
    """Point config to a temp path so tests don't touch user state."""
    cfg_path = tmp_path / "config.toml"
    monkeypatch.setenv("GUIDANCEKIT_CONFIG", str(cfg_path))
    for key in list(os.environ):
        if key.startswith("GK_"):
            monkeypatch.delenv(key, raising=False)
    return cfg_path


@pytest.fixture
def compiler() -> GuidanceCompiler:
    return GuidanceCompiler()


@pytest.fixture
def bundle(compiler: GuidanceCompiler) -> PolicyBundle:
    return compiler.compile(SAMPLE_GUIDANCE)


@pytest.fixture
def ledger() -> RunLedger:
    return RunLedger()


@pytest.fixture
def eager_config() -> AppConfig:
    """Config whose optimizer runs on small ledgers."""
    return AppConfig(optimizer=OptimizerConfig(min_events_for_optimization=1))


def make_event(
    task_id: str = "task-1",
    *,
    violations: tuple[str, ...] = (),
    rework_lines: int = 0,
    auto_corrected: bool = False,
    **fields: Any,
) -> RunEvent:
    """Build a RunEvent carrying one Violation per rule id."""
    return RunEvent(
        task_id=task_id,
        violations=tuple(
            Violation(rule_id=rule_id, description=f"{rule_id} violated", auto_corrected=auto_corrected)
            for rule_id in violations
        ),
        rework_lines=rework_lines,
        **fields,
    )


@pytest.fixture
def event_factory() -> Any:
    return make_event


@pytest.fixture
def sample_guidance() -> str:
    return SAMPLE_GUIDANCE
