"""Pass/fail evaluators over a single run event.

Evaluators are objective checks that the ledger runs against logged
events. Each returns an EvaluatorResult; none of them raise on a
well-formed event.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Protocol, runtime_checkable

from guidancekit.ledger.events import RunEvent


@dataclass(frozen=True)
class EvaluatorResult:
    """Outcome of one evaluator on one event."""

    name: str
    passed: bool
    reason: str | None = None
    score: float | None = None


@runtime_checkable
class Evaluator(Protocol):
    name: str

    def evaluate(self, event: RunEvent) -> EvaluatorResult: ...


class TestsPassEvaluator:
    """Passes when tests ran and none failed."""

    __test__ = False

    name = "tests-pass"

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        results = event.test_results
        if not results.ran:
            return EvaluatorResult(self.name, False, "Tests were not run during this task", 0.0)

        total = results.passed + results.failed + results.skipped
        score = results.passed / total if total else 0.0
        if results.failed == 0:
            return EvaluatorResult(
                self.name,
                True,
                f"All {results.passed} tests passed ({results.skipped} skipped)",
                score,
            )
        return EvaluatorResult(
            self.name, False, f"{results.failed} of {total} tests failed", score
        )


DEFAULT_FORBIDDEN_COMMANDS: tuple[str, ...] = (
    r"\brm\s+-rf\s+/",
    r"\bgit\s+push\s+(?:--force|-f)\b.*\b(?:main|master)\b",
    r"\bgit\s+push\b.*\b(?:main|master)\b.*\s(?:--force|-f)\b",
    r"\bcurl\b[^|]*\|\s*(?:sh|bash)\b",
    r"\beval\s*\(",
    r"\bexec\s*\(",
)


class ForbiddenCommandEvaluator:
    """Fails when any tool-used entry matches a denylist pattern."""

    name = "forbidden-command-scan"

    def __init__(self, patterns: Iterable[str | re.Pattern[str]] | None = None) -> None:
        source = DEFAULT_FORBIDDEN_COMMANDS if patterns is None else patterns
        self._patterns = [re.compile(p) if isinstance(p, str) else p for p in source]

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        hits = [
            f"{pattern.pattern!r} matched {tool!r}"
            for tool in event.tools_used
            for pattern in self._patterns
            if pattern.search(tool)
        ]
        if not hits:
            return EvaluatorResult(self.name, True, "No forbidden commands detected", 1.0)
        return EvaluatorResult(
            self.name,
            False,
            f"Found {len(hits)} forbidden command(s): " + "; ".join(hits),
            0.0,
        )


_DEPENDENCY_MANIFESTS = frozenset(
    {
        "package.json",
        "package-lock.json",
        "pyproject.toml",
        "requirements.txt",
        "setup.cfg",
        "Pipfile",
        "poetry.lock",
        "Cargo.toml",
        "go.mod",
    }
)


class ForbiddenDependencyEvaluator:
    """Fails when a forbidden package shows up alongside a dependency manifest edit.

    The ledger only sees file names and tool invocations, so a package is
    considered introduced when its name appears in a tool invocation of a
    task that also touched a dependency manifest.
    """

    name = "forbidden-dependency-scan"

    def __init__(self, forbidden_packages: Iterable[str] = ()) -> None:
        self._forbidden = frozenset(p.lower() for p in forbidden_packages)

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        if not self._forbidden:
            return EvaluatorResult(self.name, True, "No forbidden dependencies configured", 1.0)

        manifests = [f for f in event.files_touched if PurePosixPath(f).name in _DEPENDENCY_MANIFESTS]
        if not manifests:
            return EvaluatorResult(self.name, True, "No dependency manifests modified", 1.0)

        found = sorted(
            package
            for package in self._forbidden
            if any(re.search(rf"(?<![\w\-]){re.escape(package)}(?![\w\-])", tool.lower())
                   for tool in event.tools_used)
        )
        if found:
            return EvaluatorResult(
                self.name,
                False,
                f"Forbidden package(s) {', '.join(found)} added via {', '.join(manifests)}",
                0.0,
            )
        return EvaluatorResult(
            self.name, True, f"Dependency manifests modified: {', '.join(manifests)}", 1.0
        )


class ViolationRateEvaluator:
    """Fails when an event carries more violations than the threshold."""

    name = "violation-rate"

    def __init__(self, threshold: int = 0) -> None:
        self.threshold = threshold

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        count = len(event.violations)
        passed = count <= self.threshold
        verdict = "within" if passed else "exceeds"
        return EvaluatorResult(
            self.name,
            passed,
            f"{count} violation(s) {verdict} threshold (max: {self.threshold})",
            max(0.0, 1 - count / max(self.threshold + 1, 1)),
        )


class DiffQualityEvaluator:
    """Fails when rework exceeds the allowed share of added lines."""

    name = "diff-quality"

    def __init__(self, max_rework_ratio: float = 0.3) -> None:
        self.max_rework_ratio = max_rework_ratio

    def evaluate(self, event: RunEvent) -> EvaluatorResult:
        ratio = event.rework_lines / max(1, event.diff_summary.lines_added)
        return EvaluatorResult(
            self.name,
            ratio <= self.max_rework_ratio,
            f"Rework ratio {ratio:.2f} ({event.rework_lines}/"
            f"{event.diff_summary.lines_added} lines), threshold {self.max_rework_ratio:.2f}",
            max(0.0, 1 - ratio),
        )


__all__ = [
    "DEFAULT_FORBIDDEN_COMMANDS",
    "DiffQualityEvaluator",
    "Evaluator",
    "EvaluatorResult",
    "ForbiddenCommandEvaluator",
    "ForbiddenDependencyEvaluator",
    "TestsPassEvaluator",
    "ViolationRateEvaluator",
]
