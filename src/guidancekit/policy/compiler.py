"""Guidance compiler.

Parses a root guidance document and an optional local override document
into a PolicyBundle:

1. A constitution of always-enforced rules (safety/invariant sections and
   critical-risk rules)
2. Shards: candidate rules held for trial until the optimizer promotes them
3. A manifest listing every rule for inspection

Parsing is total. Empty or malformed text yields no rules, never an error.
"""

from __future__ import annotations

import re
import time
from collections.abc import Sequence

from guidancekit.core.config import CompilerConfig
from guidancekit.core.console import get_logger
from guidancekit.policy.bundle import assemble_bundle, stable_digest
from guidancekit.policy.tokenizer import Token, TokenKind, tokenize_bullet
from guidancekit.policy.types import PolicyBundle, RiskClass, Rule, RuleSource

logger = get_logger(__name__)

_HEADING_PATTERN = re.compile(r"^\s{0,3}#{1,6}\s+(?P<title>.*?)\s*#*\s*$")
_BULLET_PATTERN = re.compile(r"^\s*[-*+]\s+(?P<body>.+?)\s*$")

# Headings whose rules are always constitution-tier
_CONSTITUTION_HEADING = re.compile(
    r"^(safety|security|invariant|constitution|critical|non[- ]?negotiable|always"
    r"|must|never|required|mandatory)",
    re.IGNORECASE,
)

_IMPERATIVE_CUE = re.compile(
    r"\b(must|always|never|avoid|should|ensure|require[sd]?|prefer|do not|don't)\b",
    re.IGNORECASE,
)

_INTENT_HINTS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("security", re.compile(r"secur|auth|secret|password|token|credential|vuln|encrypt", re.I)),
    ("testing", re.compile(r"\btest|spec\b|mock|coverage|assert|tdd", re.I)),
    ("performance", re.compile(r"perf|optimi|\bfast|\bslow|cache|latency|speed", re.I)),
    ("architecture", re.compile(r"architect|design|pattern|structure|boundar|interface", re.I)),
)


def is_constitution_heading(title: str) -> bool:
    return bool(_CONSTITUTION_HEADING.match(title.strip()))


def is_actionable(text: str) -> bool:
    """Return True when bullet text reads as an instruction."""
    return bool(_IMPERATIVE_CUE.search(text))


def infer_intents(text: str) -> tuple[str, ...]:
    intents = tuple(name for name, pattern in _INTENT_HINTS if pattern.search(text))
    return intents or ("general",)


class GuidanceCompiler:
    """Compile guidance markdown into a two-tier policy bundle."""

    def __init__(self, config: CompilerConfig | None = None) -> None:
        self._config = config or CompilerConfig()
        self._next_auto_id = 1

    @property
    def config(self) -> CompilerConfig:
        return self._config

    def compile(self, root_text: str, local_text: str | None = None) -> PolicyBundle:
        """Compile root guidance, with local rules overriding root rules by id."""
        self._next_auto_id = 1
        root_rules = self._parse(root_text, "root")
        local_rules = self._parse(local_text, "local") if local_text else []
        merged = merge_rules(root_rules, local_rules)

        source_hashes = {"root": stable_digest(root_text or "")}
        if local_text:
            source_hashes["local"] = stable_digest(local_text)

        bundle = assemble_bundle(
            [rule for rule in merged if rule.is_constitution],
            [rule for rule in merged if not rule.is_constitution],
            compiled_at=int(time.time() * 1000),
            source_hashes=source_hashes,
            max_constitution_lines=self._config.max_constitution_lines,
        )
        logger.debug(
            "Compiled %d rules (%d constitution, %d shards), hash=%s",
            bundle.manifest.total_rules,
            bundle.manifest.constitution_rules,
            bundle.manifest.shard_rules,
            bundle.constitution.hash,
        )
        return bundle

    def parse_guidance_file(self, text: str, source: RuleSource) -> list[Rule]:
        """Parse one guidance document into rules, in document order."""
        self._next_auto_id = 1
        return self._parse(text, source)

    def _parse(self, text: str | None, source: RuleSource) -> list[Rule]:
        if not text:
            return []

        rules: list[Rule] = []
        section = ""
        in_constitution = False

        for line in text.splitlines():
            heading = _HEADING_PATTERN.match(line)
            if heading:
                section = heading.group("title")
                in_constitution = is_constitution_heading(section)
                continue

            bullet = _BULLET_PATTERN.match(line)
            if not bullet:
                continue

            rule = self._fold(tokenize_bullet(bullet.group("body")), source, section, in_constitution)
            if rule is not None:
                rules.append(rule)

        return rules

    def _fold(
        self,
        tokens: Sequence[Token],
        source: RuleSource,
        section: str,
        in_constitution: bool,
    ) -> Rule | None:
        """Fold a token stream into a Rule, or None for non-actionable bullets."""
        rule_id: str | None = None
        risk: RiskClass = self._config.default_risk_class
        intents: list[str] = []
        tools: list[str] = []
        verifier: str | None = None
        words: list[str] = []

        for token in tokens:
            if token.kind is TokenKind.ID:
                rule_id = token.value
            elif token.kind is TokenKind.RISK:
                risk = token.value  # type: ignore[assignment]
            elif token.kind is TokenKind.INTENT:
                if token.value not in intents:
                    intents.append(token.value)
            elif token.kind is TokenKind.TOOL:
                if token.value not in tools:
                    tools.append(token.value)
            elif token.kind is TokenKind.VERIFIER:
                verifier = token.value
            else:
                words.append(token.value)

        text = " ".join(words)
        if not text:
            return None

        if rule_id is None:
            if not self._config.auto_generate_ids or not is_actionable(text):
                return None
            rule_id = f"AUTO-{self._next_auto_id:03d}"
            self._next_auto_id += 1

        return Rule(
            id=rule_id,
            text=text,
            risk_class=risk,
            tool_classes=tuple(tools),
            intents=tuple(intents) or infer_intents(text),
            verifier=verifier,
            is_constitution=in_constitution or risk == "critical",
            source=source,
            section=section,
        )


def merge_rules(root_rules: Sequence[Rule], local_rules: Sequence[Rule]) -> list[Rule]:
    """Merge rule lists; a local rule replaces the root rule with the same id.

    Root order is kept, with overrides in place, followed by local-only rules.
    """
    merged: dict[str, Rule] = {}
    for rule in root_rules:
        merged[rule.id] = rule
    for rule in local_rules:
        if rule.id in merged:
            logger.debug("Local rule %s overrides root definition", rule.id)
        merged[rule.id] = rule
    return list(merged.values())


def create_compiler(config: CompilerConfig | None = None) -> GuidanceCompiler:
    return GuidanceCompiler(config)


__all__ = [
    "GuidanceCompiler",
    "create_compiler",
    "infer_intents",
    "is_actionable",
    "is_constitution_heading",
    "merge_rules",
]
