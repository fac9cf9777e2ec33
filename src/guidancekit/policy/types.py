"""Types and data structures for compiled guidance policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

RiskClass = Literal["critical", "high", "medium", "low"]
RuleSource = Literal["root", "local", "optimizer"]


@dataclass(frozen=True)
class Rule:
    """A single guidance rule.

    An empty ``tool_classes`` tuple means the rule applies to every tool.
    """

    id: str
    text: str
    risk_class: RiskClass = "medium"
    tool_classes: tuple[str, ...] = ()
    intents: tuple[str, ...] = ("general",)
    verifier: str | None = None
    is_constitution: bool = False
    source: RuleSource = "root"
    section: str = ""


@dataclass(frozen=True)
class Constitution:
    """The protected, always-enforced tier of rules."""

    rules: tuple[Rule, ...]
    text: str
    hash: str


@dataclass(frozen=True)
class Shard:
    """A candidate rule held for trial before promotion."""

    rule: Rule
    compact_text: str


@dataclass(frozen=True)
class ManifestEntry:
    """Inspection record for one compiled rule."""

    id: str
    risk_class: RiskClass
    verifier: str | None
    source: RuleSource
    is_constitution: bool
    triggers: tuple[str, ...]


@dataclass(frozen=True)
class Manifest:
    """Machine-readable summary of a compiled bundle."""

    total_rules: int
    constitution_rules: int
    shard_rules: int
    compiled_at: int
    rules: tuple[ManifestEntry, ...]
    source_hashes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PolicyBundle:
    """Compiled two-tier policy: constitution, shards, and manifest.

    The bundle keeps an index by rule id so lookups and promotions do not
    rescan both tiers.
    """

    constitution: Constitution
    shards: tuple[Shard, ...]
    manifest: Manifest
    _index: dict[str, Rule] = field(init=False, repr=False, compare=False)
    _shard_ids: frozenset[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index = {rule.id: rule for rule in self.constitution.rules}
        for shard in self.shards:
            index[shard.rule.id] = shard.rule
        object.__setattr__(self, "_index", index)
        object.__setattr__(self, "_shard_ids", frozenset(shard.rule.id for shard in self.shards))

    def get_rule(self, rule_id: str) -> Rule | None:
        return self._index.get(rule_id)

    def has_shard(self, rule_id: str) -> bool:
        return rule_id in self._shard_ids

    def all_rules(self) -> list[Rule]:
        """Constitution rules followed by shard rules."""
        return [*self.constitution.rules, *(shard.rule for shard in self.shards)]


__all__ = [
    "Constitution",
    "Manifest",
    "ManifestEntry",
    "PolicyBundle",
    "RiskClass",
    "Rule",
    "RuleSource",
    "Shard",
]
