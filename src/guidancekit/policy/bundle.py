"""Builders for constitutions, shards, and manifests.

Shared by the compiler and by the optimizer, which rebuilds the
constitution whenever it promotes shards.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable, Sequence

from guidancekit.policy.types import (
    Constitution,
    Manifest,
    ManifestEntry,
    PolicyBundle,
    Rule,
    Shard,
)


def stable_digest(content: str) -> str:
    """Return the first 16 hex chars of the SHA-256 of ``content``.

    Used as a content fingerprint, not for security. Identical input always
    yields identical output across processes and platforms.
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]


def constitution_hash(rules: Iterable[Rule]) -> str:
    return stable_digest("\n".join(rule.text for rule in rules))


def render_constitution_text(rules: Sequence[Rule], max_lines: int = 60) -> str:
    """Render the compact markdown form injected into every task."""
    lines = ["# Constitution - Always Active Rules", ""]
    current_group = ""
    for rule in rules:
        group = rule.intents[0] if rule.intents else "general"
        if group != current_group:
            current_group = group
            lines.append(f"## {group.capitalize()}")
        lines.append(f"- [{rule.id}] {rule.text}")
    return "\n".join(lines[:max_lines])


def build_constitution(rules: Sequence[Rule], max_lines: int = 60) -> Constitution:
    ordered = tuple(rules)
    return Constitution(
        rules=ordered,
        text=render_constitution_text(ordered, max_lines),
        hash=constitution_hash(ordered),
    )


def compact_shard_text(rule: Rule) -> str:
    tags = [rule.risk_class, *rule.intents, *rule.tool_classes]
    return f"[{rule.id}] {rule.text} " + " ".join(f"@{tag}" for tag in tags)


def build_shard(rule: Rule) -> Shard:
    return Shard(rule=rule, compact_text=compact_shard_text(rule))


def build_manifest(
    rules: Sequence[Rule],
    compiled_at: int,
    source_hashes: dict[str, str] | None = None,
) -> Manifest:
    entries = tuple(
        ManifestEntry(
            id=rule.id,
            risk_class=rule.risk_class,
            verifier=rule.verifier,
            source=rule.source,
            is_constitution=rule.is_constitution,
            triggers=(*rule.intents, *rule.tool_classes),
        )
        for rule in rules
    )
    constitution_count = sum(1 for rule in rules if rule.is_constitution)
    return Manifest(
        total_rules=len(entries),
        constitution_rules=constitution_count,
        shard_rules=len(entries) - constitution_count,
        compiled_at=compiled_at,
        rules=entries,
        source_hashes=dict(source_hashes or {}),
    )


def assemble_bundle(
    constitution_rules: Sequence[Rule],
    shard_rules: Sequence[Rule],
    *,
    compiled_at: int,
    source_hashes: dict[str, str] | None = None,
    max_constitution_lines: int = 60,
) -> PolicyBundle:
    """Build a complete bundle from the two rule tiers."""
    constitution = build_constitution(constitution_rules, max_constitution_lines)
    shards = tuple(build_shard(rule) for rule in shard_rules)
    manifest = build_manifest(
        [*constitution_rules, *shard_rules], compiled_at, source_hashes
    )
    return PolicyBundle(constitution=constitution, shards=shards, manifest=manifest)


__all__ = [
    "assemble_bundle",
    "build_constitution",
    "build_manifest",
    "build_shard",
    "compact_shard_text",
    "constitution_hash",
    "render_constitution_text",
    "stable_digest",
]
