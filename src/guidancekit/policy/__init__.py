"""
Guidance policy compilation.

Turns guidance markdown (a root document plus an optional local override)
into a two-tier PolicyBundle: an always-enforced constitution and a set of
candidate shards awaiting promotion by the optimizer loop.

Bullet annotations understood by the compiler:
- ``[R001]`` leading rule id
- ``(critical)`` / ``(high)`` / ``(medium)`` / ``(low)`` risk class
- ``@security`` intent tags
- ``[bash]`` tool classes
- ``verify:name`` verifier
"""

from guidancekit.policy.bundle import assemble_bundle, build_constitution, stable_digest
from guidancekit.policy.compiler import GuidanceCompiler, create_compiler, merge_rules
from guidancekit.policy.tokenizer import Token, TokenKind, tokenize_bullet
from guidancekit.policy.types import (
    Constitution,
    Manifest,
    ManifestEntry,
    PolicyBundle,
    RiskClass,
    Rule,
    Shard,
)

__all__ = [
    "Constitution",
    "GuidanceCompiler",
    "Manifest",
    "ManifestEntry",
    "PolicyBundle",
    "RiskClass",
    "Rule",
    "Shard",
    "Token",
    "TokenKind",
    "assemble_bundle",
    "build_constitution",
    "create_compiler",
    "merge_rules",
    "stable_digest",
    "tokenize_bullet",
]
