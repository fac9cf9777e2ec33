"""Tokenizer for guidance bullet lines.

Each bullet body is scanned once, left to right, into a stream of tagged
tokens. The compiler folds that stream into a Rule, so every annotation
kind is recognized in exactly one place.

Token kinds:
    ID        leading ``[R001]`` / ``[SEC-001]``
    RISK      ``(critical)``, ``(high-risk)``
    INTENT    ``@security``
    TOOL      any other bracketed token, e.g. ``[bash]``
    VERIFIER  ``verify:secrets-scan``
    WORD      everything else; joined to form the rule text
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum


class TokenKind(StrEnum):
    ID = "id"
    RISK = "risk"
    INTENT = "intent"
    TOOL = "tool"
    VERIFIER = "verifier"
    WORD = "word"


@dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: str


RULE_ID_PATTERN = re.compile(r"^[A-Z]+-?\d{3,4}$")

_TOKEN_PATTERN = re.compile(
    r"""(?x)
    (?P<verifier>verify:[\w\-]+)
    |(?P<risk>\((?:critical|high|medium|low)(?:-risk)?\))
    |(?P<intent>@[A-Za-z][\w\-]*)
    |(?P<bracket>\[[^\[\]\s]+\])
    |(?P<word>\S+)
    """,
    re.IGNORECASE,
)


def tokenize_bullet(body: str) -> list[Token]:
    """Split a bullet body into tagged tokens.

    Only a bracketed token in first position that looks like a rule id is
    an ID; later bracketed tokens are tool classes.
    """
    tokens: list[Token] = []
    for match in _TOKEN_PATTERN.finditer(body):
        kind = match.lastgroup
        raw = match.group()
        if kind == "verifier":
            tokens.append(Token(TokenKind.VERIFIER, raw.split(":", 1)[1]))
        elif kind == "risk":
            value = raw.strip("()").lower().removesuffix("-risk")
            tokens.append(Token(TokenKind.RISK, value))
        elif kind == "intent":
            tokens.append(Token(TokenKind.INTENT, raw[1:].lower()))
        elif kind == "bracket":
            inner = raw[1:-1]
            if not tokens and RULE_ID_PATTERN.match(inner):
                tokens.append(Token(TokenKind.ID, inner))
            else:
                tokens.append(Token(TokenKind.TOOL, inner.lower()))
        else:
            tokens.append(Token(TokenKind.WORD, raw))
    return tokens


__all__ = ["RULE_ID_PATTERN", "Token", "TokenKind", "tokenize_bullet"]
