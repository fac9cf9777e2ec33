"""
Result types and error hierarchy for guidancekit.

This module provides:
1. Result[T, E] type for explicit error handling at validation seams
2. Domain-specific exception hierarchy
3. Helper functions for Result operations

Usage:
    from guidancekit.core.result import Ok, Err, Result, GuidanceError

    def parse(payload) -> Result[list[RunEvent], LedgerImportError]:
        if not isinstance(payload, list):
            return Err(LedgerImportError("payload must be a list"))
        return Ok(events)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Represents a successful result containing a value."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Return the contained value."""
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return the contained value (ignores default for Ok)."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply a function to the contained value."""
        return Ok(fn(self.value))


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Represents a failed result containing an error."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the contained error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        """Return the default value."""
        return default

    def map(self, fn: Callable[[T], U]) -> Err[E]:
        """No-op for Err - returns self unchanged."""
        return self


# Type alias for Result
Result = Ok[T] | Err[E]


# ---------------------------------------------------------------------------
# Domain-specific error hierarchy
# ---------------------------------------------------------------------------


class GuidanceError(Exception):
    """Base exception for all guidancekit errors.

    All custom exceptions should inherit from this class to enable
    consistent error handling by the embedding harness.
    """

    def __init__(self, message: str, *, context: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class ConfigurationError(GuidanceError):
    """Raised for configuration issues.

    Examples:
    - Gate rule catalog missing or unparseable
    - Invalid regex in a configured pattern
    """

    pass


class ValidationError(GuidanceError):
    """Raised for input validation failures."""

    pass


class LedgerImportError(ValidationError):
    """Raised when imported run events fail validation.

    Nothing is appended to the ledger when this is raised.
    """

    pass


class PolicyNotLoadedError(GuidanceError):
    """Raised when an operation needs a compiled policy bundle before one exists."""

    pass


__all__ = [
    # Result types
    "Ok",
    "Err",
    "Result",
    # Error hierarchy
    "GuidanceError",
    "ConfigurationError",
    "ValidationError",
    "LedgerImportError",
    "PolicyNotLoadedError",
]
