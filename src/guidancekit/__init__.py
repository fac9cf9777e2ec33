"""guidancekit - adaptive guidance governance for AI coding assistants.

This package compiles guidance documents into a two-tier rule policy,
records task telemetry in a run ledger, runs an optimizer loop that
proposes and promotes rule changes, and evaluates enforcement gates
before risky tool invocations.

Exports:
    __version__: Package version string.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
