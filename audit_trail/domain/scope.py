"""
Name: Scope Modes (read visibility over the audit log)

Responsibilities:
  - Define ScopeMode with an explicit restrictiveness order
  - Define the read verbs that can be scoped
  - Expose SCOPE_PRECEDENCE (most restrictive first)

Notes:
  - The probe order is derived from `rank`, never from declaration order,
    so reordering the enum members cannot change resolution.
"""

from __future__ import annotations

from enum import Enum


class ScopeVerb(str, Enum):
    READ = "read"


class ScopeMode(str, Enum):
    NONE = "none"
    OWN = "own"
    LDD = "ldd"
    ANY = "any"

    @property
    def rank(self) -> int:
        """0 = most restrictive."""
        return _RESTRICTIVENESS_RANK[self]

    def is_more_restrictive_than(self, other: "ScopeMode") -> bool:
        return self.rank < other.rank


_RESTRICTIVENESS_RANK: dict[ScopeMode, int] = {
    ScopeMode.NONE: 0,
    ScopeMode.OWN: 1,
    ScopeMode.LDD: 2,
    ScopeMode.ANY: 3,
}

SCOPE_PRECEDENCE: tuple[ScopeMode, ...] = tuple(
    sorted(ScopeMode, key=lambda mode: mode.rank)
)

# Fallback when no mode is granted.
DEFAULT_SCOPE_MODE = ScopeMode.OWN
