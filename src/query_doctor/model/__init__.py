"""Enums shared across the engine and reporting layers."""

from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    """Finding severity, ordered INFO < LOW < MEDIUM < CRITICAL.

    LOW and MEDIUM are the two "warning" grades; ``level`` collapses them for
    the reporting side.
    """

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    @property
    def level(self) -> str:
        """User-facing tier: ``info``, ``warning`` or ``critical``."""
        if self in (Severity.LOW, Severity.MEDIUM):
            return "warning"
        return self.value

    def escalate(self, steps: int = 1) -> "Severity":
        """Move *steps* grades up the ladder, capped at CRITICAL."""
        idx = min(self.rank + max(steps, 0), len(_SEVERITY_ORDER) - 1)
        return _SEVERITY_ORDER[idx]

    @classmethod
    def worst(cls, *severities: "Severity") -> "Severity":
        return max(severities, key=lambda s: s.rank, default=cls.INFO)


_SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.INFO,
    Severity.LOW,
    Severity.MEDIUM,
    Severity.CRITICAL,
)


class OccurrenceType(str, Enum):
    """Probable cause of a repeated query."""

    PROXY = "proxy"            # single related object loaded by its id
    COLLECTION = "collection"  # to-many association keyed by parent id
    UNKNOWN = "unknown"


class FindingKind(str, Enum):
    """Canonical finding identifiers."""

    FLAT_N_PLUS_ONE = "n_plus_one"
    NESTED_N_PLUS_ONE = "nested_n_plus_one"
