"""Finding: the normalized engine output for a single detected pattern."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Optional

from . import FindingKind, OccurrenceType, Severity
from .query import BacktraceFrame, QueryRecord


@dataclass(frozen=True, slots=True)
class GroupSummary:
    """Bounded view of one pattern group: aggregates only, never the records."""

    pattern: str
    count: int
    total_time_ms: float
    occurrence_type: OccurrenceType = OccurrenceType.UNKNOWN
    partial_access: bool = False
    table: Optional[str] = None
    column: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern,
            "count": self.count,
            "total_time_ms": self.total_time_ms,
            "occurrence_type": self.occurrence_type.value,
            "partial_access": self.partial_access,
            "table": self.table,
            "column": self.column,
        }


@dataclass(frozen=True, slots=True)
class Finding:
    """Immutable, schema-aligned engine finding.

    Corresponds to ``findings[]`` in ``analysis_result.schema.json``.
    Exactly one example record is carried whatever the size of the group.
    """

    finding_id: str
    kind: FindingKind
    severity: Severity
    title: str
    description: str
    groups: tuple[GroupSummary, ...]
    example: QueryRecord
    fingerprint: str
    backtrace: Optional[tuple[BacktraceFrame, ...]] = None
    suggestion_context: dict = field(default_factory=dict)

    @property
    def query_count(self) -> int:
        return sum(g.count for g in self.groups)

    @property
    def total_time_ms(self) -> float:
        return sum(g.total_time_ms for g in self.groups)

    # ── serialisation ───────────────────────────────────────────────

    def to_dict(self) -> dict:
        d: dict = {
            "finding_id": self.finding_id,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "level": self.severity.level,
            "title": self.title,
            "description": self.description,
            "groups": [g.to_dict() for g in self.groups],
            "example": self.example.to_dict(),
            "fingerprint": self.fingerprint,
            "suggestion_context": dict(self.suggestion_context),
        }
        if self.backtrace:
            d["backtrace"] = [frame.to_dict() for frame in self.backtrace]
        return d


def make_fingerprint(kind: FindingKind, *parts: str) -> str:
    """Deterministic finding fingerprint: sha256(kind|part|part|...)."""
    payload = "|".join([kind.value, *(p.strip() for p in parts)])
    return "sha256:" + hashlib.sha256(payload.encode()).hexdigest()
