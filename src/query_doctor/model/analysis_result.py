"""AnalysisResult: the schema-aligned artifact of one analysis call."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from query_doctor import __version__
from query_doctor.model import FindingKind, Severity
from query_doctor.model.finding import Finding


@dataclass(slots=True)
class AnalysisStats:
    queries_analyzed: int = 0
    writes_discarded: int = 0
    distinct_patterns: int = 0
    cache: dict = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "queries_analyzed": self.queries_analyzed,
            "writes_discarded": self.writes_discarded,
            "distinct_patterns": self.distinct_patterns,
            "cache": dict(self.cache),
        }


@dataclass(slots=True)
class AnalysisResult:
    """Assembled analysis result matching ``analysis_result.schema.json``.

    Constructed by ``core.runner`` after every analyzer has run and the
    flat/nested overlap policy has been applied.
    """

    # ── run metadata ────────────────────────────────────────────────
    run_id: str = field(default_factory=lambda: f"run-{uuid.uuid4().hex[:16]}")
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(),
    )
    tool_version: str = __version__
    engine_version: str = "engine_v1"
    config: dict = field(default_factory=dict)

    # ── payload ─────────────────────────────────────────────────────
    stats: AnalysisStats = field(default_factory=AnalysisStats)
    findings: list[Finding] = field(default_factory=list)

    def by_kind(self, kind: FindingKind) -> list[Finding]:
        return [f for f in self.findings if f.kind is kind]

    @property
    def worst_severity(self) -> Severity:
        return Severity.worst(*(f.severity for f in self.findings))

    # ── serialisation ───────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Produce the full AnalysisResult JSON matching the schema."""
        severity_counts = {s.value: 0 for s in Severity}
        kind_counts = {k.value: 0 for k in FindingKind}
        for f in self.findings:
            severity_counts[f.severity.value] += 1
            kind_counts[f.kind.value] += 1

        return {
            "schema_version": "analysis_result_v1",
            "run": {
                "run_id": self.run_id,
                "created_at": self.created_at,
                "tool_version": self.tool_version,
                "engine_version": self.engine_version,
                "config": self.config,
            },
            "summary": {
                "findings_total": len(self.findings),
                "worst_severity": self.worst_severity.value,
                "by_severity": severity_counts,
                "by_kind": kind_counts,
            },
            "stats": self.stats.to_dict(),
            "findings": [f.to_dict() for f in self.findings],
        }
