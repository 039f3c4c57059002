"""Finding emission: one bounded Finding per qualifying group or chain."""

from __future__ import annotations

from typing import Optional, Sequence

from query_doctor.engine.chains import Chain, score_chain
from query_doctor.engine.classifier import ClassifiedGroup
from query_doctor.engine.severity import SeverityScorer
from query_doctor.model import FindingKind, OccurrenceType
from query_doctor.model.finding import Finding, make_fingerprint
from query_doctor.model.query import BacktraceFrame
from query_doctor.utils.naming import column_to_relation, table_to_entity

DEFAULT_VENDOR_MARKERS: tuple[str, ...] = ("/vendor/", "site-packages")

# scaling warning: many queries that look cheap on a development database
_SCALING_COUNT = 10
_SCALING_TIME_MS = 100.0

_TYPE_LABELS = {
    OccurrenceType.PROXY: "Proxy N+1 (to-one association)",
    OccurrenceType.COLLECTION: "Collection N+1 (to-many association)",
    OccurrenceType.UNKNOWN: "N+1 Query",
}

_PROXY_NOTE = (
    "Proxy initialization in loop detected - consider batch fetching or "
    "joining the association in the parent query."
)
_PARTIAL_NOTE = (
    "Partial collection access detected (LIMIT in query) - an extra-lazy "
    "collection would avoid loading it per parent."
)
_SCALING_NOTE = (
    "Low execution time in development may increase significantly in "
    "production with more data due to database contention, locks, and "
    "network latency."
)
_VENDOR_NOTE = (
    "Triggered by vendor code - may require configuration change or eager "
    "loading in your queries."
)


class FindingEmitter:
    """Turns classified groups and chains into ``Finding`` records.

    Exactly one representative record is attached per Finding; the
    backtrace is the one recorded with that same record.
    """

    def __init__(
        self,
        scorer: SeverityScorer | None = None,
        *,
        vendor_markers: Sequence[str] = DEFAULT_VENDOR_MARKERS,
        foreign_key_suffixes: Sequence[str] = ("_id",),
    ):
        self.scorer = scorer or SeverityScorer()
        self.vendor_markers = tuple(vendor_markers)
        self.foreign_key_suffixes = tuple(foreign_key_suffixes)

    # ── flat ────────────────────────────────────────────────────────

    def emit_group(self, classified: ClassifiedGroup) -> Finding:
        group = classified.group
        c = classified.classification
        count = group.count
        total = group.total_time_ms
        backtrace = group.representative_backtrace

        return Finding(
            finding_id="",
            kind=FindingKind.FLAT_N_PLUS_ONE,
            severity=self.scorer.score(count, total, c.occurrence_type),
            title=f"N+1 Query Detected: {count} queries ({c.occurrence_type.value})",
            description=self._describe_group(classified, backtrace),
            groups=(classified.summary(),),
            example=group.representative,
            fingerprint=make_fingerprint(
                FindingKind.FLAT_N_PLUS_ONE,
                group.pattern,
                c.table or "",
                c.column or "",
            ),
            backtrace=backtrace,
            suggestion_context=self._group_context(classified),
        )

    def _describe_group(
        self,
        classified: ClassifiedGroup,
        backtrace: Optional[tuple[BacktraceFrame, ...]],
    ) -> str:
        c = classified.classification
        label = _TYPE_LABELS[c.occurrence_type]
        if c.occurrence_type is OccurrenceType.COLLECTION and c.partial_access:
            label = "Collection N+1 with partial access"

        lines = [
            f"{label}: Found {classified.count} similar queries with total "
            f"execution time of {classified.total_time_ms:.2f}ms. "
            f"Pattern: {classified.pattern}"
        ]
        if c.occurrence_type is OccurrenceType.PROXY:
            lines.append(_PROXY_NOTE)
        elif c.occurrence_type is OccurrenceType.COLLECTION and c.partial_access:
            lines.append(_PARTIAL_NOTE)
        lines.extend(self._extras(classified.count, classified.total_time_ms, backtrace))
        return "\n".join(lines)

    def _group_context(self, classified: ClassifiedGroup) -> dict:
        c = classified.classification
        return {
            "suggestion": suggestion_key(c.occurrence_type, c.partial_access),
            "occurrence_type": c.occurrence_type.value,
            "partial_access": c.partial_access,
            "table": c.table,
            "column": c.column,
            "entity": table_to_entity(c.table) if c.table else None,
            "relation": column_to_relation(c.column, self.foreign_key_suffixes),
            "query_count": classified.count,
        }

    # ── nested ──────────────────────────────────────────────────────

    def emit_chain(self, chain: Chain) -> Finding:
        earliest = min(chain.groups, key=lambda g: g.group.first_sequence)
        backtrace = earliest.group.representative_backtrace
        hops = " -> ".join(f"{level.table} ({level.count})" for level in chain.levels)

        lines = [
            f"Nested N+1 across {chain.depth} relationship levels: {hops}. "
            f"Found {chain.query_count} queries with total execution time of "
            f"{chain.total_time_ms:.2f}ms."
        ]
        if chain.anchor is not None:
            lines.append(f"Root query: {chain.anchor.pattern}")
        lines.extend(self._extras(chain.query_count, chain.total_time_ms, backtrace))

        return Finding(
            finding_id="",
            kind=FindingKind.NESTED_N_PLUS_ONE,
            severity=score_chain(chain, self.scorer),
            title=(
                f"Nested N+1 Query Detected: {chain.depth} levels, "
                f"{chain.query_count} queries"
            ),
            description="\n".join(lines),
            groups=tuple(g.summary() for g in chain.groups),
            example=earliest.group.representative,
            fingerprint=make_fingerprint(
                FindingKind.NESTED_N_PLUS_ONE,
                *(g.pattern for g in chain.groups),
            ),
            backtrace=backtrace,
            suggestion_context=self._chain_context(chain),
        )

    def _chain_context(self, chain: Chain) -> dict:
        return {
            "suggestion": "nested_eager_loading",
            "depth": chain.depth,
            "tables": list(chain.tables),
            "entities": [table_to_entity(t) for t in chain.tables],
            "root_pattern": chain.anchor.pattern if chain.anchor is not None else None,
            "levels": [
                {
                    "table": level.table,
                    "count": level.count,
                    "occurrence_type": level.occurrence_type.value,
                    "column": level.groups[0].column,
                    "relation": column_to_relation(
                        level.groups[0].column, self.foreign_key_suffixes
                    ),
                }
                for level in chain.levels
            ],
            "query_count": chain.query_count,
        }

    # ── shared ──────────────────────────────────────────────────────

    def _extras(
        self,
        count: int,
        total_time_ms: float,
        backtrace: Optional[tuple[BacktraceFrame, ...]],
    ) -> list[str]:
        extras: list[str] = []
        if count > _SCALING_COUNT and total_time_ms < _SCALING_TIME_MS:
            extras.append(_SCALING_NOTE)
        if self.is_vendor_code(backtrace):
            extras.append(_VENDOR_NOTE)
        return extras

    def is_vendor_code(self, backtrace: Optional[tuple[BacktraceFrame, ...]]) -> bool:
        if not backtrace:
            return False
        return any(
            marker in frame.file for frame in backtrace for marker in self.vendor_markers
        )


def suggestion_key(occurrence_type: OccurrenceType, partial_access: bool) -> str:
    """Remediation key handed to the external suggestion templates."""
    if occurrence_type is OccurrenceType.PROXY:
        return "batch_fetch"
    if occurrence_type is OccurrenceType.COLLECTION and partial_access:
        return "extra_lazy"
    return "eager_loading"
