"""Runner: orchestrates analyzers, applies overlap policy, builds AnalysisResult."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from query_doctor.contracts.load import RESULT_SCHEMA, validate_instance
from query_doctor.core.config import AnalysisConfig
from query_doctor.engine.aggregator import PatternAggregator
from query_doctor.model import FindingKind
from query_doctor.model.analysis_result import AnalysisResult, AnalysisStats
from query_doctor.model.finding import Finding
from query_doctor.model.query import QueryRecord
from query_doctor.sql.cache import shared_cache
from query_doctor.utils.determinism import deterministic_run_id, deterministic_timestamp
from query_doctor.utils.json_norm import stable_json_dumps

if TYPE_CHECKING:
    from query_doctor.analyzers import Analyzer

_logger = logging.getLogger(__name__)

RESULT_FILE_NAME = "analysis_result.json"


def default_analyzers(config: AnalysisConfig) -> list[Analyzer]:
    from query_doctor.analyzers.n_plus_one import NPlusOneAnalyzer
    from query_doctor.analyzers.nested import NestedNPlusOneAnalyzer

    return [
        NPlusOneAnalyzer.from_config(config),
        NestedNPlusOneAnalyzer.from_config(config),
    ]


def detect(
    records: Iterable[QueryRecord],
    analyzers: list[Analyzer],
    *,
    chain_overlap: str = "dual",
) -> tuple[list[Finding], PatternAggregator]:
    """Run *analyzers* over one record stream; no artifact assembly."""
    ordered = sorted(records, key=lambda r: r.sequence)
    aggregator = PatternAggregator.from_records(ordered)

    findings: list[Finding] = []
    for analyzer in analyzers:
        analyzer_id = getattr(analyzer, "id", type(analyzer).__name__)
        try:
            findings.extend(analyzer.run(aggregator))
        except Exception:
            _logger.exception("Analyzer '%s' raised an exception, skipped", analyzer_id)

    if chain_overlap == "merge":
        findings = suppress_chained_flat_findings(findings)
    return findings, aggregator


def suppress_chained_flat_findings(findings: list[Finding]) -> list[Finding]:
    """Drop flat findings whose pattern is already part of a nested finding."""
    chained = {
        g.pattern
        for f in findings
        if f.kind is FindingKind.NESTED_N_PLUS_ONE
        for g in f.groups
    }
    if not chained:
        return findings
    kept = [
        f for f in findings
        if not (f.kind is FindingKind.FLAT_N_PLUS_ONE and f.groups[0].pattern in chained)
    ]
    _logger.debug("Overlap merge suppressed %d flat findings", len(findings) - len(kept))
    return kept


def run_analysis(
    records: Iterable[QueryRecord],
    *,
    config: Optional[AnalysisConfig] = None,
    analyzers: Optional[list[Analyzer]] = None,
    out_dir: Optional[Path] = None,
    ci_mode: bool = False,
    # Testing hooks for golden-fixture determinism
    _run_id: Optional[str] = None,
    _created_at: Optional[str] = None,
) -> AnalysisResult:
    """Analyse one profiled unit of work and assemble an ``AnalysisResult``.

    This is the **only** entry point that wires engine → artifact → output.
    """
    cfg = config or AnalysisConfig()
    records = list(records)

    cache = shared_cache()

    # ── 1. run every analyzer ───────────────────────────────────────
    findings, aggregator = detect(
        records,
        analyzers if analyzers is not None else default_analyzers(cfg),
        chain_overlap=cfg.chain_overlap,
    )

    # ── 2. assemble AnalysisResult ──────────────────────────────────
    result = AnalysisResult(
        run_id=_run_id or deterministic_run_id((r.sql for r in records), ci_mode),
        created_at=_created_at or deterministic_timestamp(ci_mode),
        config=cfg.to_dict(),
        stats=AnalysisStats(
            queries_analyzed=len(records),
            writes_discarded=aggregator.discarded_writes,
            distinct_patterns=len(aggregator),
            # cache counters are process-wide, which CI output must not depend on
            cache={} if ci_mode else cache.stats().to_dict(),
        ),
        findings=findings,
    )
    _logger.info(
        "Analysed %d queries: %d patterns, %d findings (worst: %s)",
        len(records),
        len(aggregator),
        len(findings),
        result.worst_severity.value,
    )

    # ── 3. validate output against schema ───────────────────────────
    result_dict = result.to_dict()
    validate_instance(result_dict, RESULT_SCHEMA)

    # ── 4. optionally write artifact to disk ────────────────────────
    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / RESULT_FILE_NAME).write_text(
            stable_json_dumps(result_dict, ci_mode=ci_mode),
            encoding="utf-8",
        )
    return result
