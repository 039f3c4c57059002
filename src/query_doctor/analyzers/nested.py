"""Nested N+1 analyzer: repeated lookups chained across relationship hops."""

from __future__ import annotations

from query_doctor.analyzers import assign_finding_ids
from query_doctor.engine.aggregator import PatternAggregator
from query_doctor.engine.chains import DEFAULT_CHAIN_MIN_OCCURRENCES, ChainDetector
from query_doctor.engine.classifier import OccurrenceClassifier
from query_doctor.engine.emitter import FindingEmitter
from query_doctor.engine.severity import SeverityScorer
from query_doctor.model.finding import Finding


class NestedNPlusOneAnalyzer:
    """Emits one finding per detected chain (depth >= 2)."""

    id: str = "nested_n_plus_one"
    version: str = "1.0.0"

    def __init__(
        self,
        threshold: int = DEFAULT_CHAIN_MIN_OCCURRENCES,
        *,
        require_root_anchor: bool = True,
        classifier: OccurrenceClassifier | None = None,
        emitter: FindingEmitter | None = None,
    ):
        self.detector = ChainDetector(
            threshold,
            require_root_anchor=require_root_anchor,
            classifier=classifier,
        )
        self.emitter = emitter or FindingEmitter()

    @classmethod
    def from_config(cls, config) -> "NestedNPlusOneAnalyzer":
        return cls(
            config.chain_min_threshold,
            require_root_anchor=config.require_root_anchor,
            classifier=OccurrenceClassifier.from_config(config),
            emitter=FindingEmitter(
                SeverityScorer(config.thresholds),
                vendor_markers=config.vendor_path_markers,
                foreign_key_suffixes=config.foreign_key_suffixes,
            ),
        )

    def run(self, aggregator: PatternAggregator) -> list[Finding]:
        chains = self.detector.detect(aggregator.all_groups())
        return assign_finding_ids([self.emitter.emit_chain(c) for c in chains], "nn1")
