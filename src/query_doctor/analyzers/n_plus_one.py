"""Flat N+1 analyzer: a read pattern repeated at least ``threshold`` times."""

from __future__ import annotations

import logging

from query_doctor.analyzers import assign_finding_ids
from query_doctor.engine.aggregator import DEFAULT_MIN_OCCURRENCES, PatternAggregator
from query_doctor.engine.classifier import OccurrenceClassifier
from query_doctor.engine.emitter import FindingEmitter
from query_doctor.engine.severity import SeverityScorer
from query_doctor.model.finding import Finding

_logger = logging.getLogger(__name__)


class NPlusOneAnalyzer:
    """Emits one finding per qualifying pattern group.

    Groups are reported in order of their first execution; writes never
    qualify because the aggregator has already discarded them.
    """

    id: str = "n_plus_one"
    version: str = "1.0.0"

    def __init__(
        self,
        threshold: int = DEFAULT_MIN_OCCURRENCES,
        *,
        classifier: OccurrenceClassifier | None = None,
        emitter: FindingEmitter | None = None,
    ):
        self.threshold = threshold
        self.classifier = classifier or OccurrenceClassifier()
        self.emitter = emitter or FindingEmitter()

    @classmethod
    def from_config(cls, config) -> "NPlusOneAnalyzer":
        return cls(
            config.min_occurrence_threshold,
            classifier=OccurrenceClassifier.from_config(config),
            emitter=FindingEmitter(
                SeverityScorer(config.thresholds),
                vendor_markers=config.vendor_path_markers,
                foreign_key_suffixes=config.foreign_key_suffixes,
            ),
        )

    def run(self, aggregator: PatternAggregator) -> list[Finding]:
        groups = aggregator.groups(self.threshold)
        findings = [
            self.emitter.emit_group(self.classifier.classify_group(group))
            for group in groups
        ]
        _logger.debug(
            "%s: %d of %d patterns reached %d occurrences",
            self.id,
            len(findings),
            len(aggregator),
            self.threshold,
        )
        return assign_finding_ids(findings, "n1")
