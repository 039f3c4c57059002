"""Severity scoring for repeated-query groups."""

from __future__ import annotations

from query_doctor.model import OccurrenceType, Severity
from query_doctor.policy.thresholds import DEFAULT_THRESHOLDS, SeverityThresholds


class SeverityScorer:
    """(count, total time, occurrence type) → ``Severity``.

    Proxy lookups weigh more per query than collections: the effective count
    is ``count * proxy_multiplier``.  First matching rule wins:

    - effective >= critical_count, or time >= critical_time_ms: CRITICAL
    - effective >= medium_count, or time >= medium_time_ms: MEDIUM
    - effective >= low_count: LOW
    - otherwise: INFO
    """

    def __init__(self, thresholds: SeverityThresholds = DEFAULT_THRESHOLDS):
        self.thresholds = thresholds

    def multiplier(self, occurrence_type: OccurrenceType) -> float:
        if occurrence_type is OccurrenceType.PROXY:
            return self.thresholds.proxy_multiplier
        return 1.0

    def effective_count(self, count: int, occurrence_type: OccurrenceType) -> float:
        return count * self.multiplier(occurrence_type)

    def score(
        self,
        count: int,
        total_time_ms: float,
        occurrence_type: OccurrenceType = OccurrenceType.UNKNOWN,
    ) -> Severity:
        t = self.thresholds
        effective = self.effective_count(count, occurrence_type)
        if effective >= t.critical_count or total_time_ms >= t.critical_time_ms:
            return Severity.CRITICAL
        if effective >= t.medium_count or total_time_ms >= t.medium_time_ms:
            return Severity.MEDIUM
        if effective >= t.low_count:
            return Severity.LOW
        return Severity.INFO
