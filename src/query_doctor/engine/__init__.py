"""Detection engine: aggregate → classify → score → chain → emit."""

from query_doctor.engine.aggregator import PatternAggregator, PatternGroup, is_write
from query_doctor.engine.chains import Chain, ChainDetector, ChainLevel, score_chain
from query_doctor.engine.classifier import (
    Classification,
    ClassifiedGroup,
    ForeignKeyRule,
    OccurrenceClassifier,
    PrimaryKeyRule,
    RelationHintRule,
)
from query_doctor.engine.emitter import FindingEmitter, suggestion_key
from query_doctor.engine.severity import SeverityScorer

__all__ = [
    "Chain",
    "ChainDetector",
    "ChainLevel",
    "Classification",
    "ClassifiedGroup",
    "FindingEmitter",
    "ForeignKeyRule",
    "OccurrenceClassifier",
    "PatternAggregator",
    "PatternGroup",
    "PrimaryKeyRule",
    "RelationHintRule",
    "SeverityScorer",
    "is_write",
    "score_chain",
    "suggestion_key",
]
