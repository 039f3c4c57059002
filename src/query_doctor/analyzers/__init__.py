"""Analyzers turn aggregated pattern groups into findings.

Each analyzer exposes ``id``, ``version`` and
``run(aggregator) -> list[Finding]``; ``core.runner.run_analysis`` feeds
them one shared ``PatternAggregator`` per analysis.

Available analyzers:
    - NPlusOneAnalyzer: flat N+1, one finding per repeated pattern
    - NestedNPlusOneAnalyzer: N+1 repeated across relationship hops
"""

from __future__ import annotations

from typing import Protocol

from query_doctor.engine.aggregator import PatternAggregator
from query_doctor.model.finding import Finding


class Analyzer(Protocol):
    """Every analyzer must expose ``id``, ``version``, and ``run()``."""

    id: str
    version: str

    def run(self, aggregator: PatternAggregator) -> list[Finding]:
        """Analyze the groups held by *aggregator* and return findings."""
        ...


def assign_finding_ids(findings: list[Finding], prefix: str) -> list[Finding]:
    """Stable, fingerprint-based ids: ``<prefix>_<hash8>_<index>``."""
    for i, f in enumerate(findings):
        object.__setattr__(f, "finding_id", f"{prefix}_{f.fingerprint[7:15]}_{i:04d}")
    return findings


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    if name == "NPlusOneAnalyzer":
        from .n_plus_one import NPlusOneAnalyzer
        return NPlusOneAnalyzer
    if name == "NestedNPlusOneAnalyzer":
        from .nested import NestedNPlusOneAnalyzer
        return NestedNPlusOneAnalyzer
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
