"""Nested N+1 detection across consecutive relationship hops.

A chain is a root listing query followed by repeated lookups on two or more
distinct tables, e.g. ``posts`` → per-post ``users`` → per-user ``countries``.
The root is a SELECT whose pattern does not repeat often enough to qualify;
it anchors ordering but is not itself part of the chain.
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from query_doctor.engine.aggregator import PatternGroup
from query_doctor.engine.classifier import ClassifiedGroup, OccurrenceClassifier
from query_doctor.engine.severity import SeverityScorer
from query_doctor.model import OccurrenceType, Severity
from query_doctor.sql.structure import extract_structure

_logger = logging.getLogger(__name__)

DEFAULT_CHAIN_MIN_OCCURRENCES = 3


@dataclass(frozen=True, slots=True)
class ChainLevel:
    """All qualifying groups of one chain that target the same table."""

    table: str
    groups: tuple[ClassifiedGroup, ...]

    @property
    def count(self) -> int:
        return sum(g.count for g in self.groups)

    @property
    def total_time_ms(self) -> float:
        return sum(g.total_time_ms for g in self.groups)

    @property
    def occurrence_type(self) -> OccurrenceType:
        return self.groups[0].occurrence_type

    @property
    def first_sequence(self) -> int:
        return min(g.group.first_sequence for g in self.groups)


@dataclass(frozen=True, slots=True)
class Chain:
    anchor: Optional[PatternGroup]
    levels: tuple[ChainLevel, ...]

    @property
    def depth(self) -> int:
        return len(self.levels)

    @property
    def tables(self) -> tuple[str, ...]:
        return tuple(level.table for level in self.levels)

    @property
    def deepest(self) -> ChainLevel:
        return self.levels[-1]

    @property
    def groups(self) -> tuple[ClassifiedGroup, ...]:
        return tuple(g for level in self.levels for g in level.groups)

    @property
    def query_count(self) -> int:
        return sum(level.count for level in self.levels)

    @property
    def total_time_ms(self) -> float:
        return sum(level.total_time_ms for level in self.levels)

    def patterns(self) -> frozenset[str]:
        return frozenset(g.pattern for g in self.groups)


class ChainDetector:
    """Groups qualifying patterns under their root anchor and builds chains.

    Each qualifying group attaches to the latest root anchor executed before
    its first occurrence, unless that anchor ran while the open chain was
    still executing; then the group joins the open chain.  Groups under the
    same anchor form one candidate chain, one level per distinct target
    table in order of first occurrence.
    """

    def __init__(
        self,
        min_threshold: int = DEFAULT_CHAIN_MIN_OCCURRENCES,
        *,
        require_root_anchor: bool = True,
        classifier: OccurrenceClassifier | None = None,
    ):
        self.min_threshold = min_threshold
        self.require_root_anchor = require_root_anchor
        self.classifier = classifier or OccurrenceClassifier()

    def detect(self, groups: Iterable[PatternGroup]) -> list[Chain]:
        """Find chains among *groups* (every group of one analysis)."""
        qualifying: list[PatternGroup] = []
        anchor_points: list[tuple[int, PatternGroup]] = []
        for group in groups:
            if group.count >= self.min_threshold:
                qualifying.append(group)
            elif extract_structure(group.pattern).statement_type == "SELECT":
                anchor_points.extend((r.sequence, group) for r in group.records)

        if not qualifying:
            return []
        anchor_points.sort(key=lambda point: point[0])
        anchor_seqs = [seq for seq, _ in anchor_points]

        # anchor sequence (None = implicit anchor) → attached groups
        buckets: dict[Optional[int], list[ClassifiedGroup]] = {}
        anchors: dict[Optional[int], Optional[PatternGroup]] = {None: None}
        current: Optional[int] = None
        has_open = False
        open_until = -1
        for group in sorted(qualifying, key=lambda g: g.first_sequence):
            classified = self.classifier.classify_group(group)
            if classified.table is None:
                continue
            idx = bisect.bisect_left(anchor_seqs, group.first_sequence) - 1
            anchor_seq: Optional[int] = anchor_seqs[idx] if idx >= 0 else None
            # an anchor executed while the open chain is still running does not split it
            if has_open and (
                anchor_seq is None or anchor_seq == current or anchor_seq < open_until
            ):
                key = current
            elif anchor_seq is not None:
                key = anchor_seq
                anchors[key] = anchor_points[idx][1]
                open_until = -1
            elif self.require_root_anchor:
                continue
            else:
                key = None
            current = key
            has_open = True
            open_until = max(open_until, max(r.sequence for r in group.records))
            buckets.setdefault(key, []).append(classified)

        chains: list[Chain] = []
        for key, members in buckets.items():
            levels = _levels(members)
            if len(levels) >= 2:
                chains.append(Chain(anchor=anchors[key], levels=levels))

        _logger.debug(
            "Chain detection: %d qualifying groups, %d anchors, %d chains",
            len(qualifying),
            len(anchor_points),
            len(chains),
        )
        return chains


def _levels(members: list[ClassifiedGroup]) -> tuple[ChainLevel, ...]:
    by_table: dict[str, list[ClassifiedGroup]] = {}
    for member in members:
        by_table.setdefault(member.table, []).append(member)
    return tuple(ChainLevel(table, tuple(gs)) for table, gs in by_table.items())


def score_chain(chain: Chain, scorer: SeverityScorer) -> Severity:
    """Deepest-level severity escalated per extra level, floored by every level."""
    deepest = chain.deepest
    base = scorer.score(deepest.count, chain.total_time_ms, deepest.occurrence_type)
    escalated = base.escalate(max(chain.depth - 2, 0))
    per_level = [
        scorer.score(level.count, level.total_time_ms, level.occurrence_type)
        for level in chain.levels
    ]
    per_group = [scorer.score(g.count, g.total_time_ms, g.occurrence_type) for g in chain.groups]
    return Severity.worst(escalated, *per_level, *per_group)
