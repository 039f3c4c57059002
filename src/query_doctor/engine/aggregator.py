"""Pattern aggregation: group executed statements by normalized SQL."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from query_doctor.model.query import BacktraceFrame, QueryRecord
from query_doctor.sql.normalizer import normalize

_logger = logging.getLogger(__name__)

DEFAULT_MIN_OCCURRENCES = 5

_WRITE_PREFIXES = ("INSERT", "UPDATE", "DELETE")


def is_write(sql: str) -> bool:
    """True for INSERT / UPDATE / DELETE statements (case-insensitive)."""
    return sql.lstrip().upper().startswith(_WRITE_PREFIXES)


@dataclass(slots=True)
class PatternGroup:
    """All records sharing one normalized pattern, in execution order."""

    pattern: str
    records: list[QueryRecord] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.records)

    @property
    def total_time_ms(self) -> float:
        return sum(r.execution_time_ms for r in self.records)

    @property
    def representative(self) -> QueryRecord:
        return self.records[0]

    @property
    def representative_backtrace(self) -> Optional[tuple[BacktraceFrame, ...]]:
        """Backtrace of the first record, the one that is reported as the example."""
        return self.records[0].backtrace or None

    @property
    def first_sequence(self) -> int:
        return self.records[0].sequence


class PatternAggregator:
    """Accumulates records into ``PatternGroup`` objects.

    Writes are counted and dropped: repeated INSERT/UPDATE/DELETE inside a
    loop is a different anti-pattern from N+1 reads.
    """

    def __init__(self) -> None:
        self._groups: dict[str, PatternGroup] = {}
        self.discarded_writes = 0

    @classmethod
    def from_records(cls, records: Iterable[QueryRecord]) -> "PatternAggregator":
        agg = cls()
        agg.add_all(records)
        return agg

    def add(self, record: QueryRecord) -> None:
        if is_write(record.sql):
            self.discarded_writes += 1
            return
        pattern = normalize(record.sql)
        group = self._groups.get(pattern)
        if group is None:
            group = self._groups[pattern] = PatternGroup(pattern)
        group.records.append(record)

    def add_all(self, records: Iterable[QueryRecord]) -> None:
        for record in records:
            self.add(record)
        _logger.debug(
            "Aggregated %d patterns (%d writes discarded)",
            len(self._groups),
            self.discarded_writes,
        )

    def groups(self, min_threshold: int = DEFAULT_MIN_OCCURRENCES) -> list[PatternGroup]:
        """Groups with ``count >= min_threshold`` in order of first occurrence."""
        return [g for g in self._groups.values() if g.count >= min_threshold]

    def all_groups(self) -> list[PatternGroup]:
        return list(self._groups.values())

    def __len__(self) -> int:
        return len(self._groups)
