"""Occurrence classification: why does this pattern repeat?

Classification is an ordered rule table evaluated against the first
top-level ``column = ?`` condition of the pattern's WHERE clause; the first
rule that matches decides the ``OccurrenceType``.  Nothing here raises on SQL
content: when the target cannot be extracted the group is ``UNKNOWN``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from query_doctor.engine.aggregator import PatternGroup
from query_doctor.model import OccurrenceType
from query_doctor.model.finding import GroupSummary
from query_doctor.sql.structure import EqualityTarget, extract_structure

DEFAULT_PRIMARY_KEY_COLUMNS: frozenset[str] = frozenset({"id"})
DEFAULT_FOREIGN_KEY_SUFFIXES: tuple[str, ...] = ("_id",)


@dataclass(frozen=True, slots=True)
class Classification:
    occurrence_type: OccurrenceType = OccurrenceType.UNKNOWN
    partial_access: bool = False
    table: Optional[str] = None
    column: Optional[str] = None
    rule: str = "fallback"


@dataclass(frozen=True, slots=True)
class ClassifiedGroup:
    """A ``PatternGroup`` paired with its classification (never mutated)."""

    group: PatternGroup
    classification: Classification

    @property
    def pattern(self) -> str:
        return self.group.pattern

    @property
    def count(self) -> int:
        return self.group.count

    @property
    def total_time_ms(self) -> float:
        return self.group.total_time_ms

    @property
    def occurrence_type(self) -> OccurrenceType:
        return self.classification.occurrence_type

    @property
    def table(self) -> Optional[str]:
        return self.classification.table

    @property
    def column(self) -> Optional[str]:
        return self.classification.column

    def summary(self) -> GroupSummary:
        c = self.classification
        return GroupSummary(
            pattern=self.pattern,
            count=self.count,
            total_time_ms=self.total_time_ms,
            occurrence_type=c.occurrence_type,
            partial_access=c.partial_access,
            table=c.table,
            column=c.column,
        )


class ClassificationRule(Protocol):
    """One row of the rule table."""

    name: str

    def match(self, target: EqualityTarget) -> Optional[OccurrenceType]:
        ...


class RelationHintRule:
    """Exact ``(table, column) → type`` overrides supplied by the caller."""

    name = "relation_hint"

    def __init__(self, hints: Mapping[tuple[str, str], OccurrenceType | str]):
        self.hints = {
            (table.lower(), column.lower()): OccurrenceType(kind)
            for (table, column), kind in hints.items()
        }

    def match(self, target: EqualityTarget) -> Optional[OccurrenceType]:
        if target.table is None:
            return None
        return self.hints.get((target.table, target.column))


class PrimaryKeyRule:
    """Lookup by primary key: one related object loaded at a time."""

    name = "primary_key"

    def __init__(self, columns: Iterable[str] = DEFAULT_PRIMARY_KEY_COLUMNS):
        self.columns = frozenset(c.lower() for c in columns)

    def match(self, target: EqualityTarget) -> Optional[OccurrenceType]:
        return OccurrenceType.PROXY if target.column in self.columns else None


class ForeignKeyRule:
    """Lookup by a parent's key: a to-many collection loaded per parent."""

    name = "foreign_key"

    def __init__(
        self,
        suffixes: Sequence[str] = DEFAULT_FOREIGN_KEY_SUFFIXES,
        primary_keys: Iterable[str] = DEFAULT_PRIMARY_KEY_COLUMNS,
    ):
        self.suffixes = tuple(s.lower() for s in suffixes)
        self.primary_keys = frozenset(c.lower() for c in primary_keys)

    def match(self, target: EqualityTarget) -> Optional[OccurrenceType]:
        column = target.column
        if column in self.primary_keys:
            return None
        if any(column.endswith(s) and column != s for s in self.suffixes):
            return OccurrenceType.COLLECTION
        return None


class OccurrenceClassifier:
    """Evaluates the rule table in order; first match wins."""

    def __init__(self, rules: Sequence[ClassificationRule] | None = None):
        self.rules: tuple[ClassificationRule, ...] = tuple(
            rules if rules is not None else default_rules()
        )

    @classmethod
    def from_config(cls, config) -> "OccurrenceClassifier":
        return cls(default_rules(
            primary_key_columns=config.primary_key_columns,
            foreign_key_suffixes=config.foreign_key_suffixes,
            relation_hints=config.relation_hints,
        ))

    def classify(self, pattern: str) -> Classification:
        structure = extract_structure(pattern)
        target = structure.where_target
        if target is None:
            return Classification(
                partial_access=structure.has_row_bound,
                table=structure.main_table,
            )
        for rule in self.rules:
            kind = rule.match(target)
            if kind is not None:
                return Classification(
                    occurrence_type=kind,
                    partial_access=structure.has_row_bound,
                    table=target.table,
                    column=target.column,
                    rule=rule.name,
                )
        return Classification(
            partial_access=structure.has_row_bound,
            table=target.table,
            column=target.column,
        )

    def classify_group(self, group: PatternGroup) -> ClassifiedGroup:
        return ClassifiedGroup(group, self.classify(group.pattern))

    def classify_all(self, groups: Iterable[PatternGroup]) -> list[ClassifiedGroup]:
        return [self.classify_group(g) for g in groups]


def default_rules(
    *,
    primary_key_columns: Iterable[str] = DEFAULT_PRIMARY_KEY_COLUMNS,
    foreign_key_suffixes: Sequence[str] = DEFAULT_FOREIGN_KEY_SUFFIXES,
    relation_hints: Mapping[tuple[str, str], OccurrenceType | str] | None = None,
) -> list[ClassificationRule]:
    pks = frozenset(primary_key_columns)
    rules: list[ClassificationRule] = []
    if relation_hints:
        rules.append(RelationHintRule(relation_hints))
    rules.append(PrimaryKeyRule(pks))
    rules.append(ForeignKeyRule(foreign_key_suffixes, pks))
    return rules
