"""Tests for engine.chains: nested N+1 detection across relationship hops."""

from __future__ import annotations

from query_doctor.engine.aggregator import PatternAggregator
from query_doctor.engine.chains import ChainDetector, score_chain
from query_doctor.engine.severity import SeverityScorer
from query_doctor.model import OccurrenceType, Severity
from query_doctor.model.query import QueryRecord
from tests.conftest import build_records

ROOT = "SELECT * FROM posts ORDER BY created_at DESC"


def _groups(records: list[QueryRecord]):
    return PatternAggregator.from_records(records).all_groups()


def _interleaved(tables: list[str], n: int, *, root: str | None = ROOT) -> list[QueryRecord]:
    sqls = [root] if root else []
    for i in range(1, n + 1):
        sqls.extend(f"SELECT * FROM {t} WHERE id = {i}" for t in tables)
    return build_records(sqls)


class TestDetect:
    """Root anchor followed by lookups on two or more tables."""

    def test_two_level_chain(self, nested_records: list[QueryRecord]) -> None:
        chains = ChainDetector().detect(_groups(nested_records))
        assert len(chains) == 1
        chain = chains[0]
        assert chain.depth == 2
        assert chain.tables == ("users", "countries")
        assert chain.query_count == 12
        assert chain.total_time_ms == 12.0
        assert chain.anchor is not None
        assert chain.anchor.pattern == ROOT
        assert chain.patterns() == frozenset(
            {"SELECT * FROM users WHERE id = ?", "SELECT * FROM countries WHERE id = ?"}
        )

    def test_levels_are_classified(self, nested_records: list[QueryRecord]) -> None:
        chain = ChainDetector().detect(_groups(nested_records))[0]
        assert [level.occurrence_type for level in chain.levels] == [
            OccurrenceType.PROXY,
            OccurrenceType.PROXY,
        ]
        assert chain.deepest.table == "countries"

    def test_below_threshold_is_no_chain(self) -> None:
        assert ChainDetector().detect(_groups(_interleaved(["users", "countries"], 2))) == []

    def test_custom_threshold(self) -> None:
        groups = _groups(_interleaved(["users", "countries"], 2))
        assert len(ChainDetector(min_threshold=2).detect(groups)) == 1

    def test_single_table_is_no_chain(self) -> None:
        assert ChainDetector().detect(_groups(_interleaved(["users"], 6))) == []

    def test_same_table_patterns_share_a_level(self) -> None:
        sqls = [ROOT]
        for i in range(1, 4):
            sqls.append(f"SELECT * FROM users WHERE id = {i}")
            sqls.append(f"SELECT name FROM users WHERE id = {i}")
        assert ChainDetector().detect(_groups(build_records(sqls))) == []

    def test_two_roots_two_chains(self) -> None:
        sqls = [ROOT]
        for i in range(1, 4):
            sqls += [f"SELECT * FROM users WHERE id = {i}", f"SELECT * FROM countries WHERE id = {i}"]
        sqls.append("SELECT * FROM orders ORDER BY placed_at")
        for i in range(1, 4):
            sqls += [f"SELECT * FROM products WHERE id = {i}", f"SELECT * FROM categories WHERE id = {i}"]
        chains = ChainDetector().detect(_groups(build_records(sqls)))
        assert [c.tables for c in chains] == [("users", "countries"), ("products", "categories")]
        assert chains[1].anchor is not None
        assert chains[1].anchor.pattern == "SELECT * FROM orders ORDER BY placed_at"

    def test_one_off_select_inside_loop_does_not_split(self) -> None:
        sqls = [
            ROOT,
            "SELECT * FROM users WHERE id = 1",
            "SELECT * FROM settings WHERE name = 'locale'",
            "SELECT * FROM countries WHERE id = 10",
        ]
        for i in range(2, 7):
            sqls += [f"SELECT * FROM users WHERE id = {i}", f"SELECT * FROM countries WHERE id = {i * 10}"]
        chains = ChainDetector().detect(_groups(build_records(sqls)))
        assert len(chains) == 1
        assert chains[0].tables == ("users", "countries")
        assert chains[0].query_count == 12
        assert chains[0].anchor is not None
        assert chains[0].anchor.pattern == ROOT

    def test_empty(self) -> None:
        assert ChainDetector().detect([]) == []


class TestRootAnchor:
    """Chains without a preceding root listing."""

    def test_required_by_default(self) -> None:
        groups = _groups(_interleaved(["users", "countries"], 6, root=None))
        assert ChainDetector().detect(groups) == []

    def test_implicit_anchor_when_not_required(self) -> None:
        groups = _groups(_interleaved(["users", "countries"], 6, root=None))
        chains = ChainDetector(require_root_anchor=False).detect(groups)
        assert len(chains) == 1
        assert chains[0].anchor is None
        assert chains[0].depth == 2

    def test_write_never_anchors(self) -> None:
        sqls = ["UPDATE posts SET views = views + 1"]
        for i in range(1, 7):
            sqls += [f"SELECT * FROM users WHERE id = {i}", f"SELECT * FROM countries WHERE id = {i}"]
        assert ChainDetector().detect(_groups(build_records(sqls))) == []


class TestScoreChain:
    """Deepest-level score, escalated per extra level, floored by every level."""

    def test_two_levels_not_escalated(self, nested_records: list[QueryRecord]) -> None:
        chain = ChainDetector().detect(_groups(nested_records))[0]
        assert score_chain(chain, SeverityScorer()) is Severity.INFO

    def test_three_levels_escalate_once(self) -> None:
        groups = _groups(_interleaved(["users", "countries", "regions"], 4))
        chain = ChainDetector().detect(groups)[0]
        assert chain.depth == 3
        assert score_chain(chain, SeverityScorer()) is Severity.LOW

    def test_floor_from_shallow_level(self) -> None:
        sqls = [ROOT]
        sqls += [f"SELECT * FROM users WHERE id = {i}" for i in range(1, 21)]
        sqls += [f"SELECT * FROM countries WHERE id = {i}" for i in range(1, 4)]
        chain = ChainDetector().detect(_groups(build_records(sqls)))[0]
        assert chain.deepest.table == "countries"
        assert score_chain(chain, SeverityScorer()) is Severity.CRITICAL
