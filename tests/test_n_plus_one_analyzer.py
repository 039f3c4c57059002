"""Tests for the flat and nested analyzers over whole query streams."""

from __future__ import annotations

import pytest

from query_doctor.analyzers import NestedNPlusOneAnalyzer, NPlusOneAnalyzer
from query_doctor.core.config import AnalysisConfig
from query_doctor.engine.aggregator import PatternAggregator
from query_doctor.model import FindingKind, OccurrenceType
from query_doctor.model.query import QueryRecord
from tests.conftest import build_records


def _run(records: list[QueryRecord], analyzer=None):
    analyzer = analyzer or NPlusOneAnalyzer()
    return analyzer.run(PatternAggregator.from_records(records))


# ── scenarios ────────────────────────────────────────────────────────


class TestScenarios:
    """End-to-end behaviour on representative query streams."""

    def test_a_proxy(self, proxy_records: list[QueryRecord]) -> None:
        findings = _run(proxy_records)
        assert len(findings) == 1
        f = findings[0]
        assert f.groups[0].occurrence_type is OccurrenceType.PROXY
        assert f.query_count == 10

    def test_b_collection(self, collection_records: list[QueryRecord]) -> None:
        findings = _run(collection_records)
        assert len(findings) == 1
        assert findings[0].groups[0].occurrence_type is OccurrenceType.COLLECTION
        assert findings[0].query_count == 6

    def test_c_below_threshold(self) -> None:
        records = build_records([f"SELECT * FROM users WHERE id = {i}" for i in range(4)])
        assert _run(records, NPlusOneAnalyzer(threshold=5)) == []

    def test_d_nested(self, nested_records: list[QueryRecord]) -> None:
        findings = _run(nested_records, NestedNPlusOneAnalyzer())
        assert len(findings) == 1
        assert findings[0].kind is FindingKind.NESTED_N_PLUS_ONE
        assert findings[0].suggestion_context["depth"] == 2

    def test_e_inserts(self) -> None:
        records = build_records(
            [f"INSERT INTO audit_log (user_id, msg) VALUES ({i}, 'event {i}')" for i in range(10)]
        )
        assert _run(records) == []
        assert _run(records, NestedNPlusOneAnalyzer()) == []


# ── properties ───────────────────────────────────────────────────────


class TestFlatProperties:
    """Grouping properties visible through the analyzer."""

    def test_distinct_relations_stay_separate(self) -> None:
        sqls = []
        for i in range(5):
            sqls.append(f"SELECT * FROM posts WHERE author_id = {i}")
            sqls.append(f"SELECT * FROM posts WHERE editor_id = {i}")
        findings = _run(build_records(sqls))
        assert [f.groups[0].column for f in findings] == ["author_id", "editor_id"]
        assert [f.suggestion_context["relation"] for f in findings] == ["author", "editor"]

    @pytest.mark.parametrize("n", [5, 50, 500])
    def test_single_representative(self, n: int) -> None:
        records = build_records([f"SELECT * FROM users WHERE id = {i}" for i in range(n)])
        (finding,) = _run(records)
        assert finding.example is records[0]
        assert finding.query_count == n
        assert "records" not in finding.to_dict()

    def test_in_lists_of_different_lengths_group(self) -> None:
        records = build_records(
            [
                "SELECT * FROM tags WHERE id IN (1)",
                "SELECT * FROM tags WHERE id IN (1, 2)",
                "SELECT * FROM tags WHERE id IN (1, 2, 3)",
                "SELECT * FROM tags WHERE id IN (4, 5, 6, 7)",
                "SELECT * FROM tags WHERE id IN ('a', 'b')",
            ]
        )
        (finding,) = _run(records)
        assert finding.groups[0].pattern == "SELECT * FROM tags WHERE id IN (?)"

    def test_findings_in_first_occurrence_order(self) -> None:
        sqls = [f"SELECT * FROM b WHERE id = {i}" for i in range(5)]
        sqls += [f"SELECT * FROM a WHERE id = {i}" for i in range(5)]
        findings = _run(build_records(sqls))
        assert [f.groups[0].table for f in findings] == ["b", "a"]

    def test_finding_ids(self, proxy_records: list[QueryRecord]) -> None:
        (finding,) = _run(proxy_records)
        assert finding.finding_id == f"n1_{finding.fingerprint[7:15]}_0000"

    def test_nested_finding_ids(self, nested_records: list[QueryRecord]) -> None:
        (finding,) = _run(nested_records, NestedNPlusOneAnalyzer())
        assert finding.finding_id.startswith("nn1_")

    def test_empty_input(self) -> None:
        assert _run([]) == []
        assert _run([], NestedNPlusOneAnalyzer()) == []


class TestFromConfig:
    """Analyzers pick up thresholds and classification settings."""

    def test_threshold(self) -> None:
        analyzer = NPlusOneAnalyzer.from_config(AnalysisConfig(min_occurrence_threshold=3))
        records = build_records([f"SELECT * FROM users WHERE id = {i}" for i in range(3)])
        assert len(_run(records, analyzer)) == 1

    def test_relation_hint(self) -> None:
        config = AnalysisConfig(relation_hints={("posts", "user_id"): OccurrenceType.PROXY})
        analyzer = NPlusOneAnalyzer.from_config(config)
        records = build_records([f"SELECT * FROM posts WHERE user_id = {i}" for i in range(5)])
        (finding,) = _run(records, analyzer)
        assert finding.groups[0].occurrence_type is OccurrenceType.PROXY
        assert finding.suggestion_context["suggestion"] == "batch_fetch"

    def test_nested_without_root(self) -> None:
        sqls = []
        for i in range(4):
            sqls += [f"SELECT * FROM users WHERE id = {i}", f"SELECT * FROM countries WHERE id = {i}"]
        records = build_records(sqls)
        assert _run(records, NestedNPlusOneAnalyzer.from_config(AnalysisConfig())) == []
        analyzer = NestedNPlusOneAnalyzer.from_config(AnalysisConfig(require_root_anchor=False))
        assert len(_run(records, analyzer)) == 1

    def test_analyzer_identity(self) -> None:
        assert NPlusOneAnalyzer.id == "n_plus_one"
        assert NestedNPlusOneAnalyzer.id == "nested_n_plus_one"
