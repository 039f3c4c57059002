"""CLI tests: ``main([...])`` in-process, exit codes 0/1/2."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from query_doctor.__main__ import main
from query_doctor.sql.cache import shared_cache
from query_doctor.utils.determinism import FIXED_TIMESTAMP


def _write_queries(tmp_path: Path, n: int = 10) -> Path:
    path = tmp_path / "queries.json"
    payload = [
        {"sql": f"SELECT * FROM users WHERE id = {i}", "executionTimeMs": 1.0}
        for i in range(1, n + 1)
    ]
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture
def queries(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    return _write_queries(tmp_path)


# ── normalize ────────────────────────────────────────────────────────


def test_normalize_prints_pattern(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["normalize", "SELECT *   FROM users WHERE id = 42"]) == 0
    assert capsys.readouterr().out == "SELECT * FROM users WHERE id = ?\n"


def test_no_command_exits_2(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 2
    assert "usage:" in capsys.readouterr().err


# ── analyze ──────────────────────────────────────────────────────────


class TestAnalyze:
    """Exit codes follow --fail-on; output goes to stderr or stdout."""

    def test_finding_at_default_fail_level(
        self, queries: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["analyze", str(queries)]) == 1
        err = capsys.readouterr().err
        assert "10 queries, 1 patterns, 1 findings" in err
        assert "[LOW     ] N+1 Query Detected: 10 queries (proxy)" in err

    def test_fail_on_medium(self, queries: Path) -> None:
        assert main(["analyze", str(queries), "--fail-on", "medium"]) == 0

    def test_threshold_flag(self, queries: Path) -> None:
        assert main(["analyze", str(queries), "--threshold", "11"]) == 0

    def test_config_discovered_in_cwd(self, queries: Path, tmp_path: Path) -> None:
        (tmp_path / ".query-doctor.yaml").write_text(
            "min_occurrence_threshold: 20\n", encoding="utf-8"
        )
        assert main(["analyze", str(queries)]) == 0

    def test_explicit_config(self, queries: Path, tmp_path: Path) -> None:
        cfg = tmp_path / "strict.yaml"
        cfg.write_text("thresholds:\n  low_count: 20\n  medium_count: 20\n", encoding="utf-8")
        assert main(["analyze", str(queries), "--config", str(cfg)]) == 0

    def test_config_sizes_shared_cache(self, queries: Path, tmp_path: Path) -> None:
        cfg = tmp_path / "small-cache.yaml"
        cfg.write_text("cache_max_entries: 64\n", encoding="utf-8")
        assert main(["analyze", str(queries), "--config", str(cfg)]) == 1
        assert shared_cache().max_entries == 64

    def test_invalid_config_exits_2(
        self, queries: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        cfg = tmp_path / "bad.yaml"
        cfg.write_text("colour: blue\n", encoding="utf-8")
        assert main(["analyze", str(queries), "--config", str(cfg)]) == 2
        assert "error: unknown config keys: colour" in capsys.readouterr().err

    def test_json_ci_output(self, queries: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["analyze", str(queries), "--json", "--ci"]) == 1
        first = capsys.readouterr().out
        assert main(["analyze", str(queries), "--json", "--ci"]) == 1
        second = capsys.readouterr().out
        assert first == second
        data = json.loads(first)
        assert data["run"]["created_at"] == FIXED_TIMESTAMP
        assert data["findings"][0]["suggestion_context"]["suggestion"] == "batch_fetch"

    def test_missing_queries_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert main(["analyze", str(tmp_path / "nope.json")]) == 2

    def test_invalid_payload(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "q.json"
        path.write_text(json.dumps([{"executionTimeMs": 1}]), encoding="utf-8")
        assert main(["analyze", str(path)]) == 2

    def test_ci_env_requires_ci_flag(
        self,
        queries: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setenv("CI", "true")
        assert main(["analyze", str(queries)]) == 2
        assert "--ci/--deterministic" in capsys.readouterr().err
        assert main(["analyze", str(queries), "--ci"]) == 1

    def test_deterministic_env_requires_flag(
        self, queries: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("QUERY_DOCTOR_DETERMINISTIC", "1")
        assert main(["analyze", str(queries)]) == 2
        assert main(["analyze", str(queries), "--deterministic"]) == 1


# ── validate ─────────────────────────────────────────────────────────


class TestValidate:
    """validate: 0 ok, 1 schema violation, 2 unreadable or wrong version."""

    def _artifact(self, queries: Path, tmp_path: Path) -> Path:
        out = tmp_path / "out"
        main(["analyze", str(queries), "--ci", "--out", str(out)])
        return out / "analysis_result.json"

    def test_ok(self, queries: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = self._artifact(queries, tmp_path)
        capsys.readouterr()
        assert main(["validate", str(path)]) == 0
        assert capsys.readouterr().out == "OK\n"

    def test_schema_violation(self, queries: Path, tmp_path: Path) -> None:
        path = self._artifact(queries, tmp_path)
        data = json.loads(path.read_text(encoding="utf-8"))
        data["summary"]["findings_total"] = -1
        path.write_text(json.dumps(data), encoding="utf-8")
        assert main(["validate", str(path)]) == 1

    def test_wrong_schema_version(self, queries: Path, tmp_path: Path) -> None:
        path = self._artifact(queries, tmp_path)
        data = json.loads(path.read_text(encoding="utf-8"))
        data["schema_version"] = "analysis_result_v0"
        path.write_text(json.dumps(data), encoding="utf-8")
        assert main(["validate", str(path)]) == 2

    def test_missing_file(self, tmp_path: Path) -> None:
        assert main(["validate", str(tmp_path / "missing.json")]) == 2

    def test_not_json(self, tmp_path: Path) -> None:
        path = tmp_path / "garbage.json"
        path.write_text("{", encoding="utf-8")
        assert main(["validate", str(path)]) == 2
