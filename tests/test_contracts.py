"""Tests for the result contract, canonical JSON and determinism helpers."""

from __future__ import annotations

import json
from pathlib import Path

import jsonschema
import pytest

from query_doctor.contracts.load import RESULT_SCHEMA, load_schema, validate_file, validate_instance
from query_doctor.model import OccurrenceType, Severity
from query_doctor.model.analysis_result import AnalysisResult
from query_doctor.utils.determinism import (
    FIXED_TIMESTAMP,
    deterministic_run_id,
    deterministic_timestamp,
)
from query_doctor.utils.json_norm import stable_json_dumps


class TestSchema:
    """The bundled analysis_result schema."""

    def test_loads(self) -> None:
        schema = load_schema(RESULT_SCHEMA)
        assert schema["title"] == "AnalysisResult"
        jsonschema.Draft202012Validator.check_schema(schema)

    def test_empty_result_validates(self) -> None:
        validate_instance(AnalysisResult().to_dict())

    def test_extra_top_level_key_rejected(self) -> None:
        d = AnalysisResult().to_dict()
        d["extra"] = True
        with pytest.raises(jsonschema.ValidationError):
            validate_instance(d)

    def test_missing_key_rejected(self) -> None:
        d = AnalysisResult().to_dict()
        del d["stats"]
        with pytest.raises(jsonschema.ValidationError):
            validate_instance(d)

    def test_validate_file_checks_version(self, tmp_path: Path) -> None:
        d = AnalysisResult().to_dict()
        d["schema_version"] = "something_else"
        path = tmp_path / "r.json"
        path.write_text(json.dumps(d), encoding="utf-8")
        with pytest.raises(ValueError, match="analysis_result_v1"):
            validate_file(path)


class TestStableJsonDumps:
    """Canonical JSON text."""

    def test_sorted_keys_and_newline(self) -> None:
        text = stable_json_dumps({"b": 1, "a": 2})
        assert text.endswith("\n")
        assert text.index('"a"') < text.index('"b"')

    def test_ci_rounding(self) -> None:
        assert json.loads(stable_json_dumps({"t": 1.23456789}, ci_mode=True)) == {"t": 1.2346}
        assert json.loads(stable_json_dumps({"t": 1.23456789})) == {"t": 1.23456789}

    def test_non_finite_in_ci_mode(self) -> None:
        assert json.loads(stable_json_dumps([float("nan")], ci_mode=True)) == ["nan"]

    def test_builtin_conversion(self) -> None:
        data = {
            "sev": Severity.LOW,
            "type": OccurrenceType.PROXY,
            "path": Path("a") / "b.json",
            "tags": {"z", "a"},
            "pair": ("x", 1),
        }
        assert json.loads(stable_json_dumps(data)) == {
            "sev": "low",
            "type": "proxy",
            "path": "a/b.json",
            "tags": ["a", "z"],
            "pair": ["x", 1],
        }

    def test_to_dict_objects(self) -> None:
        text = stable_json_dumps(AnalysisResult(run_id="r", created_at="c"))
        assert json.loads(text)["run"]["run_id"] == "r"


class TestDeterminism:
    """Run id and timestamp helpers."""

    def test_fixed_timestamp(self) -> None:
        assert deterministic_timestamp(ci_mode=True) == FIXED_TIMESTAMP
        assert deterministic_timestamp() != FIXED_TIMESTAMP

    def test_ci_run_id_is_content_hash(self) -> None:
        a = deterministic_run_id(["SELECT 1", "SELECT 2"], ci_mode=True)
        assert a == deterministic_run_id(["SELECT 1", "SELECT 2"], ci_mode=True)
        assert a != deterministic_run_id(["SELECT 1SELECT 2"], ci_mode=True)
        assert a.startswith("ci-") and len(a) == 19

    def test_random_run_id(self) -> None:
        a = deterministic_run_id(["SELECT 1"])
        b = deterministic_run_id(["SELECT 1"])
        assert a.startswith("run-")
        assert a != b
