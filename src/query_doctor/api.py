"""
query_doctor.api
================

Programmatic entrypoints for using query_doctor as a library.

Goals:
  - No argparse / CLI dependencies
  - Deterministic mode support (ci_mode=True)
  - Stable, JSON-friendly outputs that match the result contract

Usage::

    from query_doctor.api import analyze, analyze_payload

    result = analyze(records)
    result, result_dict = analyze_payload(json.loads(raw), ci_mode=True)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional

from query_doctor.contracts.load import validate_instance
from query_doctor.core.config import AnalysisConfig
from query_doctor.core.runner import run_analysis
from query_doctor.model.analysis_result import AnalysisResult
from query_doctor.model.query import QueryRecord
from query_doctor.schemas.queries import parse_payload
from query_doctor.sql.normalizer import normalize

__all__ = ["analyze", "analyze_payload", "normalize", "validate_instance"]


def analyze(
    records: Iterable[QueryRecord],
    *,
    config: Optional[AnalysisConfig] = None,
    ci_mode: bool = False,
    out_dir: Optional[Path] = None,
) -> AnalysisResult:
    """Analyse an ordered ``QueryRecord`` stream.

    Empty input yields a result with no findings; SQL content never raises.
    """
    return run_analysis(records, config=config, ci_mode=ci_mode, out_dir=out_dir)


def analyze_payload(
    payload: Any,
    *,
    config: Optional[AnalysisConfig] = None,
    ci_mode: bool = False,
) -> tuple[AnalysisResult, dict[str, Any]]:
    """Validate an untrusted decoded-JSON payload, then analyse it.

    Returns
    -------
    ``(AnalysisResult, result_dict)``
        The dataclass and the schema-aligned JSON dict.

    Raises
    ------
    InputError
        If the payload does not validate.
    """
    result = run_analysis(parse_payload(payload), config=config, ci_mode=ci_mode)
    return result, result.to_dict()
