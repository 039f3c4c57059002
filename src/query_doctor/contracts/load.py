"""Load and validate JSON instances against the bundled schemas.

Usage::

    from query_doctor.contracts.load import validate_instance, validate_file

    validate_instance(result.to_dict(), "analysis_result.schema.json")
    validate_file(Path("out/analysis_result.json"), "analysis_result.schema.json")
"""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

import jsonschema

SCHEMA_DIR = "data/schemas"

RESULT_SCHEMA = "analysis_result.schema.json"


def _schema_path(name: str) -> Path:
    """Resolve a bundled schema.

    Priority:
    1. ``src/query_doctor/data/schemas/`` relative to this file
    2. pip-installed package data via importlib.resources
    """
    canonical = Path(__file__).resolve().parents[1] / SCHEMA_DIR / name
    if canonical.exists():
        return canonical
    with resources.as_file(resources.files("query_doctor") / SCHEMA_DIR / name) as p:
        return p


@lru_cache(maxsize=None)
def load_schema(name: str) -> dict[str, Any]:
    """Load a bundled JSON schema by filename."""
    path = _schema_path(name)
    return json.loads(path.read_text(encoding="utf-8"))


def validate_instance(instance: Any, schema_name: str = RESULT_SCHEMA) -> None:
    """Validate *instance* against the named schema.

    Raises ``jsonschema.ValidationError`` on failure.
    """
    jsonschema.validate(instance=instance, schema=load_schema(schema_name))


def validate_file(instance_path: Path, schema_name: str = RESULT_SCHEMA) -> None:
    """Load a JSON file and validate it against the named schema."""
    instance = json.loads(instance_path.read_text(encoding="utf-8"))

    # readable error before the generic jsonschema traceback
    if schema_name == RESULT_SCHEMA and isinstance(instance, dict):
        sv = instance.get("schema_version")
        if sv != "analysis_result_v1":
            raise ValueError(
                f"{instance_path}: expected schema_version='analysis_result_v1', got {sv!r}"
            )

    validate_instance(instance, schema_name)
