"""Shared utilities for query_doctor."""

from query_doctor.utils.determinism import (
    FIXED_TIMESTAMP,
    deterministic_run_id,
    deterministic_timestamp,
)
from query_doctor.utils.naming import column_to_relation, table_to_entity, to_camel_case

__all__ = [
    "FIXED_TIMESTAMP",
    "deterministic_run_id",
    "deterministic_timestamp",
    "column_to_relation",
    "table_to_entity",
    "to_camel_case",
]
