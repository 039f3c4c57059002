"""Shared fixtures for the query_doctor test suite."""

from __future__ import annotations

from typing import Sequence

import pytest

from query_doctor.model.query import BacktraceFrame, QueryRecord
from query_doctor.sql.cache import DEFAULT_MAX_ENTRIES, configure_shared_cache, shared_cache


def build_records(sqls: Sequence[str], *, time_ms: float = 1.0) -> list[QueryRecord]:
    """Build sequential records from bare SQL strings."""
    return [
        QueryRecord(sql=sql, execution_time_ms=time_ms, sequence=i)
        for i, sql in enumerate(sqls)
    ]


_ENV_VARS = (
    "CI",
    "QUERY_DOCTOR_DETERMINISTIC",
    "QUERY_DOCTOR_MIN_OCCURRENCES",
    "QUERY_DOCTOR_CHAIN_MIN_OCCURRENCES",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _fresh_cache():
    shared_cache().clear()
    yield
    shared_cache().clear()
    configure_shared_cache(DEFAULT_MAX_ENTRIES)


@pytest.fixture
def proxy_records() -> list[QueryRecord]:
    """Scenario A: ten primary-key lookups on users."""
    return build_records([f"SELECT * FROM users WHERE id = {i}" for i in range(1, 11)])


@pytest.fixture
def collection_records() -> list[QueryRecord]:
    """Scenario B: six per-user post collections."""
    return build_records([f"SELECT * FROM posts WHERE user_id = {i}" for i in range(1, 7)])


@pytest.fixture
def nested_records() -> list[QueryRecord]:
    """Scenario D: one root listing, then author and country lookups per row."""
    sqls = ["SELECT * FROM posts ORDER BY created_at DESC"]
    for i in range(1, 7):
        sqls.append(f"SELECT * FROM users WHERE id = {i}")
        sqls.append(f"SELECT * FROM countries WHERE id = {i * 10}")
    return build_records(sqls)


@pytest.fixture
def vendor_backtrace() -> tuple[BacktraceFrame, ...]:
    return (
        BacktraceFrame(file="/app/vendor/doctrine/orm/src/UnitOfWork.php", line=3021),
        BacktraceFrame(file="/app/src/Controller/PostController.php", line=42,
                       class_name="PostController", function="index"),
    )
