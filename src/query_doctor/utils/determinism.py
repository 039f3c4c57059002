"""Determinism utilities for CI-reproducible output.

In CI mode the run timestamp is fixed and the run id is derived from the
analysed SQL stream, so identical input produces byte-identical artifacts.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Iterable

# Fixed timestamp for CI mode (ISO 8601 with timezone)
FIXED_TIMESTAMP = "2000-01-01T00:00:00+00:00"


def deterministic_timestamp(ci_mode: bool = False) -> str:
    """FIXED_TIMESTAMP in CI mode, current UTC time otherwise."""
    if ci_mode:
        return FIXED_TIMESTAMP
    return datetime.now(timezone.utc).isoformat()


def deterministic_run_id(sqls: Iterable[str], ci_mode: bool = False) -> str:
    """Content-hash run id in CI mode, random otherwise."""
    if ci_mode:
        digest = hashlib.sha256()
        for sql in sqls:
            digest.update(sql.encode("utf-8"))
            digest.update(b"\0")
        return f"ci-{digest.hexdigest()[:16]}"
    return f"run-{uuid.uuid4().hex[:16]}"
