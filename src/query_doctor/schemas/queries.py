"""
Query Payload Schemas
=====================
Input models for a collected SQL stream: either a bare list of records or
an object with a ``queries`` list.  Both camelCase and snake_case keys are
accepted (``executionTimeMs`` / ``execution_time_ms``).
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from query_doctor.errors import InputError
from query_doctor.model.query import BacktraceFrame, QueryRecord


class BacktraceFrameIn(BaseModel):
    """One call-stack frame"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file: str = Field(..., description="Source file path")
    line: int = Field(default=0, ge=0, description="Line number")
    class_name: Optional[str] = Field(default=None, alias="class")
    function: Optional[str] = Field(default=None)

    def to_frame(self) -> BacktraceFrame:
        return BacktraceFrame(
            file=self.file,
            line=self.line,
            class_name=self.class_name,
            function=self.function,
        )


class QueryRecordIn(BaseModel):
    """One executed statement as reported by the collector"""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={
            "example": {
                "sql": "SELECT * FROM users WHERE id = 7",
                "executionTimeMs": 0.42,
                "parameters": [7],
                "backtrace": [{"file": "src/Controller/PostController.php", "line": 42}],
            }
        },
    )

    sql: str = Field(..., description="Executed SQL text")
    execution_time_ms: float = Field(
        default=0.0, ge=0, allow_inf_nan=False, alias="executionTimeMs"
    )
    parameters: Optional[Union[List[Any], Dict[str, Any]]] = Field(default=None, alias="params")
    backtrace: Optional[List[BacktraceFrameIn]] = Field(default=None)
    sequence: Optional[int] = Field(default=None, ge=0)

    def to_record(self, position: int) -> QueryRecord:
        params: Any = self.parameters
        if isinstance(params, list):
            params = tuple(params)
        return QueryRecord(
            sql=self.sql,
            execution_time_ms=self.execution_time_ms,
            parameters=params,
            backtrace=(
                tuple(frame.to_frame() for frame in self.backtrace)
                if self.backtrace
                else None
            ),
            sequence=self.sequence if self.sequence is not None else position,
        )


class QueryPayload(BaseModel):
    """Wrapper form: ``{"queries": [...]}``"""

    model_config = ConfigDict(extra="ignore")

    queries: List[QueryRecordIn] = Field(..., description="Statements in execution order")

    def to_records(self) -> list[QueryRecord]:
        return [q.to_record(i) for i, q in enumerate(self.queries)]


def parse_payload(data: Any) -> list[QueryRecord]:
    """Validate a decoded JSON payload and convert it to ``QueryRecord``s.

    Raises ``InputError`` when the payload does not validate.
    """
    if isinstance(data, list):
        data = {"queries": data}
    if not isinstance(data, dict):
        raise InputError(
            f"query payload must be a list or an object with 'queries', got {type(data).__name__}"
        )
    try:
        payload = QueryPayload.model_validate(data)
    except ValidationError as exc:
        raise InputError(f"invalid query payload: {exc}") from exc
    return payload.to_records()


def load_payload(path: Path) -> list[QueryRecord]:
    """Read a JSON payload file and convert it to ``QueryRecord``s."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise InputError(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InputError(f"{path} is not valid JSON: {exc}") from exc
    return parse_payload(data)
