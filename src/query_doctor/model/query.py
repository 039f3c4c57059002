"""QueryRecord: one executed statement as handed over by the collector."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

Parameters = Union[tuple, Mapping[str, Any]]


@dataclass(frozen=True, slots=True)
class BacktraceFrame:
    """One frame of the call stack that issued a query."""

    file: str
    line: int
    class_name: Optional[str] = None
    function: Optional[str] = None

    def to_dict(self) -> dict:
        d: dict = {"file": self.file, "line": self.line}
        if self.class_name:
            d["class"] = self.class_name
        if self.function:
            d["function"] = self.function
        return d


@dataclass(frozen=True, slots=True)
class QueryRecord:
    """Immutable record of a single executed SQL statement.

    ``sequence`` is the execution order index within one profiled unit of
    work; records are analysed in that order.
    """

    sql: str
    execution_time_ms: float = 0.0
    parameters: Optional[Parameters] = None
    backtrace: Optional[tuple[BacktraceFrame, ...]] = None
    sequence: int = 0

    def to_dict(self) -> dict:
        d: dict = {
            "sql": self.sql,
            "execution_time_ms": self.execution_time_ms,
            "sequence": self.sequence,
        }
        if self.parameters is not None:
            d["parameters"] = (
                dict(self.parameters)
                if isinstance(self.parameters, Mapping)
                else list(self.parameters)
            )
        if self.backtrace:
            d["backtrace"] = [frame.to_dict() for frame in self.backtrace]
        return d
