"""Severity thresholds and finding → exit-code policy: single source of truth.

The scorer, the configuration layer and the CLI exit code all derive their
numbers from this module instead of hard-coding thresholds locally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from query_doctor.model import Severity
from query_doctor.model.finding import Finding
from query_doctor.utils.exit_codes import ExitCode


@dataclass(frozen=True, slots=True)
class SeverityThresholds:
    """Tunable thresholds for (count, total time, type) → severity.

    Counts are compared against the *effective* count, i.e. the raw count
    times ``proxy_multiplier`` for proxy lookups.
    """

    critical_count: float = 20
    critical_time_ms: float = 1000.0
    medium_count: float = 15
    medium_time_ms: float = 500.0
    low_count: float = 10
    proxy_multiplier: float = 1.3

    def __post_init__(self) -> None:
        if not 0 < self.low_count <= self.medium_count <= self.critical_count:
            raise ValueError(
                "count thresholds must satisfy 0 < low <= medium <= critical, got "
                f"{self.low_count}/{self.medium_count}/{self.critical_count}"
            )
        if not 0 < self.medium_time_ms <= self.critical_time_ms:
            raise ValueError(
                "time thresholds must satisfy 0 < medium <= critical, got "
                f"{self.medium_time_ms}/{self.critical_time_ms}"
            )
        if self.proxy_multiplier < 1.0:
            raise ValueError(f"proxy_multiplier must be >= 1.0, got {self.proxy_multiplier}")

    def to_dict(self) -> dict:
        return {
            "critical_count": self.critical_count,
            "critical_time_ms": self.critical_time_ms,
            "medium_count": self.medium_count,
            "medium_time_ms": self.medium_time_ms,
            "low_count": self.low_count,
            "proxy_multiplier": self.proxy_multiplier,
        }


DEFAULT_THRESHOLDS = SeverityThresholds()

DEFAULT_FAIL_ON = Severity.LOW


def exit_code_from_findings(
    findings: Iterable[Finding],
    *,
    fail_on: Severity = DEFAULT_FAIL_ON,
) -> int:
    """Map findings to a CLI exit code.

    Policy: any finding at or above *fail_on* → 1, otherwise → 0.
    """
    if any(f.severity.rank >= fail_on.rank for f in findings):
        return ExitCode.VIOLATION
    return ExitCode.SUCCESS
