"""Centralized exit-code contract for all CLI commands.

Code  Meaning
----  -------
  0   Success: no finding at or above the fail level
  1   Violation: at least one finding at or above the fail level
  2   Error: usage error, missing or invalid input, invalid config
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    VIOLATION = 1
    ERROR = 2
