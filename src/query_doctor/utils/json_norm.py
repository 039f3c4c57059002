"""Canonical JSON serialization: the single dump path for CLI artifacts.

Guarantees:
  - stable key ordering (``sort_keys=True``)
  - trailing newline at EOF
  - objects with ``to_dict()`` and enums converted to builtins
  - optional CI-mode float rounding (4 digits)
"""

from __future__ import annotations

import json
import math
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

CI_FLOAT_DIGITS = 4


def _to_builtin(obj: Any, *, round_to: int | None) -> Any:
    if obj is None or isinstance(obj, (str, bool, int)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, float):
        if round_to is None:
            return obj
        # JSON has no NaN/inf; keep them stable as strings
        if math.isnan(obj) or math.isinf(obj):
            return str(obj)
        return round(obj, round_to)
    if isinstance(obj, Path):
        return obj.as_posix()
    if hasattr(obj, "to_dict"):
        return _to_builtin(obj.to_dict(), round_to=round_to)
    if isinstance(obj, Mapping):
        return {str(k): _to_builtin(v, round_to=round_to) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = [_to_builtin(v, round_to=round_to) for v in obj]
        return sorted(items, key=repr) if isinstance(obj, (set, frozenset)) else items
    return str(obj)


def stable_json_dumps(obj: Any, *, ci_mode: bool = False, indent: int | None = 2) -> str:
    """Canonical JSON text for *obj*; floats rounded when *ci_mode* is set."""
    built = _to_builtin(obj, round_to=CI_FLOAT_DIGITS if ci_mode else None)
    return json.dumps(built, indent=indent, sort_keys=True, ensure_ascii=False) + "\n"
