"""query_doctor: repeated-query and N+1 detection for profiled SQL streams."""

__all__ = [
    "__version__",
    "analyze",
    "analyze_payload",
    "normalize",
    "validate_instance",
]
__version__ = "0.1.0"

# Programmatic engine entrypoints
from query_doctor.api import (  # noqa: E402, F401
    analyze,
    analyze_payload,
    normalize,
    validate_instance,
)
