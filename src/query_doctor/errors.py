"""Exceptions raised at the package boundary.

The engine itself never raises on SQL content; these cover configuration
files, untrusted input payloads and the CLI.
"""

from __future__ import annotations


class QueryDoctorError(Exception):
    """Base class for every error raised by query_doctor."""


class ConfigError(QueryDoctorError):
    """A configuration file or value is unreadable or invalid."""


class InputError(QueryDoctorError):
    """A query payload could not be read or failed validation."""
