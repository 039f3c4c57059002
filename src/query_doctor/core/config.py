"""Analysis configuration dataclass and YAML loader."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from query_doctor.engine.aggregator import DEFAULT_MIN_OCCURRENCES
from query_doctor.engine.chains import DEFAULT_CHAIN_MIN_OCCURRENCES
from query_doctor.engine.classifier import (
    DEFAULT_FOREIGN_KEY_SUFFIXES,
    DEFAULT_PRIMARY_KEY_COLUMNS,
)
from query_doctor.engine.emitter import DEFAULT_VENDOR_MARKERS
from query_doctor.errors import ConfigError
from query_doctor.model import OccurrenceType
from query_doctor.policy.thresholds import DEFAULT_THRESHOLDS, SeverityThresholds
from query_doctor.sql.cache import DEFAULT_MAX_ENTRIES

_logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = (".query-doctor.yaml", ".query-doctor.yml", "query-doctor.yaml")

ENV_MIN_OCCURRENCES = "QUERY_DOCTOR_MIN_OCCURRENCES"
ENV_CHAIN_MIN_OCCURRENCES = "QUERY_DOCTOR_CHAIN_MIN_OCCURRENCES"

CHAIN_OVERLAP_MODES = ("dual", "merge")


@dataclass(frozen=True)
class AnalysisConfig:
    """Immutable analysis configuration.

    ``chain_overlap`` decides what happens to flat findings whose group is
    part of a reported chain: ``dual`` reports both, ``merge`` keeps only the
    chain.
    """

    min_occurrence_threshold: int = DEFAULT_MIN_OCCURRENCES
    chain_min_threshold: int = DEFAULT_CHAIN_MIN_OCCURRENCES
    thresholds: SeverityThresholds = DEFAULT_THRESHOLDS
    chain_overlap: str = "dual"           # dual | merge
    require_root_anchor: bool = True
    primary_key_columns: frozenset[str] = DEFAULT_PRIMARY_KEY_COLUMNS
    foreign_key_suffixes: tuple[str, ...] = DEFAULT_FOREIGN_KEY_SUFFIXES
    relation_hints: Mapping[tuple[str, str], OccurrenceType] = field(default_factory=dict)
    vendor_path_markers: tuple[str, ...] = DEFAULT_VENDOR_MARKERS
    cache_max_entries: int = DEFAULT_MAX_ENTRIES

    def __post_init__(self) -> None:
        if self.min_occurrence_threshold < 2:
            raise ConfigError(
                f"min_occurrence_threshold must be >= 2, got {self.min_occurrence_threshold}"
            )
        if self.chain_min_threshold < 2:
            raise ConfigError(
                f"chain_min_threshold must be >= 2, got {self.chain_min_threshold}"
            )
        if self.chain_overlap not in CHAIN_OVERLAP_MODES:
            raise ConfigError(
                f"chain_overlap must be one of {CHAIN_OVERLAP_MODES}, got {self.chain_overlap!r}"
            )
        if self.cache_max_entries < 1:
            raise ConfigError(f"cache_max_entries must be >= 1, got {self.cache_max_entries}")

    # ── loading ─────────────────────────────────────────────────────

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        """Build a config from a plain mapping (parsed YAML or a dict)."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")

        kwargs: dict[str, Any] = {}
        try:
            for key, value in data.items():
                if key == "thresholds":
                    kwargs[key] = _thresholds(value)
                elif key == "relation_hints":
                    kwargs[key] = _relation_hints(value)
                elif key == "primary_key_columns":
                    kwargs[key] = frozenset(str(v).lower() for v in _as_list(key, value))
                elif key in ("foreign_key_suffixes", "vendor_path_markers"):
                    kwargs[key] = tuple(str(v) for v in _as_list(key, value))
                elif key in ("min_occurrence_threshold", "chain_min_threshold", "cache_max_entries"):
                    kwargs[key] = _as_int(key, value)
                elif key == "require_root_anchor":
                    if not isinstance(value, bool):
                        raise ConfigError(f"require_root_anchor must be a boolean, got {value!r}")
                    kwargs[key] = value
                else:
                    kwargs[key] = str(value)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Path) -> "AnalysisConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as exc:
            raise ConfigError(f"cannot read config {path}: {exc}") from exc
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top level must be a mapping")
        _logger.debug("Loaded config from %s", path)
        return cls.from_mapping(data)

    @classmethod
    def discover(cls, root: Path) -> "AnalysisConfig":
        """Load the first known config file under *root*, else defaults."""
        for name in CONFIG_FILE_NAMES:
            candidate = root / name
            if candidate.is_file():
                return cls.load(candidate)
        return cls()

    def with_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "AnalysisConfig":
        """Apply ``QUERY_DOCTOR_*`` threshold overrides from the environment."""
        env = os.environ if environ is None else environ
        changes: dict[str, int] = {}
        for var, attr in (
            (ENV_MIN_OCCURRENCES, "min_occurrence_threshold"),
            (ENV_CHAIN_MIN_OCCURRENCES, "chain_min_threshold"),
        ):
            raw = env.get(var, "").strip()
            if raw:
                changes[attr] = _as_int(var, raw)
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict:
        return {
            "min_occurrence_threshold": self.min_occurrence_threshold,
            "chain_min_threshold": self.chain_min_threshold,
            "thresholds": self.thresholds.to_dict(),
            "chain_overlap": self.chain_overlap,
            "require_root_anchor": self.require_root_anchor,
            "primary_key_columns": sorted(self.primary_key_columns),
            "foreign_key_suffixes": list(self.foreign_key_suffixes),
            "relation_hints": {
                f"{table}.{column}": kind.value
                for (table, column), kind in sorted(self.relation_hints.items())
            },
            "vendor_path_markers": list(self.vendor_path_markers),
            "cache_max_entries": self.cache_max_entries,
        }


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def _as_list(name: str, value: Any) -> list:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)):
        raise ConfigError(f"{name} must be a list, got {value!r}")
    return list(value)


def _thresholds(value: Any) -> SeverityThresholds:
    if not isinstance(value, dict):
        raise ConfigError(f"thresholds must be a mapping, got {value!r}")
    known = {f.name for f in fields(SeverityThresholds)}
    unknown = sorted(set(value) - known)
    if unknown:
        raise ConfigError(f"unknown threshold keys: {', '.join(unknown)}")
    try:
        return replace(DEFAULT_THRESHOLDS, **{k: float(v) for k, v in value.items()})
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid thresholds: {exc}") from exc


def _relation_hints(value: Any) -> dict[tuple[str, str], OccurrenceType]:
    """``{"posts.author_id": "proxy"}`` → ``{("posts", "author_id"): PROXY}``."""
    if not isinstance(value, dict):
        raise ConfigError(f"relation_hints must be a mapping, got {value!r}")
    hints: dict[tuple[str, str], OccurrenceType] = {}
    for key, kind in value.items():
        table, sep, column = str(key).rpartition(".")
        if not sep or not table or not column:
            raise ConfigError(f"relation hint key must be 'table.column', got {key!r}")
        try:
            hints[(table.lower(), column.lower())] = OccurrenceType(str(kind).lower())
        except ValueError:
            raise ConfigError(f"relation hint {key!r}: unknown type {kind!r}") from None
    return hints
