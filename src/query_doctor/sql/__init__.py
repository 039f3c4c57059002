"""Lexical SQL handling: tokenizing, normalization and structure extraction."""

from query_doctor.sql.cache import CacheStats, NormalizationCache, shared_cache
from query_doctor.sql.normalizer import normalize, normalize_uncached
from query_doctor.sql.structure import EqualityTarget, SqlStructure, extract_structure

__all__ = [
    "CacheStats",
    "EqualityTarget",
    "NormalizationCache",
    "SqlStructure",
    "extract_structure",
    "normalize",
    "normalize_uncached",
    "shared_cache",
]
