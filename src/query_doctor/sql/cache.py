"""Process-wide memoization for pure SQL normalization.

Identical raw SQL recurs heavily inside one profiled run, so normalization
results are cached keyed by the raw text.  The cache is an LRU map bounded by
entry count and guarded by a lock, which makes it safe to share between
analyses running on different threads.  Only pure functions may be cached
here.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterable

DEFAULT_MAX_ENTRIES = 10_000


@dataclass(frozen=True, slots=True)
class CacheStats:
    hits: int
    misses: int
    entries: int
    max_entries: int

    @property
    def hit_rate(self) -> float:
        """Hit percentage rounded to 2 decimals (0.0 when unused)."""
        total = self.hits + self.misses
        return round(self.hits / total * 100, 2) if total else 0.0

    def to_dict(self) -> dict:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "entries": self.entries,
            "max_entries": self.max_entries,
        }


class NormalizationCache:
    """Bounded, thread-safe LRU cache from raw SQL to its normalized form."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._max_entries = max_entries
        self._data: OrderedDict[str, str] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    @property
    def max_entries(self) -> int:
        return self._max_entries

    def get_or_compute(self, key: str, compute: Callable[[str], str]) -> str:
        with self._lock:
            value = self._data.get(key)
            if value is not None:
                self._data.move_to_end(key)
                self._hits += 1
                return value
            self._misses += 1

        # compute outside the lock; a racing thread computes the same value
        value = compute(key)

        with self._lock:
            self._data[key] = value
            self._data.move_to_end(key)
            while len(self._data) > self._max_entries:
                self._data.popitem(last=False)
        return value

    def warm_up(self, sqls: Iterable[str], compute: Callable[[str], str]) -> None:
        """Pre-populate the cache with each distinct SQL text."""
        for sql in dict.fromkeys(sqls):
            self.get_or_compute(sql, compute)

    def resize(self, max_entries: int) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        with self._lock:
            self._max_entries = max_entries
            while len(self._data) > self._max_entries:
                self._data.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                entries=len(self._data),
                max_entries=self._max_entries,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data


_SHARED = NormalizationCache()


def shared_cache() -> NormalizationCache:
    """The process-wide cache used by ``normalize()``."""
    return _SHARED


def configure_shared_cache(max_entries: int) -> None:
    """Size the process-wide cache; call once during process setup."""
    if _SHARED.max_entries != max_entries:
        _SHARED.resize(max_entries)
