from __future__ import annotations

"""Process-lifetime hit/miss/eviction counters for the engine caches."""

import threading
from typing import Dict

from .config import CacheCounterSnapshot

QUERY_CACHE = "query_cache"
COLLECTION_CACHE = "collection_cache"


class CacheCounters:
    """Monotonic counters for one cache. Only ``reset`` lowers them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def record_hit(self) -> None:
        with self._lock:
            self.hits += 1

    def record_miss(self) -> None:
        with self._lock:
            self.misses += 1

    def record_eviction(self, count: int = 1) -> None:
        with self._lock:
            self.evictions += count

    def reset(self) -> None:
        with self._lock:
            self.hits = 0
            self.misses = 0
            self.evictions = 0

    def snapshot(self) -> CacheCounterSnapshot:
        with self._lock:
            return CacheCounterSnapshot(hits=self.hits, misses=self.misses, evictions=self.evictions)


class StatsCollector:
    """
    Counters for every cache owned by one engine, plus the index build count.
    """

    def __init__(self) -> None:
        self.query_cache = CacheCounters()
        self.collection_cache = CacheCounters()
        self._lock = threading.Lock()
        self._index_builds = 0

    @property
    def index_builds(self) -> int:
        return self._index_builds

    def record_index_build(self) -> None:
        with self._lock:
            self._index_builds += 1

    def per_cache(self) -> Dict[str, CacheCounterSnapshot]:
        return {
            QUERY_CACHE: self.query_cache.snapshot(),
            COLLECTION_CACHE: self.collection_cache.snapshot(),
        }

    def reset(self) -> None:
        """Zero all counters. Cached data is left untouched."""
        self.query_cache.reset()
        self.collection_cache.reset()
        with self._lock:
            self._index_builds = 0
