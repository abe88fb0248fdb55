from __future__ import annotations

"""
LRU + TTL cache of search results.

Entries live in an arena (parallel slot lists) threaded by a doubly linked
recency list, with a dict from key to slot. Lookups, touches, inserts and
evictions are O(1); freed slots are recycled through a free list.

TTL is measured from insertion and checked lazily on ``get``; there is no
background sweep. Each entry also remembers the dataset version it was
computed against, so a result resolved before a reload can neither be served
nor stored after it.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from .normalize import normalize_query
from .stats import CacheCounters

_NIL = -1


@dataclass(frozen=True)
class QueryKey:
    """
    Normalised query parameters. Equal keys share one cache slot.

    ``scope_stamp`` is the modification stamp of the collection file a scoped
    query was resolved against; it is ``None`` for unscoped queries.
    """

    text: str
    collection_scope: Optional[str] = None
    exact_match: bool = False
    scope_stamp: Optional[int] = None


def make_key(
    query_text: str | None,
    collection_scope: Optional[str] = None,
    exact_match: bool = False,
    scope_stamp: Optional[int] = None,
) -> QueryKey:
    scope = collection_scope.strip() if collection_scope else None
    return QueryKey(
        text=normalize_query(query_text),
        collection_scope=scope or None,
        exact_match=bool(exact_match),
        scope_stamp=scope_stamp if scope else None,
    )


@dataclass
class CacheEntry:
    key: QueryKey
    result_ids: Tuple[int, ...]
    inserted_at: float
    last_accessed_at: float
    version: int


class QueryCache:
    """
    Fixed-capacity LRU cache with per-entry TTL.

    All mutation happens under one lock. ``get`` also mutates (it refreshes
    recency), so it takes the same lock.
    """

    def __init__(
        self,
        max_size: int,
        ttl: float,
        stats: Optional[CacheCounters] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        self._max_size = int(max_size)
        self._ttl = float(ttl)
        self._stats = stats if stats is not None else CacheCounters()
        self._clock = clock
        self._lock = threading.RLock()
        self._generation = 0

        self._slots: List[Optional[CacheEntry]] = []
        self._prev: List[int] = []
        self._next: List[int] = []
        self._free: List[int] = []
        self._index: Dict[QueryKey, int] = {}
        self._head = _NIL  # most recently used
        self._tail = _NIL  # least recently used

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def ttl(self) -> float:
        return self._ttl

    @property
    def generation(self) -> int:
        """Dataset version the cache currently accepts entries for."""
        return self._generation

    @property
    def stats(self) -> CacheCounters:
        return self._stats

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    # ------------------------------------------------------------------
    # Recency list
    # ------------------------------------------------------------------

    def _link_front(self, slot: int) -> None:
        self._prev[slot] = _NIL
        self._next[slot] = self._head
        if self._head != _NIL:
            self._prev[self._head] = slot
        self._head = slot
        if self._tail == _NIL:
            self._tail = slot

    def _unlink(self, slot: int) -> None:
        prev, nxt = self._prev[slot], self._next[slot]
        if prev != _NIL:
            self._next[prev] = nxt
        else:
            self._head = nxt
        if nxt != _NIL:
            self._prev[nxt] = prev
        else:
            self._tail = prev
        self._prev[slot] = _NIL
        self._next[slot] = _NIL

    def _alloc(self, entry: CacheEntry) -> int:
        if self._free:
            slot = self._free.pop()
            self._slots[slot] = entry
        else:
            slot = len(self._slots)
            self._slots.append(entry)
            self._prev.append(_NIL)
            self._next.append(_NIL)
        self._index[entry.key] = slot
        return slot

    def _release(self, slot: int) -> CacheEntry:
        entry = self._slots[slot]
        assert entry is not None
        self._unlink(slot)
        self._slots[slot] = None
        self._free.append(slot)
        del self._index[entry.key]
        return entry

    def _eviction_candidate(self) -> int:
        # last_accessed_at is non-decreasing from tail to head; among entries
        # tied with the tail, the oldest insertion goes first.
        best = self._tail
        best_entry = self._slots[best]
        assert best_entry is not None
        cur = self._prev[best]
        while cur != _NIL:
            entry = self._slots[cur]
            assert entry is not None
            if entry.last_accessed_at != best_entry.last_accessed_at:
                break
            if entry.inserted_at < best_entry.inserted_at:
                best, best_entry = cur, entry
            cur = self._prev[cur]
        return best

    def _evict_one(self) -> None:
        entry = self._release(self._eviction_candidate())
        self._stats.record_eviction()
        logger.debug("Query cache evicted {!r}", entry.key.text)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, key: QueryKey, version: Optional[int] = None) -> Optional[List[int]]:
        """
        Return cached result ids for ``key``, or ``None`` on a miss.

        Expired entries and entries computed against a dataset version other
        than ``version`` are removed and counted as misses.
        """
        with self._lock:
            slot = self._index.get(key)
            if slot is None:
                self._stats.record_miss()
                return None

            entry = self._slots[slot]
            assert entry is not None
            now = self._clock()
            if now - entry.inserted_at > self._ttl:
                self._release(slot)
                self._stats.record_miss()
                logger.debug("Query cache entry {!r} expired", key.text)
                return None
            if version is not None and entry.version != version:
                self._release(slot)
                self._stats.record_miss()
                return None

            entry.last_accessed_at = now
            self._unlink(slot)
            self._link_front(slot)
            self._stats.record_hit()
            return list(entry.result_ids)

    def put(self, key: QueryKey, result_ids: Sequence[int], version: Optional[int] = None) -> bool:
        """
        Store ``result_ids`` under ``key``.

        Returns False when ``version`` is older than the cache generation, i.e.
        the result was resolved against a snapshot that has since been replaced.
        """
        with self._lock:
            if version is not None and version != self._generation:
                logger.debug(
                    "Dropping result for {!r} computed against version {} (current {})",
                    key.text,
                    version,
                    self._generation,
                )
                return False

            now = self._clock()
            ids = tuple(result_ids)
            slot = self._index.get(key)
            if slot is not None:
                entry = self._slots[slot]
                assert entry is not None
                entry.result_ids = ids
                entry.inserted_at = now
                entry.last_accessed_at = now
                entry.version = self._generation
                self._unlink(slot)
                self._link_front(slot)
                return True

            if len(self._index) >= self._max_size:
                self._evict_one()

            entry = CacheEntry(
                key=key,
                result_ids=ids,
                inserted_at=now,
                last_accessed_at=now,
                version=self._generation,
            )
            self._link_front(self._alloc(entry))
            return True

    def invalidate_all(self, generation: Optional[int] = None) -> int:
        """
        Drop every entry; stats counters are kept.

        When ``generation`` is given, only results for that dataset version are
        accepted afterwards. Returns the number of entries dropped.
        """
        with self._lock:
            dropped = len(self._index)
            self._slots.clear()
            self._prev.clear()
            self._next.clear()
            self._free.clear()
            self._index.clear()
            self._head = _NIL
            self._tail = _NIL
            if generation is not None:
                self._generation = generation
        logger.info("Query cache invalidated: {} entries dropped", dropped)
        return dropped

    def resize(self, max_size: int) -> int:
        """Change capacity, evicting LRU entries down to the new bound."""
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        evicted = 0
        with self._lock:
            self._max_size = int(max_size)
            while len(self._index) > self._max_size:
                self._evict_one()
                evicted += 1
        if evicted:
            logger.info("Query cache resized to {}: {} entries evicted", max_size, evicted)
        return evicted

    def set_ttl(self, ttl: float) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        with self._lock:
            self._ttl = float(ttl)

    def keys(self) -> List[QueryKey]:
        """Cached keys, most recently used first. Does not touch recency or stats."""
        with self._lock:
            out: List[QueryKey] = []
            cur = self._head
            while cur != _NIL:
                entry = self._slots[cur]
                assert entry is not None
                out.append(entry.key)
                cur = self._next[cur]
            return out

    def peek(self, key: QueryKey) -> Optional[Tuple[int, ...]]:
        """Cached ids for ``key`` without touching recency, TTL or stats."""
        with self._lock:
            slot = self._index.get(key)
            if slot is None:
                return None
            entry = self._slots[slot]
            return entry.result_ids if entry is not None else None
