from __future__ import annotations

"""
Invalidation controller: the single writer of engine state.

A dataset reload is applied as one critical section:

1. build indices for the new snapshot (off to the side, nothing published);
2. clear the query cache and move it to the new dataset version;
3. publish snapshot + indices together as one immutable ``EngineState``.

Readers grab ``controller.state`` once per call, so they always pair a
snapshot with the indices built from it. A reader still holding the previous
state can finish its work, but the query cache refuses to store its result
because the version no longer matches.

Collection file changes never come through here; the collection cache
detects them lazily on access.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from loguru import logger

from .config import Record
from .index_build import Indices, build_indices
from .query_cache import QueryCache
from .record_store import DatasetSnapshot, RecordStore
from .stats import StatsCollector


@dataclass(frozen=True)
class EngineState:
    snapshot: DatasetSnapshot
    indices: Indices

    @property
    def version(self) -> int:
        return self.snapshot.version


class InvalidationController:
    def __init__(
        self,
        store: RecordStore,
        query_cache: QueryCache,
        stats: Optional[StatsCollector] = None,
        index_enabled: bool = True,
        builder: Callable[[DatasetSnapshot], Indices] = build_indices,
    ):
        self._store = store
        self._query_cache = query_cache
        self._stats = stats if stats is not None else StatsCollector()
        self._builder = builder
        self._index_enabled = index_enabled
        self._lock = threading.Lock()
        snapshot = store.snapshot
        if query_cache.generation != snapshot.version:
            query_cache.invalidate_all(generation=snapshot.version)
        self._state = EngineState(snapshot=snapshot, indices=self._build(snapshot))

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def index_enabled(self) -> bool:
        return self._index_enabled

    def _build(self, snapshot: DatasetSnapshot) -> Indices:
        if not self._index_enabled:
            return Indices.disabled(snapshot.version)
        indices = self._builder(snapshot)
        self._stats.record_index_build()
        return indices

    def on_dataset_reload(self, snapshot: DatasetSnapshot) -> bool:
        """
        Publish ``snapshot`` with freshly built indices and an empty query cache.

        Returns False (and changes nothing) when the snapshot is not newer than
        the current dataset version.
        """
        with self._lock:
            if not self._store.is_newer(snapshot):
                logger.info(
                    "Dataset version {} unchanged (current {}); skipping reload",
                    snapshot.version,
                    self._store.version,
                )
                return False
            self._publish(snapshot)
        return True

    def reload_records(self, records: Sequence[Record]) -> DatasetSnapshot:
        """
        Publish ``records`` as the next dataset version.

        The version is assigned under the writer lock, so concurrent reloads
        each get their own version and none of them is dropped.
        """
        with self._lock:
            snapshot = self._store.make_snapshot(records)
            self._publish(snapshot)
        return snapshot

    def trigger_reload(self) -> DatasetSnapshot:
        """Re-publish the current records under a new version (manual reload)."""
        with self._lock:
            snapshot = self._store.make_snapshot(self._store.snapshot.records)
            self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot: DatasetSnapshot) -> None:
        # caller holds self._lock
        indices = self._build(snapshot)
        self._query_cache.invalidate_all(generation=snapshot.version)
        self._store.swap(snapshot)
        self._state = EngineState(snapshot=snapshot, indices=indices)
        logger.info("Dataset reload complete: now serving version {}", snapshot.version)

    def set_index_enabled(self, enabled: bool) -> None:
        """
        Switch index use on or off, rebuilding for the current snapshot.

        Cached results are dropped because scan and index paths are resolved
        separately.
        """
        with self._lock:
            if enabled == self._index_enabled:
                return
            self._index_enabled = enabled
            snapshot = self._state.snapshot
            indices = self._build(snapshot)
            self._query_cache.invalidate_all(generation=snapshot.version)
            self._state = EngineState(snapshot=snapshot, indices=indices)
        logger.info("Index cache {}", "enabled" if enabled else "disabled")
