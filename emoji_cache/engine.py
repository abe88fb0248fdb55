from __future__ import annotations

"""
CacheEngine: the search entry point and owner of every cache.

Search flow:

    query -> QueryKey -> query cache
        hit  -> records from the current snapshot
        miss -> character index, then word indices (name OR keyword per token,
                AND across tokens) -> collection scope -> scan fallback
             -> query cache put -> records

Index-derived results win whenever they are non-empty. When they are empty
and the query is not a single clean token, a substring scan over names and
keywords runs instead. A clean token such as "rock" only ever matches whole
indexed words.

Engines hold no module-level state, so several can coexist in one process.
"""

import os
import time
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Sequence, Set, Union

from loguru import logger

from .collection_cache import Collection, CollectionCache, CollectionSlot
from .config import CacheSettings, Record, StatsSnapshot
from .dataset import load_records
from .errors import CollectionLoadError
from .invalidation import EngineState, InvalidationController
from .normalize import is_clean_token, normalize_query, tokenize, tokenize_all
from .query_cache import QueryKey, QueryCache, make_key
from .record_store import DatasetSnapshot, RecordStore
from .stats import StatsCollector
from .warmup import WarmupCoordinator

PathLike = Union[str, os.PathLike]


def _is_indexable(rec: Record) -> bool:
    # Mirrors the index builder: malformed records are never matched.
    return bool(rec.character.strip()) and bool(rec.name.strip())


def _scan(snapshot: DatasetSnapshot, predicate: Callable[[Record], bool]) -> Set[int]:
    return {rec.id for rec in snapshot.records if _is_indexable(rec) and predicate(rec)}


class CacheEngine:
    """
    In-process lookup accelerator over one emoji dataset.

    ``CacheEngine(...)`` creates an engine with an empty dataset (version 0);
    feed it with ``load_records`` / ``load_snapshot`` and release it with
    ``shutdown`` (or use it as a context manager).
    """

    def __init__(
        self,
        settings: Optional[CacheSettings] = None,
        collection_path: Optional[PathLike] = None,
        records: Optional[Sequence[Record]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings if settings is not None else CacheSettings()
        self.collection_path: Optional[Path] = Path(collection_path) if collection_path else None

        self.stats = StatsCollector()
        self.store = RecordStore()
        self.query_cache = QueryCache(
            max_size=self._settings.query_cache_max_size,
            ttl=self._settings.query_cache_ttl,
            stats=self.stats.query_cache,
            clock=clock,
        )
        self.collection_cache = CollectionCache(
            stats=self.stats.collection_cache,
            enabled=self._settings.collection_cache_enabled,
        )
        self.controller = InvalidationController(
            self.store,
            self.query_cache,
            self.stats,
            index_enabled=self._settings.index_cache_enabled,
        )
        self.warmup_coordinator = WarmupCoordinator(self.search)

        if records is not None:
            self.load_records(records)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def __enter__(self) -> "CacheEngine":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = False) -> None:
        """Cancel warmup and drop cached data."""
        self.warmup_coordinator.shutdown(wait=wait)
        self.query_cache.invalidate_all()
        self.collection_cache.invalidate()
        logger.info("Cache engine shut down")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def settings(self) -> CacheSettings:
        return self._settings

    def update_settings(self, **changes: Any) -> CacheSettings:
        """
        Apply a validated settings change at runtime.

        Shrinking ``query_cache_max_size`` evicts immediately; toggling
        ``index_cache_enabled`` rebuilds (or drops) the indices.
        """
        old = self._settings
        new = old.merged(**changes)

        if new.query_cache_max_size != old.query_cache_max_size:
            self.query_cache.resize(new.query_cache_max_size)
        if new.query_cache_ttl != old.query_cache_ttl:
            self.query_cache.set_ttl(new.query_cache_ttl)
        if new.collection_cache_enabled != old.collection_cache_enabled:
            self.collection_cache.enabled = new.collection_cache_enabled
            if not new.collection_cache_enabled:
                self.collection_cache.invalidate()
        if new.index_cache_enabled != old.index_cache_enabled:
            self.controller.set_index_enabled(new.index_cache_enabled)

        self._settings = new
        logger.info("Cache settings updated: {}", sorted(changes))
        return new

    # ------------------------------------------------------------------
    # Dataset
    # ------------------------------------------------------------------

    @property
    def state(self) -> EngineState:
        return self.controller.state

    @property
    def dataset_version(self) -> int:
        return self.controller.state.version

    def load_snapshot(self, snapshot: DatasetSnapshot) -> bool:
        """Publish a snapshot from the dataset loader. False if not newer."""
        published = self.controller.on_dataset_reload(snapshot)
        if not published:
            logger.warning(
                "Dataset version {} was not published; engine stays on version {}",
                snapshot.version,
                self.dataset_version,
            )
        return published

    def load_records(self, records: Sequence[Record]) -> DatasetSnapshot:
        """Publish ``records`` as the next dataset version and return that snapshot."""
        return self.controller.reload_records(records)

    def load_dataset_file(self, path: Optional[PathLike] = None) -> DatasetSnapshot:
        return self.load_records(load_records(Path(path) if path is not None else None))

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------

    def _collection_slot(self) -> CollectionSlot:
        if self.collection_path is None:
            raise CollectionLoadError(None, "no collection file configured")
        return self.collection_cache.get_slot(self.collection_path)

    def collection_names(self) -> List[str]:
        return self._collection_slot().parsed_content.names()

    def _member_ids(self, state: EngineState, collection: Collection) -> Set[int]:
        """Resolve collection members (characters, or names) to record ids."""
        ids: Set[int] = set()
        for member in collection.emojis:
            member = member.strip()
            if not member:
                continue
            found = self._character_ids(state, member)
            if not found:
                wanted = normalize_query(member)
                found = _scan(state.snapshot, lambda r: normalize_query(r.name) == wanted)
            if not found:
                logger.debug("Collection {!r} member {!r} not in dataset", collection.name, member)
            ids.update(found)
        return ids

    # ------------------------------------------------------------------
    # Matching primitives (index-backed, with scan equivalents)
    # ------------------------------------------------------------------

    @staticmethod
    def _character_ids(state: EngineState, character: str) -> Set[int]:
        if state.indices.enabled:
            return set(state.indices.lookup_character(character))
        return _scan(state.snapshot, lambda r: r.character == character)

    @staticmethod
    def _word_ids(state: EngineState, tokens: List[str]) -> Set[int]:
        if not tokens:
            return set()
        if state.indices.enabled:
            return state.indices.lookup_words(tokens)
        wanted = set(tokens)
        return _scan(
            state.snapshot,
            lambda r: wanted.issubset(set(tokenize(r.name)) | set(tokenize_all(r.keywords))),
        )

    @staticmethod
    def _category_ids(state: EngineState, category: str) -> Set[int]:
        if state.indices.enabled:
            return set(state.indices.lookup_category(category))
        return _scan(state.snapshot, lambda r: r.category == category)

    @staticmethod
    def _fallback_ids(state: EngineState, key: QueryKey) -> Set[int]:
        text = key.text
        if is_clean_token(text):
            return set()
        return _scan(
            state.snapshot,
            lambda r: text in normalize_query(r.name)
            or any(text in normalize_query(kw) for kw in r.keywords),
        )

    def _resolve(self, state: EngineState, key: QueryKey, members: Optional[Set[int]]) -> List[int]:
        if not key.text:
            # An empty query lists the scope, or nothing when unscoped.
            return sorted(members) if members is not None else []

        ids = self._character_ids(state, key.text)
        if not ids:
            ids = self._word_ids(state, tokenize(key.text))
        if members is not None:
            ids &= members

        if not ids:
            ids = self._fallback_ids(state, key)
            if members is not None:
                ids &= members
        return sorted(ids)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def search(
        self,
        query_text: Optional[str],
        collection_scope: Optional[str] = None,
        exact_match: bool = False,
    ) -> List[Record]:
        """
        Search the current dataset.

        Raises ``CollectionLoadError`` when a scope is requested and the
        collection file is unreadable, and ``UnknownCollectionError`` when the
        scope is not defined in it.
        """
        state = self.controller.state
        scope = collection_scope.strip() if collection_scope else None

        collection: Optional[Collection] = None
        stamp: Optional[int] = None
        if scope:
            slot = self._collection_slot()
            collection = slot.parsed_content.get(scope)
            stamp = slot.source_mtime

        key = make_key(query_text, scope, exact_match, stamp)
        ids = self.query_cache.get(key, version=state.version)
        if ids is None:
            members = self._member_ids(state, collection) if collection is not None else None
            ids = self._resolve(state, key, members)
            self.query_cache.put(key, ids, version=state.version)
        return state.snapshot.resolve(ids)

    def get_by_category(self, category: str) -> List[Record]:
        state = self.controller.state
        return state.snapshot.resolve(sorted(self._category_ids(state, category.strip())))

    def get_by_character(self, character: str) -> List[Record]:
        state = self.controller.state
        return state.snapshot.resolve(sorted(self._character_ids(state, character.strip())))

    def categories(self) -> List[str]:
        state = self.controller.state
        if state.indices.enabled:
            return sorted(state.indices.category)
        return sorted({r.category for r in state.snapshot.records if _is_indexable(r) and r.category})

    # ------------------------------------------------------------------
    # Warmup
    # ------------------------------------------------------------------

    def start_warmup(self, queries: Optional[Iterable[str]] = None) -> Optional[Future]:
        """
        Prime the query cache in the background. Never raises.

        Returns the warmup future, or None when warmup is disabled or could not
        be scheduled.
        """
        if not self._settings.warmup_enabled:
            logger.info("Warmup disabled; skipping")
            return None
        batch = list(queries) if queries is not None else list(self._settings.warmup_queries)
        try:
            return self.warmup_coordinator.warmup(batch)
        except Exception as e:
            logger.warning("Warmup could not be scheduled: {}", e)
            return None

    # ------------------------------------------------------------------
    # Stats / administration
    # ------------------------------------------------------------------

    def get_stats(self) -> StatsSnapshot:
        return StatsSnapshot(
            per_cache=self.stats.per_cache(),
            index_builds=self.stats.index_builds,
            dataset_version=self.dataset_version,
            query_cache_size=len(self.query_cache),
        )

    def reset_stats(self) -> None:
        self.stats.reset()

    def clear_all(self, rebuild_indices: bool = True) -> None:
        """
        Drop every cached result and collection slot.

        With ``rebuild_indices`` this is a manual dataset reload: the current
        records are republished under a new version with fresh indices.
        """
        self.collection_cache.invalidate()
        if rebuild_indices:
            self.controller.trigger_reload()
        else:
            self.query_cache.invalidate_all()
        logger.info("Cleared all caches (rebuild_indices={})", rebuild_indices)

