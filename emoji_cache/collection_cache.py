from __future__ import annotations

"""
Cache of parsed collection files, invalidated by modification time.

A collection file groups emoji under user-chosen names::

    {"collections": {"favorites": {"description": "...", "emojis": ["🚀", "🔥"]}}}

A bare ``{"favorites": ["🚀", "🔥"]}`` mapping is accepted as well.

Each distinct path gets one slot. ``get`` stats the file on every call and
re-parses only when the on-disk mtime differs from the one recorded in the
slot. Failures are raised as ``CollectionLoadError`` and never cached, so the
next call retries from scratch.
"""

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .errors import CollectionLoadError, UnknownCollectionError
from .stats import CacheCounters

PathLike = Union[str, os.PathLike]


class Collection(BaseModel):
    name: str
    description: str = ""
    emojis: List[str] = Field(default_factory=list)


class _CollectionBody(BaseModel):
    description: str = ""
    emojis: List[str] = Field(default_factory=list)


class _CollectionFile(BaseModel):
    collections: Dict[str, _CollectionBody]


@dataclass(frozen=True)
class CollectionSet:
    """Parsed content of one collection file."""

    path: Path
    collections: Dict[str, Collection]

    def names(self) -> List[str]:
        return sorted(self.collections)

    def get(self, name: str) -> Collection:
        try:
            return self.collections[name]
        except KeyError:
            raise UnknownCollectionError(name, self.path) from None


@dataclass(frozen=True)
class CollectionSlot:
    source_path: Path
    source_mtime: int  # st_mtime_ns
    parsed_content: CollectionSet


def parse_collection_file(path: PathLike) -> CollectionSet:
    """Read and validate a collection file, raising ``CollectionLoadError``."""
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise CollectionLoadError(p, f"unreadable: {e}") from e
    except json.JSONDecodeError as e:
        raise CollectionLoadError(p, f"invalid JSON: {e}") from e

    if isinstance(raw, dict) and "collections" not in raw:
        # Shorthand form: name -> list of emoji
        raw = {
            "collections": {
                name: body if isinstance(body, dict) else {"emojis": body}
                for name, body in raw.items()
            }
        }

    try:
        parsed = _CollectionFile.model_validate(raw)
    except ValidationError as e:
        raise CollectionLoadError(p, f"invalid collection schema: {e.error_count()} error(s)") from e

    collections = {
        name: Collection(name=name, description=body.description, emojis=body.emojis)
        for name, body in parsed.collections.items()
    }
    return CollectionSet(path=p, collections=collections)


def _stat_mtime(path: Path) -> int:
    try:
        return os.stat(path).st_mtime_ns
    except OSError as e:
        raise CollectionLoadError(path, f"cannot stat: {e}") from e


class CollectionCache:
    """
    One slot per source path, refreshed when the file's mtime changes.
    """

    def __init__(self, stats: Optional[CacheCounters] = None, enabled: bool = True):
        self._stats = stats if stats is not None else CacheCounters()
        self._slots: Dict[Path, CollectionSlot] = {}
        self._lock = threading.Lock()
        self.enabled = enabled

    @staticmethod
    def _slot_key(path: PathLike) -> Path:
        return Path(os.path.abspath(path))

    def get_slot(self, path: PathLike) -> CollectionSlot:
        """
        Return an up-to-date slot for ``path``, re-parsing on mtime change.
        """
        key = self._slot_key(path)
        mtime = _stat_mtime(key)

        if self.enabled:
            with self._lock:
                slot = self._slots.get(key)
            if slot is not None and slot.source_mtime == mtime:
                self._stats.record_hit()
                return slot

        self._stats.record_miss()
        try:
            content = parse_collection_file(key)
        except CollectionLoadError as e:
            logger.warning("Collection load failed: {}", e)
            with self._lock:
                self._slots.pop(key, None)
            raise

        slot = CollectionSlot(source_path=key, source_mtime=mtime, parsed_content=content)
        if self.enabled:
            with self._lock:
                self._slots[key] = slot
            logger.info(
                "Loaded collection file {} ({} collections)", key, len(content.collections)
            )
        return slot

    def get(self, path: PathLike) -> CollectionSet:
        return self.get_slot(path).parsed_content

    def invalidate(self, path: Optional[PathLike] = None) -> None:
        """Drop the slot for ``path``, or every slot when no path is given."""
        with self._lock:
            if path is None:
                self._slots.clear()
            else:
                self._slots.pop(self._slot_key(path), None)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        return self._slot_key(path) in self._slots
