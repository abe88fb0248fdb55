from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
DATASET_PATH = Path(os.getenv("EMOJI_CACHE_DATASET", str(DATA_DIR / "emoji.csv")))
COLLECTIONS_PATH = Path(
    os.getenv("EMOJI_CACHE_COLLECTIONS", str(DATA_DIR / "collections.json"))
)


# ---------------------------
# Cache defaults
# ---------------------------

DEFAULT_QUERY_CACHE_MAX_SIZE = 1000
DEFAULT_QUERY_CACHE_TTL = 300.0  # seconds

# Queries primed at startup when warmup is enabled
DEFAULT_WARMUP_QUERIES: List[str] = [
    "smile",
    "heart",
    "thumbs up",
    "fire",
    "rocket",
    "star",
    "check",
    "party",
]

ENV_PREFIX = "EMOJI_CACHE_"


# ---------------------------
# Logging / observability
# ---------------------------

LOG_DIR = PROJECT_ROOT / "logs"
LOG_FILE_NAME = "emoji_cache.log"
LOG_ROTATION = "10 MB"


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class Record(BaseModel):
    """
    A single indexed emoji.

    Records are immutable; a dataset reload replaces the whole set. ``id`` is
    the record's position in the snapshot it belongs to.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=0)
    character: str = ""
    name: str = ""
    category: str = ""
    keywords: Tuple[str, ...] = ()


class CacheSettings(BaseModel):
    """
    Runtime configuration of a cache engine.

    Every field is hot-swappable through ``CacheEngine.update_settings``.
    """

    model_config = ConfigDict(frozen=True)

    query_cache_max_size: int = Field(DEFAULT_QUERY_CACHE_MAX_SIZE, ge=1)
    query_cache_ttl: float = Field(DEFAULT_QUERY_CACHE_TTL, gt=0)
    warmup_queries: Tuple[str, ...] = tuple(DEFAULT_WARMUP_QUERIES)
    warmup_enabled: bool = True
    collection_cache_enabled: bool = True
    index_cache_enabled: bool = True

    def merged(self, **changes: Any) -> "CacheSettings":
        """Return a validated copy with ``changes`` applied."""
        data = self.model_dump()
        data.update(changes)
        return CacheSettings(**data)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "CacheSettings":
        """
        Build settings from ``EMOJI_CACHE_*`` environment variables.

        Unset variables keep their defaults. ``EMOJI_CACHE_WARMUP_QUERIES`` is a
        comma-separated list.
        """
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for field in cls.model_fields:
            raw = env.get(ENV_PREFIX + field.upper())
            if raw is None:
                continue
            if field == "warmup_queries":
                values[field] = tuple(q.strip() for q in raw.split(",") if q.strip())
            else:
                # pydantic coerces "1"/"true"/"300" into the declared types
                values[field] = raw
        return cls(**values)


class CacheCounterSnapshot(BaseModel):
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class StatsSnapshot(BaseModel):
    """
    Read-only view of the engine counters.
    """

    per_cache: Dict[str, CacheCounterSnapshot]
    index_builds: int = 0
    dataset_version: int = 0
    query_cache_size: int = 0


class RecordItem(BaseModel):
    character: str
    name: str
    category: str
    keywords: List[str]


class SearchResponse(BaseModel):
    """
    Response body for GET /search.
    """

    query: str
    results: List[RecordItem]


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str
    dataset_version: int = 0
