from __future__ import annotations

"""
FastAPI application exposing the emoji cache engine.

- Startup loads the dataset (if present) and schedules warmup without blocking
- Search / lookup endpoints go through the engine's cached paths
- /collections lists the names defined in the collection file
- /stats and /admin/clear expose the observability and reset operations
"""

from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .config import (
    COLLECTIONS_PATH,
    DATASET_PATH,
    LOG_DIR,
    LOG_FILE_NAME,
    LOG_ROTATION,
    CacheSettings,
    HealthResponse,
    Record,
    RecordItem,
    SearchResponse,
    StatsSnapshot,
)
from .engine import CacheEngine
from .errors import CollectionLoadError, UnknownCollectionError


def _to_item(rec: Record) -> RecordItem:
    return RecordItem(
        character=rec.character,
        name=rec.name,
        category=rec.category,
        keywords=list(rec.keywords),
    )


# -----------------------
# FastAPI app + startup
# -----------------------

app = FastAPI()
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_engine: Optional[CacheEngine] = None


@app.on_event("startup")
def startup_event() -> None:
    global _engine
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(LOG_DIR / LOG_FILE_NAME, rotation=LOG_ROTATION, enqueue=True)

    logger.info("Starting emoji cache service...")
    _engine = CacheEngine(settings=CacheSettings.from_env(), collection_path=COLLECTIONS_PATH)
    if DATASET_PATH.exists():
        try:
            snapshot = _engine.load_dataset_file(DATASET_PATH)
            logger.info("Loaded dataset version {} with {} records", snapshot.version, len(snapshot))
        except Exception as e:
            logger.warning("Dataset load failed: {}", e)
    else:
        logger.warning("Dataset file {} not found; serving an empty dataset", DATASET_PATH)

    # Returns immediately; warmup runs on a background worker.
    _engine.start_warmup()
    logger.info("Startup complete.")


@app.on_event("shutdown")
def shutdown_event() -> None:
    global _engine
    if _engine is not None:
        _engine.shutdown()
        _engine = None


def _require_engine() -> CacheEngine:
    if _engine is None:
        raise HTTPException(status_code=500, detail="Cache engine not initialised")
    return _engine


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    version = _engine.dataset_version if _engine is not None else 0
    return HealthResponse(status="healthy", dataset_version=version)


@app.get("/search", response_model=SearchResponse)
def search(q: str = "", collection: Optional[str] = None, exact: bool = False) -> SearchResponse:
    engine = _require_engine()
    try:
        records = engine.search(q, collection_scope=collection, exact_match=exact)
    except UnknownCollectionError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except CollectionLoadError as e:
        # Distinguish "broken collection file" from "no matches"
        raise HTTPException(status_code=500, detail=str(e))
    return SearchResponse(query=q, results=[_to_item(r) for r in records])


@app.get("/collections", response_model=List[str])
def collections() -> List[str]:
    try:
        return _require_engine().collection_names()
    except CollectionLoadError as e:
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/category/{category}", response_model=List[RecordItem])
def by_category(category: str) -> List[RecordItem]:
    return [_to_item(r) for r in _require_engine().get_by_category(category)]


@app.get("/character/{character}", response_model=List[RecordItem])
def by_character(character: str) -> List[RecordItem]:
    return [_to_item(r) for r in _require_engine().get_by_character(character)]


@app.get("/stats", response_model=StatsSnapshot)
def stats() -> StatsSnapshot:
    return _require_engine().get_stats()


@app.post("/admin/clear", response_model=StatsSnapshot)
def clear(rebuild_indices: bool = True) -> StatsSnapshot:
    engine = _require_engine()
    engine.clear_all(rebuild_indices=rebuild_indices)
    return engine.get_stats()
