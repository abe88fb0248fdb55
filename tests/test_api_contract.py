from fastapi.testclient import TestClient

from emoji_cache import api
from emoji_cache.api import app
from emoji_cache.engine import CacheEngine


client = TestClient(app)


def _install_engine(monkeypatch, records, collection_path=None):
    engine = CacheEngine(records=records, collection_path=collection_path)
    monkeypatch.setattr(api, "_engine", engine)
    return engine


def test_health_endpoint(monkeypatch, records):
    _install_engine(monkeypatch, records)
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy", "dataset_version": 1}


def test_search_returns_records(monkeypatch, records):
    _install_engine(monkeypatch, records)
    resp = client.get("/search", params={"q": "rocket"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["query"] == "rocket"
    assert data["results"][0]["name"] == "rocket"
    assert data["results"][0]["keywords"] == ["space", "launch", "ship"]


def test_search_with_broken_collection_is_an_error(monkeypatch, records, tmp_path):
    broken = tmp_path / "c.json"
    broken.write_text("[not json", encoding="utf-8")
    _install_engine(monkeypatch, records, collection_path=broken)

    resp = client.get("/search", params={"q": "heart", "collection": "favorites"})
    assert resp.status_code == 500
    assert "collection" in resp.json()["detail"]


def test_search_unknown_collection_is_404(monkeypatch, records, collection_file):
    _install_engine(monkeypatch, records, collection_path=collection_file)
    resp = client.get("/search", params={"q": "heart", "collection": "nope"})
    assert resp.status_code == 404


def test_category_and_stats(monkeypatch, records):
    _install_engine(monkeypatch, records)

    resp = client.get("/category/Travel%20%26%20Places")
    assert resp.status_code == 200
    assert [r["name"] for r in resp.json()] == ["rocket", "fire", "star"]

    client.get("/search", params={"q": "fire"})
    client.get("/search", params={"q": "fire"})
    stats = client.get("/stats").json()
    assert stats["per_cache"]["query_cache"]["hits"] == 1
    assert stats["per_cache"]["query_cache"]["misses"] == 1


def test_admin_clear_rebuilds(monkeypatch, records):
    engine = _install_engine(monkeypatch, records)
    client.get("/search", params={"q": "fire"})

    resp = client.post("/admin/clear", params={"rebuild_indices": True})
    assert resp.status_code == 200
    assert resp.json()["dataset_version"] == 2
    assert len(engine.query_cache) == 0


def test_engine_missing_is_500(monkeypatch):
    monkeypatch.setattr(api, "_engine", None)
    resp = client.get("/search", params={"q": "fire"})
    assert resp.status_code == 500


def test_collections_endpoint(monkeypatch, records, collection_file):
    _install_engine(monkeypatch, records, collection_path=collection_file)
    resp = client.get("/collections")
    assert resp.status_code == 200
    assert resp.json() == ["favorites", "moods"]


def test_collections_without_file_is_500(monkeypatch, records):
    _install_engine(monkeypatch, records)
    resp = client.get("/collections")
    assert resp.status_code == 500
    assert "no collection file configured" in resp.json()["detail"]
