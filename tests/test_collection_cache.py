import json
import os

import pytest

from emoji_cache.collection_cache import CollectionCache, parse_collection_file
from emoji_cache.errors import CollectionLoadError, UnknownCollectionError


def _bump_mtime(path, seconds=10):
    st = os.stat(path)
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))


def test_parse_full_and_shorthand_forms(tmp_path, collection_file):
    parsed = parse_collection_file(collection_file)
    assert parsed.names() == ["favorites", "moods"]
    assert parsed.get("favorites").description == "daily use"
    assert parsed.get("favorites").emojis == ["🚀", "❤️", "🔥"]

    short = tmp_path / "short.json"
    short.write_text(json.dumps({"work": ["👍", "✅"]}), encoding="utf-8")
    assert parse_collection_file(short).get("work").emojis == ["👍", "✅"]


def test_unknown_collection_name(collection_file):
    parsed = parse_collection_file(collection_file)
    with pytest.raises(UnknownCollectionError):
        parsed.get("nope")


def test_second_get_is_a_hit(collection_file):
    cache = CollectionCache()
    first = cache.get(collection_file)
    second = cache.get(collection_file)

    assert first is second
    snap = cache._stats.snapshot()
    assert (snap.hits, snap.misses) == (1, 1)


def test_mtime_change_reparses(collection_file):
    cache = CollectionCache()
    assert cache.get(collection_file).get("favorites").emojis == ["🚀", "❤️", "🔥"]

    collection_file.write_text(
        json.dumps({"collections": {"favorites": {"emojis": ["⭐"]}}}), encoding="utf-8"
    )
    _bump_mtime(collection_file)

    fresh = cache.get(collection_file)
    assert fresh.get("favorites").emojis == ["⭐"]
    assert fresh.names() == ["favorites"]


def test_same_mtime_serves_cached_content(collection_file):
    cache = CollectionCache()
    cache.get(collection_file)
    st = os.stat(collection_file)

    collection_file.write_text(json.dumps({"other": ["⭐"]}), encoding="utf-8")
    os.utime(collection_file, ns=(st.st_atime_ns, st.st_mtime_ns))

    # mtime is the only invalidation signal
    assert cache.get(collection_file).names() == ["favorites", "moods"]


def test_unparsable_file_raises_and_is_not_cached(collection_file):
    cache = CollectionCache()
    cache.get(collection_file)

    collection_file.write_text("{not json", encoding="utf-8")
    _bump_mtime(collection_file)
    with pytest.raises(CollectionLoadError):
        cache.get(collection_file)
    assert collection_file not in cache

    collection_file.write_text(json.dumps({"fixed": ["🔥"]}), encoding="utf-8")
    _bump_mtime(collection_file, seconds=20)
    assert cache.get(collection_file).names() == ["fixed"]


def test_schema_errors_raise_collection_load_error(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"collections": {"x": {"emojis": "not-a-list"}}}), encoding="utf-8")
    with pytest.raises(CollectionLoadError):
        parse_collection_file(path)


def test_missing_file_raises(tmp_path):
    cache = CollectionCache()
    with pytest.raises(CollectionLoadError):
        cache.get(tmp_path / "missing.json")


def test_disabled_cache_parses_every_time(collection_file):
    cache = CollectionCache(enabled=False)
    first = cache.get(collection_file)
    second = cache.get(collection_file)

    assert first is not second
    assert len(cache) == 0
    assert cache._stats.snapshot().misses == 2


def test_invalidate_single_path(collection_file):
    cache = CollectionCache()
    cache.get(collection_file)
    cache.invalidate(collection_file)
    assert collection_file not in cache
