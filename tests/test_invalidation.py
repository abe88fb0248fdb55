from emoji_cache.config import Record
from emoji_cache.invalidation import InvalidationController
from emoji_cache.query_cache import QueryCache, make_key
from emoji_cache.record_store import DatasetSnapshot, RecordStore
from emoji_cache.stats import StatsCollector


def _controller(clock):
    store = RecordStore()
    cache = QueryCache(max_size=10, ttl=60, clock=clock)
    stats = StatsCollector()
    return store, cache, stats, InvalidationController(store, cache, stats)


def test_reload_publishes_snapshot_and_indices_together(records, clock):
    store, cache, stats, ctl = _controller(clock)
    snap = store.make_snapshot(records)

    assert ctl.on_dataset_reload(snap) is True
    state = ctl.state
    assert state.snapshot is snap
    assert state.indices.version == snap.version == store.version == 1
    assert cache.generation == 1
    assert stats.index_builds == 2  # initial empty build + reload


def test_reload_clears_query_cache(records, clock):
    store, cache, _, ctl = _controller(clock)
    ctl.on_dataset_reload(store.make_snapshot(records))
    cache.put(make_key("heart"), [1, 2], version=1)

    ctl.on_dataset_reload(store.make_snapshot(records))
    assert len(cache) == 0
    # a reader still holding version 1 cannot repopulate the cache
    assert cache.put(make_key("heart"), [1, 2], version=1) is False


def test_stale_or_equal_version_is_ignored(records, clock):
    store, cache, stats, ctl = _controller(clock)
    snap = store.make_snapshot(records)
    ctl.on_dataset_reload(snap)
    cache.put(make_key("fire"), [5], version=1)
    builds = stats.index_builds

    assert ctl.on_dataset_reload(DatasetSnapshot(version=1, records=records[:1])) is False
    assert ctl.state.snapshot is snap
    assert len(cache) == 1
    assert stats.index_builds == builds


def test_trigger_reload_bumps_version_with_same_records(records, clock):
    store, _, _, ctl = _controller(clock)
    ctl.on_dataset_reload(store.make_snapshot(records))

    snap = ctl.trigger_reload()
    assert snap.version == ctl.state.version == 2
    assert ctl.state.snapshot.records == tuple(records)


def test_disabling_indices_publishes_placeholder(records, clock):
    store, cache, _, ctl = _controller(clock)
    ctl.on_dataset_reload(store.make_snapshot(records))
    cache.put(make_key("star"), [6], version=1)

    ctl.set_index_enabled(False)
    assert ctl.state.indices.enabled is False
    assert len(cache) == 0

    ctl.set_index_enabled(True)
    assert ctl.state.indices.lookup_word("star") == {6}


def test_make_snapshot_renumbers_ids(clock):
    store = RecordStore()
    snap = store.make_snapshot([Record(id=7, character="🔥", name="fire")])
    assert snap.records[0].id == 0
    assert snap.get(0).name == "fire"


def test_reload_records_assigns_version_under_writer_lock(records, clock):
    store, _, _, ctl = _controller(clock)
    ctl.reload_records(records)

    # a snapshot versioned before a manual reload is outdated once it lands
    early = store.make_snapshot(records[:1])
    ctl.trigger_reload()
    assert ctl.on_dataset_reload(early) is False

    # going through reload_records the same data is published
    snap = ctl.reload_records(records[:1])
    assert snap.version == ctl.state.version == 3
    assert ctl.state.snapshot.records == tuple(records[:1])
