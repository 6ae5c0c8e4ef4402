"""Tests for the per-server content cache."""

from xtreamsync.database import KeyValueStore
from xtreamsync.models.catalog import Category, Channel, ContentKind, Movie
from xtreamsync.services.cache_service import SCHEMA_VERSIONS, CacheService

SERVER = "srv-1"


def _channel(id, category_id=1, name=None):
    return Channel(id=id, name=name or f"Channel {id}", category_id=category_id)


def _movie(id, category_id=10):
    return Movie(id=id, name=f"Movie {id}", category_id=category_id, extension="mkv")


def _reloaded(db_path):
    service = CacheService(KeyValueStore(db_path, "content_cache"))
    service.load_cache_from_disk()
    return service


class TestCategories:
    def test_unknown_server_is_miss(self, cache):
        assert cache.get_cached_categories("nope", ContentKind.LIVE) is None

    def test_round_trip(self, cache):
        cats = [Category(id=1, name="News", kind=ContentKind.LIVE)]
        cache.set_cached_categories(SERVER, ContentKind.LIVE, cats)
        assert cache.get_cached_categories(SERVER, ContentKind.LIVE) == cats
        assert cache.get_cached_categories(SERVER, ContentKind.MOVIE) is None


class TestItems:
    def test_bucket_is_replaced_wholesale(self, cache):
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(1), _channel(2)])
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(3)])
        assert [c.id for c in cache.get_cached_items(SERVER, ContentKind.LIVE, 1)] == [3]

    def test_empty_bucket_is_a_hit(self, cache):
        cache.set_cached_items(SERVER, ContentKind.SERIES, 5, [])
        assert cache.get_cached_items(SERVER, ContentKind.SERIES, 5) == []
        assert cache.get_cached_items(SERVER, ContentKind.SERIES, 6) is None

    def test_all_items_dedup_last_written_wins(self, cache):
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(7, 1, "Old name"), _channel(8, 1)])
        cache.set_cached_items(SERVER, ContentKind.LIVE, 2, [_channel(7, 2, "New name")])
        items = cache.get_all_cached_items(SERVER, ContentKind.LIVE)
        assert sorted(i.id for i in items) == [7, 8]
        assert next(i for i in items if i.id == 7).name == "New name"

        # Rewriting bucket 1 makes it the latest write.
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(7, 1, "Newest name")])
        items = cache.get_all_cached_items(SERVER, ContentKind.LIVE)
        assert next(i for i in items if i.id == 7).name == "Newest name"

    def test_all_items_empty_is_miss(self, cache):
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [])
        assert cache.get_all_cached_items(SERVER, ContentKind.LIVE) is None

    def test_version_mismatch_is_miss(self, cache):
        cache.set_cached_items(SERVER, ContentKind.MOVIE, 10, [_movie(1)])
        bucket = cache._caches[SERVER].items[ContentKind.MOVIE][10]
        bucket.version = SCHEMA_VERSIONS[ContentKind.MOVIE] - 1
        assert cache.get_cached_items(SERVER, ContentKind.MOVIE, 10) is None
        assert cache.get_all_cached_items(SERVER, ContentKind.MOVIE) is None


class TestClear:
    def test_clear_drops_everything(self, cache):
        cache.set_cached_categories(SERVER, ContentKind.LIVE, [Category(id=1, name="A", kind=ContentKind.LIVE)])
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(1)])
        cache.clear(SERVER)
        assert cache.get_cached_categories(SERVER, ContentKind.LIVE) is None
        assert cache.get_cached_items(SERVER, ContentKind.LIVE, 1) is None
        assert cache.get_stats(SERVER).channels == 0

    def test_clear_kind_keeps_other_kinds(self, cache):
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(1)])
        cache.set_cached_items(SERVER, ContentKind.MOVIE, 10, [_movie(2)])
        cache.clear_kind(SERVER, ContentKind.LIVE)
        assert cache.get_cached_items(SERVER, ContentKind.LIVE, 1) is None
        assert [m.id for m in cache.get_cached_items(SERVER, ContentKind.MOVIE, 10)] == [2]

    def test_servers_are_isolated(self, cache):
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(1)])
        cache.set_cached_items("srv-2", ContentKind.LIVE, 1, [_channel(2)])
        cache.forget_server("srv-2")
        assert cache.get_cached_items("srv-2", ContentKind.LIVE, 1) is None
        assert [c.id for c in cache.get_cached_items(SERVER, ContentKind.LIVE, 1)] == [1]


class TestPersistence:
    def test_survives_reload(self, cache, db_path):
        cache.set_cached_categories(SERVER, ContentKind.MOVIE, [Category(id=10, name="Action", kind=ContentKind.MOVIE)])
        cache.set_cached_items(SERVER, ContentKind.MOVIE, 10, [_movie(1), _movie(2)])

        reloaded = _reloaded(db_path)
        assert [c.name for c in reloaded.get_cached_categories(SERVER, ContentKind.MOVIE)] == ["Action"]
        assert [m.extension for m in reloaded.get_cached_items(SERVER, ContentKind.MOVIE, 10)] == ["mkv", "mkv"]
        assert reloaded.get_stats(SERVER).movies == 2

    def test_legacy_movie_records_are_dropped(self, db_path):
        store = KeyValueStore(db_path, "content_cache")
        store.save({SERVER: {
            "categories": {"movie": [{"id": 10, "name": "Action", "kind": "movie"}]},
            "items": {"movie": {"10": {"version": 1, "items": [{"id": 1, "name": "Old", "category_id": 10}]}}},
            "last_updated": 1,
        }})
        reloaded = _reloaded(db_path)
        assert reloaded.get_cached_items(SERVER, ContentKind.MOVIE, 10) is None
        assert reloaded.get_cached_categories(SERVER, ContentKind.MOVIE) is not None

    def test_deferred_save_writes_once_on_exit(self, cache, db_path):
        with cache.deferred_save(SERVER):
            cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(1)])
            assert _reloaded(db_path).get_cached_items(SERVER, ContentKind.LIVE, 1) is None
        assert [c.id for c in _reloaded(db_path).get_cached_items(SERVER, ContentKind.LIVE, 1)] == [1]


class TestStats:
    def test_counts(self, cache):
        cache.set_cached_categories(SERVER, ContentKind.LIVE, [
            Category(id=1, name="A", kind=ContentKind.LIVE),
            Category(id=2, name="B", kind=ContentKind.LIVE),
        ])
        cache.set_cached_items(SERVER, ContentKind.LIVE, 1, [_channel(1), _channel(2)])
        cache.set_cached_items(SERVER, ContentKind.LIVE, 2, [_channel(2, 2), _channel(3, 2)])
        stats = cache.get_stats(SERVER)
        assert stats.live_categories == 2
        assert stats.channels == 3
        assert stats.movies == 0
        assert stats.last_updated > 0
