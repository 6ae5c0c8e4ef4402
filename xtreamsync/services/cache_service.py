"""Cache service — per-server content cache of categories and category -> items buckets.

Layout of one server's cache (in memory and, JSON-encoded, in the
``content_cache`` namespace of the key-value store)::

    {
        "categories": {"live": [...], "movie": [...], "series": [...]},
        "items": {
            "live":   {"<category_id>": {"version": 1, "items": [...]}},
            "movie":  {...},
            "series": {...},
        },
        "last_updated": <ms timestamp>,
    }

Each item bucket carries the schema version of the kind it was written
with.  A bucket whose version differs from the current one is never
returned; reads treat it as a miss so the caller re-fetches.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Optional

from pydantic import ValidationError

from xtreamsync.models.catalog import ITEM_MODELS, KINDS, Category, ContentItem, ContentKind
from xtreamsync.models.library import RefreshStats, now_ms

if TYPE_CHECKING:
    from xtreamsync.database import KeyValueStore

logger = logging.getLogger(__name__)

# Bumped whenever a kind's cached record shape changes.  Movie v2 added
# ``extension``; v1 movie buckets are stale.
SCHEMA_VERSIONS: dict[ContentKind, int] = {
    ContentKind.LIVE: 1,
    ContentKind.MOVIE: 2,
    ContentKind.SERIES: 1,
}


@dataclass
class ItemBucket:
    version: int
    items: list[ContentItem]


@dataclass
class ServerCache:
    categories: dict[ContentKind, list[Category]] = field(
        default_factory=lambda: {kind: [] for kind in KINDS}
    )
    items: dict[ContentKind, dict[int, ItemBucket]] = field(
        default_factory=lambda: {kind: {} for kind in KINDS}
    )
    last_updated: int = 0


class CacheService:
    """Holds every server's :class:`ServerCache` and answers reads without network activity."""

    def __init__(self, store: "KeyValueStore"):
        self.store = store
        self._caches: dict[str, ServerCache] = {}
        self._deferred: set[str] = set()
        self._dirty: set[str] = set()

    # ------------------------------------------------------------------
    # Disk persistence
    # ------------------------------------------------------------------

    def load_cache_from_disk(self) -> None:
        raw_caches = self.store.load()
        for server_id, raw in raw_caches.items():
            try:
                self._caches[server_id] = self._deserialize(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.error(f"Failed to load cache for server {server_id}: {e}")
        if self._caches:
            logger.info(f"Loaded content cache for {len(self._caches)} server(s)")
        else:
            logger.info("Content cache is empty")

    def _deserialize(self, raw: dict) -> ServerCache:
        cache = ServerCache(last_updated=int(raw.get("last_updated") or 0))
        for kind in KINDS:
            for cat in (raw.get("categories") or {}).get(kind.value, []):
                try:
                    cache.categories[kind].append(Category.model_validate(cat))
                except ValidationError:
                    logger.warning(f"Dropping malformed cached {kind.value} category: {cat!r}")

            model = ITEM_MODELS[kind]
            for cat_id, bucket in ((raw.get("items") or {}).get(kind.value) or {}).items():
                if not isinstance(bucket, dict):
                    continue
                try:
                    items = [model.model_validate(item) for item in bucket.get("items", [])]
                except ValidationError:
                    # Records written before a schema change: leave the key absent.
                    logger.info(f"Dropping stale {kind.value} bucket {cat_id} (failed validation)")
                    continue
                cache.items[kind][int(cat_id)] = ItemBucket(int(bucket.get("version", 0)), items)
        return cache

    @staticmethod
    def _serialize(cache: ServerCache) -> dict:
        return {
            "categories": {
                kind.value: [cat.model_dump(mode="json") for cat in cache.categories[kind]]
                for kind in KINDS
            },
            "items": {
                kind.value: {
                    str(cat_id): {
                        "version": bucket.version,
                        "items": [item.model_dump(mode="json") for item in bucket.items],
                    }
                    for cat_id, bucket in cache.items[kind].items()
                }
                for kind in KINDS
            },
            "last_updated": cache.last_updated,
        }

    def _persist(self, server_id: str) -> None:
        if server_id in self._deferred:
            self._dirty.add(server_id)
            return
        cache = self._caches.get(server_id)
        if cache is None:
            self.store.delete(server_id)
        else:
            self.store.save({server_id: self._serialize(cache)})

    def flush(self, server_id: str) -> None:
        self._dirty.discard(server_id)
        self._persist(server_id)

    @contextmanager
    def deferred_save(self, server_id: str) -> Iterator[None]:
        """Batch writes for *server_id*; the cache is persisted once on exit."""
        self._deferred.add(server_id)
        try:
            yield
        finally:
            self._deferred.discard(server_id)
            if server_id in self._dirty:
                self.flush(server_id)

    def _get_or_create(self, server_id: str) -> ServerCache:
        cache = self._caches.get(server_id)
        if cache is None:
            cache = ServerCache()
            self._caches[server_id] = cache
        return cache

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def get_cached_categories(self, server_id: str, kind: ContentKind) -> Optional[list[Category]]:
        cache = self._caches.get(server_id)
        if cache is None:
            return None
        categories = cache.categories[ContentKind(kind)]
        return list(categories) if categories else None

    def set_cached_categories(self, server_id: str, kind: ContentKind, categories: list[Category]) -> None:
        cache = self._get_or_create(server_id)
        cache.categories[ContentKind(kind)] = list(categories)
        cache.last_updated = now_ms()
        self._persist(server_id)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_cached_items(
        self, server_id: str, kind: ContentKind, category_id: int
    ) -> Optional[list[ContentItem]]:
        cache = self._caches.get(server_id)
        if cache is None:
            return None
        kind = ContentKind(kind)
        bucket = cache.items[kind].get(int(category_id))
        if bucket is None:
            return None
        if bucket.version != SCHEMA_VERSIONS[kind]:
            logger.debug(
                f"Stale {kind.value} bucket {category_id} (v{bucket.version}, "
                f"current v{SCHEMA_VERSIONS[kind]}) treated as miss"
            )
            return None
        return list(bucket.items)

    def set_cached_items(
        self,
        server_id: str,
        kind: ContentKind,
        category_id: int,
        items: list[ContentItem],
    ) -> None:
        """Replace one category's bucket wholesale.

        The key is re-inserted so bucket order reflects write order, which
        makes the last-written copy win in :meth:`get_all_cached_items`.
        """
        kind = ContentKind(kind)
        cache = self._get_or_create(server_id)
        buckets = cache.items[kind]
        buckets.pop(int(category_id), None)
        buckets[int(category_id)] = ItemBucket(SCHEMA_VERSIONS[kind], list(items))
        cache.last_updated = now_ms()
        self._persist(server_id)

    def get_all_cached_items(self, server_id: str, kind: ContentKind) -> Optional[list[ContentItem]]:
        """Every cached item of *kind*, deduplicated by id (last-written bucket wins)."""
        cache = self._caches.get(server_id)
        if cache is None:
            return None
        kind = ContentKind(kind)
        current = SCHEMA_VERSIONS[kind]
        by_id: dict[int, ContentItem] = {}
        for bucket in cache.items[kind].values():
            if bucket.version != current:
                continue
            for item in bucket.items:
                by_id[item.id] = item
        return list(by_id.values()) or None

    # ------------------------------------------------------------------
    # Clear
    # ------------------------------------------------------------------

    def clear(self, server_id: str) -> None:
        self._caches[server_id] = ServerCache()
        self._persist(server_id)
        logger.info(f"Cleared content cache for server {server_id}")

    def clear_kind(self, server_id: str, kind: ContentKind) -> None:
        cache = self._caches.get(server_id)
        if cache is None:
            return
        kind = ContentKind(kind)
        cache.categories[kind] = []
        cache.items[kind] = {}
        self._persist(server_id)
        logger.info(f"Cleared {kind.value} cache for server {server_id}")

    def forget_server(self, server_id: str) -> None:
        """Drop a removed server's cache entirely."""
        self._caches.pop(server_id, None)
        self._persist(server_id)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self, server_id: str) -> RefreshStats:
        cache = self._caches.get(server_id)
        if cache is None:
            return RefreshStats()

        def count_items(kind: ContentKind) -> int:
            return len(self.get_all_cached_items(server_id, kind) or [])

        return RefreshStats(
            live_categories=len(cache.categories[ContentKind.LIVE]),
            movie_categories=len(cache.categories[ContentKind.MOVIE]),
            series_categories=len(cache.categories[ContentKind.SERIES]),
            channels=count_items(ContentKind.LIVE),
            movies=count_items(ContentKind.MOVIE),
            series=count_items(ContentKind.SERIES),
            last_updated=cache.last_updated,
        )
