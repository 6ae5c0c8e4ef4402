"""Catalog service — cache-first browsing of categories, items and custom groups.

This is the lazy path: a category is only fetched when the user opens it
and the cache has no snapshot for it.  Results are merged into the
session's live item lists without dropping items of other categories.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from rapidfuzz import fuzz

from xtreamsync.models.catalog import KINDS, Category, ContentItem, ContentKind, SeriesDetail
from xtreamsync.services.favorites_service import merge_with_cache
from xtreamsync.services.normalizer import transform_items

if TYPE_CHECKING:
    from xtreamsync.services.cache_service import CacheService
    from xtreamsync.services.group_service import GroupService
    from xtreamsync.services.session_service import SessionService
    from xtreamsync.services.visibility_service import VisibilityService

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 80


class CatalogService:
    def __init__(
        self,
        session: "SessionService",
        cache: "CacheService",
        visibility: "VisibilityService",
        groups: "GroupService",
    ):
        self.session = session
        self.cache = cache
        self.visibility = visibility
        self.groups = groups

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    async def load_categories(self, kind: ContentKind) -> list[Category]:
        kind = ContentKind(kind)
        server_id = self.session.require_server_id()
        cached = self.cache.get_cached_categories(server_id, kind)
        if cached:
            self.session.live.set_categories(kind, cached)
            return cached

        client = self.session.require_client()
        categories = await client.list_categories(kind)
        self.session.live.set_categories(kind, categories)
        if categories:
            self.cache.set_cached_categories(server_id, kind, categories)
        logger.info(f"Loaded {len(categories)} {kind.value} categories from server")
        return categories

    async def refresh_kind(self, kind: ContentKind) -> list[Category]:
        """Drop one kind's cache and live lists, then reload its categories."""
        kind = ContentKind(kind)
        server_id = self.session.require_server_id()
        self.cache.clear_kind(server_id, kind)
        self.session.live.set_categories(kind, [])
        self.session.live.set_items(kind, [])
        return await self.load_categories(kind)

    def visible_categories(self, kind: ContentKind) -> list[dict]:
        """Visible custom groups first, then visible server categories."""
        kind = ContentKind(kind)
        server_id = self.session.require_server_id()
        categories = self.session.live.categories[kind] or self.cache.get_cached_categories(server_id, kind) or []
        entries = [
            {"id": group.id, "name": group.name, "kind": kind.value, "is_custom_group": True}
            for group in self.visibility.visible_groups(server_id, kind, self.groups.list_groups(server_id, kind))
        ]
        entries.extend(
            {"id": cat.id, "name": cat.name, "kind": kind.value, "parent_id": cat.parent_id, "is_custom_group": False}
            for cat in self.visibility.filter_categories(server_id, kind, categories)
        )
        return entries

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def load_category(self, kind: ContentKind, category_id: int) -> list[ContentItem]:
        kind = ContentKind(kind)
        server_id = self.session.require_server_id()
        cached = self.cache.get_cached_items(server_id, kind, category_id)
        if cached is not None:
            self.session.live.merge_items(kind, cached)
            return cached

        client = self.session.require_client()
        raw_items = await client.list_items(kind, category_id)
        items = transform_items(raw_items, kind)
        self.cache.set_cached_items(server_id, kind, category_id, items)
        self.session.live.merge_items(kind, items)
        logger.info(f"Loaded {len(items)} {kind.value} items for category {category_id}")
        return items

    async def load_custom_group(self, group_id: str, kind: Optional[ContentKind] = None) -> list[ContentItem]:
        """Items of a custom group, from the cache when anything of its kind is cached.

        Otherwise one "all items" fetch is made; it feeds the live lists but
        is not written to any category bucket.
        """
        server_id = self.session.require_server_id()
        group = self.groups.get(server_id, group_id)
        if group is None or (kind is not None and group.kind != ContentKind(kind)):
            raise LookupError(group_id)
        wanted = set(group.content_ids)

        all_cached = self.cache.get_all_cached_items(server_id, group.kind)
        if all_cached:
            self.session.live.merge_items(group.kind, all_cached)
            return [item for item in all_cached if item.id in wanted]

        client = self.session.require_client()
        all_items = transform_items(await client.list_items(group.kind), group.kind)
        self.session.live.set_items(group.kind, all_items)
        return [item for item in all_items if item.id in wanted]

    def search(self, query: str, kind: Optional[ContentKind] = None, fuzzy: bool = False) -> dict[str, list[ContentItem]]:
        """Name search over live and cached items."""
        server_id = self.session.require_server_id()
        q = query.strip().lower()
        kinds = KINDS if kind is None else (ContentKind(kind),)
        results: dict[str, list[ContentItem]] = {k.value: [] for k in KINDS}
        if q:
            for k in kinds:
                pool = merge_with_cache(self.session.live.items[k], self.cache.get_all_cached_items(server_id, k))
                if fuzzy:
                    scored = [(fuzz.partial_ratio(q, item.name.lower()), item) for item in pool]
                    results[k.value] = [
                        item for score, item in sorted(scored, key=lambda pair: -pair[0])
                        if score >= FUZZY_THRESHOLD
                    ]
                else:
                    results[k.value] = [item for item in pool if q in item.name.lower()]
        results["all"] = [item for k in KINDS for item in results[k.value]]
        return results

    # ------------------------------------------------------------------
    # Details and playback
    # ------------------------------------------------------------------

    async def series_detail(self, series_id: int) -> SeriesDetail:
        return await self.session.require_client().get_series_detail(series_id)

    async def movie_detail(self, vod_id: int) -> dict:
        return await self.session.require_client().get_vod_info(vod_id)

    def stream_url(
        self,
        kind: ContentKind,
        stream_id: int,
        extension: Optional[str] = None,
        masked: bool = False,
    ) -> str:
        kind = ContentKind(kind)
        client = self.session.require_client()
        if extension is None and kind == ContentKind.MOVIE:
            movies = merge_with_cache(
                self.session.live.items[kind],
                self.cache.get_all_cached_items(client.server.id, kind),
            )
            for movie in movies:
                if movie.id == stream_id:
                    extension = movie.extension
                    break
        return client.build_stream_url(kind, stream_id, extension, masked=masked)
