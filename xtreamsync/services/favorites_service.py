"""Favorites service — per-server favorite ids and resolution of their display data."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from xtreamsync.models.catalog import KINDS, ContentItem, ContentKind

if TYPE_CHECKING:
    from xtreamsync.database import KeyValueStore
    from xtreamsync.services.cache_service import CacheService
    from xtreamsync.services.group_service import GroupService
    from xtreamsync.services.session_service import LiveContent
    from xtreamsync.services.visibility_service import VisibilityService

logger = logging.getLogger(__name__)


def merge_with_cache(
    live_items: Iterable[ContentItem], cached_items: Optional[Iterable[ContentItem]]
) -> list[ContentItem]:
    """Union by id; the live in-memory copy wins over the cached one."""
    by_id: dict[int, ContentItem] = {}
    for item in cached_items or []:
        by_id[item.id] = item
    for item in live_items:
        by_id[item.id] = item
    return list(by_id.values())


class FavoritesService:
    def __init__(
        self,
        store: "KeyValueStore",
        cache: "CacheService",
        visibility: "VisibilityService",
        groups: "GroupService",
    ):
        self.store = store
        self.cache = cache
        self.visibility = visibility
        self.groups = groups
        self._favorites: dict[str, dict[str, list[int]]] = {}

    def load(self) -> None:
        self._favorites = {
            server_id: {kind.value: [int(i) for i in (raw or {}).get(kind.value, [])] for kind in KINDS}
            for server_id, raw in self.store.load().items()
        }

    def _server_favorites(self, server_id: str) -> dict[str, list[int]]:
        return self._favorites.setdefault(server_id, {kind.value: [] for kind in KINDS})

    def _save(self, server_id: str) -> None:
        self.store.save({server_id: self._server_favorites(server_id)})

    # ------------------------------------------------------------------
    # Ids
    # ------------------------------------------------------------------

    def ids(self, server_id: str, kind: ContentKind) -> list[int]:
        return list(self._favorites.get(server_id, {}).get(ContentKind(kind).value, []))

    def is_favorite(self, server_id: str, kind: ContentKind, content_id: int) -> bool:
        return int(content_id) in self.ids(server_id, kind)

    def add(self, server_id: str, kind: ContentKind, content_id: int) -> bool:
        favs = self._server_favorites(server_id)[ContentKind(kind).value]
        if int(content_id) in favs:
            return False
        favs.append(int(content_id))
        self._save(server_id)
        return True

    def remove(self, server_id: str, kind: ContentKind, content_id: int) -> bool:
        favs = self._server_favorites(server_id)
        key = ContentKind(kind).value
        if int(content_id) not in favs[key]:
            return False
        favs[key] = [fid for fid in favs[key] if fid != int(content_id)]
        self._save(server_id)
        return True

    def toggle(self, server_id: str, kind: ContentKind, content_id: int) -> bool:
        """Returns True when the item is a favorite afterwards."""
        if self.remove(server_id, kind, content_id):
            return False
        self.add(server_id, kind, content_id)
        return True

    def forget_server(self, server_id: str) -> None:
        self._favorites.pop(server_id, None)
        self.store.delete(server_id)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _in_visible_group(self, server_id: str, kind: ContentKind, item: ContentItem, live: "LiveContent") -> bool:
        categories = live.categories[kind] or self.cache.get_cached_categories(server_id, kind) or []
        if item.category_id in self.visibility.visible_category_ids(server_id, kind, categories):
            return True
        visible_groups = self.visibility.visible_groups(server_id, kind, self.groups.list_groups(server_id, kind))
        return any(item.id in group.content_ids for group in visible_groups)

    def resolve(
        self,
        server_id: str,
        live: "LiveContent",
        kind: Optional[ContentKind] = None,
    ) -> dict[str, list[ContentItem]]:
        """Favorite items per kind, looked up in live items first, then the cache.

        Favorites whose category and custom groups are all hidden are left
        out of the result but stay in the favorite list.
        """
        kinds = KINDS if kind is None else (ContentKind(kind),)
        result: dict[str, list[ContentItem]] = {k.value: [] for k in KINDS}
        for k in kinds:
            favorite_ids = set(self.ids(server_id, k))
            if not favorite_ids:
                continue
            merged = merge_with_cache(live.items[k], self.cache.get_all_cached_items(server_id, k))
            result[k.value] = [
                item for item in merged
                if item.id in favorite_ids and self._in_visible_group(server_id, k, item, live)
            ]
        result["all"] = [item for k in KINDS for item in result[k.value]]
        return result
