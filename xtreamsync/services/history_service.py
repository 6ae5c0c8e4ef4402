"""Watch history service — recently played items per server, newest first."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from pydantic import ValidationError

from xtreamsync.models.catalog import ContentKind
from xtreamsync.models.library import WatchHistoryEntry
from xtreamsync.services.favorites_service import merge_with_cache
from xtreamsync.services.normalizer import find_item
from xtreamsync.services.stream_urls import build_stream_url

if TYPE_CHECKING:
    from xtreamsync.database import KeyValueStore
    from xtreamsync.models.config import ServerConnection
    from xtreamsync.services.cache_service import CacheService
    from xtreamsync.services.session_service import LiveContent

logger = logging.getLogger(__name__)

FALLBACK_TITLES = {
    ContentKind.LIVE: "Channel",
    ContentKind.MOVIE: "Movie",
    ContentKind.SERIES: "Episode",
}


class WatchHistoryService:
    def __init__(self, store: "KeyValueStore", cache: "CacheService", limit: int = 100):
        self.store = store
        self.cache = cache
        self.limit = limit
        self._history: dict[str, list[WatchHistoryEntry]] = {}

    def load(self) -> None:
        self._history = {}
        for server_id, raw_entries in self.store.load().items():
            entries: list[WatchHistoryEntry] = []
            for raw in raw_entries or []:
                try:
                    entries.append(WatchHistoryEntry.model_validate(raw))
                except ValidationError:
                    logger.warning(f"Skipping malformed history entry for server {server_id}")
            self._history[server_id] = entries

    def _save(self, server_id: str) -> None:
        self.store.save({server_id: [e.model_dump(mode="json") for e in self._history.get(server_id, [])]})

    def add(self, server_id: str, entry: WatchHistoryEntry) -> None:
        """Put *entry* first, dropping any older entry for the same item."""
        history = [
            h for h in self._history.get(server_id, [])
            if not (h.kind == entry.kind and h.content_id == entry.content_id)
        ]
        self._history[server_id] = [entry, *history][: self.limit]
        self._save(server_id)

    def clear(self, server_id: str) -> None:
        self._history[server_id] = []
        self._save(server_id)

    def entries(self, server_id: str, limit: int = 50) -> list[WatchHistoryEntry]:
        return list(self._history.get(server_id, [])[:limit])

    def forget_server(self, server_id: str) -> None:
        self._history.pop(server_id, None)
        self.store.delete(server_id)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def display_title(self, server_id: str, entry: WatchHistoryEntry, live: "LiveContent") -> str:
        if entry.title:
            return entry.title
        if entry.kind != ContentKind.SERIES:
            items = merge_with_cache(live.items[entry.kind], self.cache.get_all_cached_items(server_id, entry.kind))
            item = find_item(items, entry.content_id)
            if item is not None:
                return item.name
        return f"{FALLBACK_TITLES[entry.kind]} {entry.content_id}"

    def resolve(
        self,
        server: "ServerConnection",
        live: "LiveContent",
        limit: int = 50,
        masked: bool = False,
    ) -> list[dict]:
        """History entries with a display title and a resume URL."""
        resolved = []
        for entry in self.entries(server.id, limit):
            extension: Optional[str] = entry.extension
            if entry.kind == ContentKind.LIVE:
                extension = "m3u8"
            resolved.append({
                **entry.model_dump(mode="json"),
                "display_title": self.display_title(server.id, entry, live),
                "stream_url": build_stream_url(
                    server.url, server.username, server.password,
                    entry.kind, entry.content_id, extension, masked=masked,
                ),
            })
        return resolved
