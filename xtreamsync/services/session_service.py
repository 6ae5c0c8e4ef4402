"""Session service — current server connection, its catalog client and live in-memory content."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Optional

from xtreamsync.errors import NotConnected
from xtreamsync.models.catalog import KINDS, AuthInfo, Category, ContentItem, ContentKind
from xtreamsync.models.library import now_ms
from xtreamsync.services.xtream_client import XtreamClient, check_connection

if TYPE_CHECKING:
    from xtreamsync.models.config import ServerConnection
    from xtreamsync.services.config_service import ConfigService
    from xtreamsync.services.http_client import HttpClientService

logger = logging.getLogger(__name__)


class LiveContent:
    """The "current items" lists the UI renders: categories and items per kind.

    Bulk refresh and the lazy loader overwrite or merge into these lists;
    nothing here is persisted.
    """

    def __init__(self):
        self.categories: dict[ContentKind, list[Category]] = {kind: [] for kind in KINDS}
        self.items: dict[ContentKind, list[ContentItem]] = {kind: [] for kind in KINDS}

    def set_categories(self, kind: ContentKind, categories: Iterable[Category]) -> None:
        self.categories[ContentKind(kind)] = list(categories)

    def set_items(self, kind: ContentKind, items: Iterable[ContentItem]) -> None:
        self.items[ContentKind(kind)] = list(items)

    def merge_items(self, kind: ContentKind, new_items: Iterable[ContentItem]) -> None:
        """Overwrite items with a known id in place and append unknown ones."""
        kind = ContentKind(kind)
        by_id = {item.id: item for item in self.items[kind]}
        for item in new_items:
            by_id[item.id] = item
        self.items[kind] = list(by_id.values())

    def reset(self) -> None:
        for kind in KINDS:
            self.categories[kind] = []
            self.items[kind] = []


class SessionService:
    """Owns the active server connection. At most one client is live at a time."""

    def __init__(self, config_service: "ConfigService", http_client: "HttpClientService"):
        self.config_service = config_service
        self.http_client = http_client
        self.server: Optional["ServerConnection"] = None
        self.auth_info: Optional[AuthInfo] = None
        self.client: Optional[XtreamClient] = None
        self.live = LiveContent()

    @property
    def server_id(self) -> Optional[str]:
        return self.server.id if self.server else None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    def require_client(self) -> XtreamClient:
        if self.client is None:
            raise NotConnected()
        return self.client

    def require_server_id(self) -> str:
        if self.server is None:
            raise NotConnected()
        return self.server.id

    async def connect(self, server_id: str) -> AuthInfo:
        """Test the saved server, then make it the active session.

        Raises ``LookupError`` for an unknown id and any ``XtreamApiError``
        from the connectivity test; the previous session is kept on failure.
        """
        server = self.config_service.get_server_by_id(server_id)
        if server is None:
            raise LookupError(server_id)

        http = await self.http_client.get_client()
        auth_info = await check_connection(server, http, self.config_service.test_options)

        server.last_connected = now_ms()
        self.config_service.update_server(server)

        if self.client is not None:
            self.client.cancel_pending_requests()
        self.server = server
        self.auth_info = auth_info
        self.client = XtreamClient(server, http, self.config_service.client_options)
        self.live.reset()
        logger.info(f"Connected to {server.name or server.url} as {auth_info.user_info.username}")
        return auth_info

    def disconnect(self) -> None:
        if self.client is not None:
            self.client.cancel_pending_requests()
        if self.server is not None:
            logger.info(f"Disconnected from {self.server.name or self.server.url}")
        self.server = None
        self.auth_info = None
        self.client = None
        self.live.reset()
