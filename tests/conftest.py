"""Shared fixtures — a fake Xtream panel behind httpx.MockTransport and wired services."""

import os

import httpx
import pytest

from xtreamsync.database import DB_NAME, KeyValueStore, init_db
from xtreamsync.models.config import ClientOptions, ServerConnection
from xtreamsync.services.cache_service import CacheService
from xtreamsync.services.group_service import GroupService
from xtreamsync.services.visibility_service import VisibilityService

FAST_OPTIONS = ClientOptions(timeout=5.0, retries=2, retry_delay=0)


def channels(category_id, count, start=1):
    return [
        {"stream_id": str(start + i), "name": f"Channel {start + i}", "category_id": str(category_id)}
        for i in range(count)
    ]


def movies(category_id, count, start=1, extension="mkv"):
    return [
        {
            "stream_id": start + i,
            "name": f"Movie {start + i}",
            "category_id": str(category_id),
            "container_extension": extension,
        }
        for i in range(count)
    ]


class FakePanel:
    """In-memory ``player_api.php``: answers by ``action`` and records every call.

    ``failures`` maps ``(action, category_id)`` (or just ``action``) to an
    HTTP status the panel answers with instead of data.
    """

    def __init__(self, status="Active"):
        self.status = status
        self.categories = {"live": [], "vod": [], "series": []}
        self.items = {"live": {}, "vod": {}, "series": {}}
        self.failures = {}
        self.calls = []

    def add_category(self, section, category_id, name, records):
        self.categories[section].append(
            {"category_id": str(category_id), "category_name": name, "parent_id": 0}
        )
        self.items[section][str(category_id)] = records

    def _items(self, section, category_id):
        if category_id is None:
            return [r for records in self.items[section].values() for r in records]
        return self.items[section].get(category_id, [])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        action = params.get("action")
        category_id = params.get("category_id")
        self.calls.append((action, category_id))

        for key in ((action, category_id), action):
            if key in self.failures:
                return httpx.Response(self.failures[key])

        if action is None:
            return httpx.Response(200, json={
                "user_info": {
                    "username": params.get("username"),
                    "status": self.status,
                    "exp_date": "1999999999",
                    "max_connections": "1",
                    "active_cons": "0",
                    "allowed_output_formats": ["m3u8", "ts"],
                },
                "server_info": {"url": "panel.example.com", "port": "80"},
            })
        sections = {
            "get_live_categories": ("categories", "live"),
            "get_vod_categories": ("categories", "vod"),
            "get_series_categories": ("categories", "series"),
            "get_live_streams": ("items", "live"),
            "get_vod_streams": ("items", "vod"),
            "get_series": ("items", "series"),
        }
        if action in sections:
            what, section = sections[action]
            if what == "categories":
                return httpx.Response(200, json=self.categories[section])
            return httpx.Response(200, json=self._items(section, category_id))
        return httpx.Response(200, json={})

    def item_calls(self):
        return [c for c in self.calls if c[0] in ("get_live_streams", "get_vod_streams", "get_series")]


@pytest.fixture()
def panel():
    p = FakePanel()
    p.add_category("live", 1, "News", channels(1, 12, start=1))
    p.add_category("live", 2, "Sports", channels(2, 10, start=101))
    p.add_category("vod", 10, "Action", movies(10, 5, start=501))
    return p


@pytest.fixture()
def server():
    return ServerConnection(
        id="srv-1", name="Panel", url="http://panel.example.com", username="alice", password="s3cret"
    )


@pytest.fixture()
def db_path(tmp_path):
    path = os.path.join(str(tmp_path), DB_NAME)
    init_db(path)
    return path


@pytest.fixture()
def cache(db_path):
    service = CacheService(KeyValueStore(db_path, "content_cache"))
    service.load_cache_from_disk()
    return service


@pytest.fixture()
def visibility(db_path):
    service = VisibilityService(KeyValueStore(db_path, "group_visibility"))
    service.load()
    return service


@pytest.fixture()
def groups(db_path):
    service = GroupService(KeyValueStore(db_path, "custom_groups"))
    service.load()
    return service
