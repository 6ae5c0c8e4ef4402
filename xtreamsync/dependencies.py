"""FastAPI dependency injection — provides services via Depends()."""
from __future__ import annotations

from typing import Optional

from fastapi import Request

from xtreamsync.services.cache_service import CacheService
from xtreamsync.services.catalog_service import CatalogService
from xtreamsync.services.config_service import ConfigService
from xtreamsync.services.favorites_service import FavoritesService
from xtreamsync.services.group_service import GroupService
from xtreamsync.services.history_service import WatchHistoryService
from xtreamsync.services.refresh_service import RefreshService
from xtreamsync.services.session_service import SessionService
from xtreamsync.services.visibility_service import VisibilityService


def get_config_service(request: Request) -> ConfigService:
    return request.app.state.config_service


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service


def get_visibility_service(request: Request) -> VisibilityService:
    return request.app.state.visibility_service


def get_group_service(request: Request) -> GroupService:
    return request.app.state.group_service


def get_favorites_service(request: Request) -> FavoritesService:
    return request.app.state.favorites_service


def get_history_service(request: Request) -> WatchHistoryService:
    return request.app.state.history_service


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


def get_refresh_service(request: Request) -> RefreshService:
    return request.app.state.refresh_service


async def read_json_body(request: Request) -> Optional[dict]:
    """Parsed JSON object body, or None when the body is not a JSON object."""
    try:
        data = await request.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
