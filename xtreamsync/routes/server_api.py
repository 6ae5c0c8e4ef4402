"""Saved server, session and preference routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from xtreamsync.dependencies import (
    get_cache_service,
    get_config_service,
    get_favorites_service,
    get_group_service,
    get_history_service,
    get_session_service,
    get_visibility_service,
    read_json_body,
)
from xtreamsync.models.config import ServerConnection
from xtreamsync.services.cache_service import CacheService
from xtreamsync.services.config_service import ConfigService
from xtreamsync.services.favorites_service import FavoritesService
from xtreamsync.services.group_service import GroupService
from xtreamsync.services.history_service import WatchHistoryService
from xtreamsync.services.session_service import SessionService
from xtreamsync.services.stream_urls import format_expiration_date, is_account_expired
from xtreamsync.services.visibility_service import VisibilityService

router = APIRouter(tags=["servers"])

_EDITABLE_FIELDS = ("name", "url", "username", "password")


def _public(server: ServerConnection) -> dict:
    data = server.model_dump(mode="json")
    data["password"] = "***" if server.password else ""
    return data


@router.get("/api/servers")
async def list_servers(cfg: ConfigService = Depends(get_config_service)):
    return {"servers": [_public(s) for s in cfg.get_servers()]}


@router.post("/api/servers")
async def add_server(request: Request, cfg: ConfigService = Depends(get_config_service)):
    data = await read_json_body(request)
    if data is None:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    if not all(str(data.get(key, "")).strip() for key in ("url", "username", "password")):
        return JSONResponse({"error": "url, username and password are required"}, status_code=400)
    try:
        server = ServerConnection(**{k: str(data[k]).strip() for k in _EDITABLE_FIELDS if k in data})
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    cfg.add_server(server)
    return {"status": "ok", "server": _public(server)}


@router.put("/api/servers/{server_id}")
async def update_server(server_id: str, request: Request, cfg: ConfigService = Depends(get_config_service)):
    data = await read_json_body(request)
    if data is None:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    existing = cfg.get_server_by_id(server_id)
    if existing is None:
        return JSONResponse({"error": "Server not found"}, status_code=404)
    updated = existing.model_copy(update={k: str(data[k]).strip() for k in _EDITABLE_FIELDS if k in data})
    cfg.update_server(updated)
    return {"status": "ok", "server": _public(updated)}


@router.delete("/api/servers/{server_id}")
async def delete_server(
    server_id: str,
    cfg: ConfigService = Depends(get_config_service),
    session: SessionService = Depends(get_session_service),
    cache: CacheService = Depends(get_cache_service),
    visibility: VisibilityService = Depends(get_visibility_service),
    groups: GroupService = Depends(get_group_service),
    favorites: FavoritesService = Depends(get_favorites_service),
    history: WatchHistoryService = Depends(get_history_service),
):
    if not cfg.remove_server(server_id):
        return JSONResponse({"error": "Server not found"}, status_code=404)
    if session.server_id == server_id:
        session.disconnect()
    for service in (cache, visibility, groups, favorites, history):
        service.forget_server(server_id)
    return {"status": "ok"}


@router.post("/api/servers/{server_id}/connect")
async def connect(server_id: str, session: SessionService = Depends(get_session_service)):
    try:
        auth_info = await session.connect(server_id)
    except LookupError:
        return JSONResponse({"error": "Server not found"}, status_code=404)
    return {"status": "connected", "server": _public(session.server), **_account_summary(auth_info)}


def _account_summary(auth_info) -> dict:
    exp_date = auth_info.user_info.exp_date
    return {
        "account": {
            "username": auth_info.user_info.username,
            "status": auth_info.user_info.status,
            "expires": format_expiration_date(exp_date),
            "expired": is_account_expired(exp_date),
            "max_connections": auth_info.user_info.max_connections,
            "active_connections": auth_info.user_info.active_cons,
        }
    }


@router.get("/api/session")
async def get_session(session: SessionService = Depends(get_session_service)):
    if not session.is_connected:
        return {"connected": False}
    return {"connected": True, "server": _public(session.server), **_account_summary(session.auth_info)}


@router.delete("/api/session")
async def disconnect(session: SessionService = Depends(get_session_service)):
    session.disconnect()
    return {"status": "ok"}


@router.get("/api/preferences")
async def get_preferences(cfg: ConfigService = Depends(get_config_service)):
    return {"preferences": cfg.get_preferences().model_dump()}


@router.put("/api/preferences")
async def update_preferences(request: Request, cfg: ConfigService = Depends(get_config_service)):
    data = await read_json_body(request)
    if data is None:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    known = set(cfg.get_preferences().model_dump())
    try:
        prefs = cfg.set_preferences(**{k: v for k, v in data.items() if k in known})
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    return {"status": "ok", "preferences": prefs.model_dump()}
