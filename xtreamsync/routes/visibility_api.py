"""Category and custom group visibility routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from xtreamsync.dependencies import (
    get_cache_service,
    get_config_service,
    get_group_service,
    get_session_service,
    get_visibility_service,
    read_json_body,
)
from xtreamsync.models.catalog import ContentKind
from xtreamsync.services.cache_service import CacheService
from xtreamsync.services.config_service import ConfigService
from xtreamsync.services.group_service import GroupService
from xtreamsync.services.session_service import SessionService
from xtreamsync.services.visibility_service import VisibilityService

router = APIRouter(prefix="/api/visibility", tags=["visibility"])


def _parse_group_id(raw: str):
    """Server categories are numeric; custom group ids are UUID strings."""
    try:
        return int(raw)
    except (TypeError, ValueError):
        return str(raw)


def _all_group_ids(
    server_id: str,
    kind: ContentKind,
    session: SessionService,
    cache: CacheService,
    groups: GroupService,
) -> list:
    categories = session.live.categories[kind] or cache.get_cached_categories(server_id, kind) or []
    return [g.id for g in groups.list_groups(server_id, kind)] + [c.id for c in categories]


@router.get("/{kind}")
async def get_visibility(
    kind: ContentKind,
    visibility: VisibilityService = Depends(get_visibility_service),
    session: SessionService = Depends(get_session_service),
):
    server_id = session.require_server_id()
    return {"kind": kind.value, "visibility": visibility.get_map(server_id, kind)}


@router.put("/{kind}")
async def set_visibility(
    kind: ContentKind,
    request: Request,
    visibility: VisibilityService = Depends(get_visibility_service),
    session: SessionService = Depends(get_session_service),
):
    server_id = session.require_server_id()
    data = await read_json_body(request)
    if data is None:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    if "id" not in data or not isinstance(data.get("visible"), bool):
        return JSONResponse({"error": "id and a boolean visible are required"}, status_code=400)
    visibility.set_visible(server_id, kind, _parse_group_id(str(data["id"])), data["visible"])
    return {"status": "ok", "visible": data["visible"]}


@router.put("/{kind}/bulk")
async def set_bulk_visibility(
    kind: ContentKind,
    request: Request,
    visibility: VisibilityService = Depends(get_visibility_service),
    session: SessionService = Depends(get_session_service),
    cache: CacheService = Depends(get_cache_service),
    groups: GroupService = Depends(get_group_service),
):
    server_id = session.require_server_id()
    data = await read_json_body(request)
    if data is None:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    if not isinstance(data.get("visible"), bool):
        return JSONResponse({"error": "a boolean visible is required"}, status_code=400)
    ids = data.get("ids")
    if ids is None:
        ids = _all_group_ids(server_id, kind, session, cache, groups)
    else:
        ids = [_parse_group_id(str(i)) for i in ids]
    visibility.set_all_visible(server_id, kind, ids, data["visible"])
    return {"status": "ok", "updated": len(ids)}


@router.post("/{kind}/{group_id}/toggle")
async def toggle_visibility(
    kind: ContentKind,
    group_id: str,
    visibility: VisibilityService = Depends(get_visibility_service),
    session: SessionService = Depends(get_session_service),
    cache: CacheService = Depends(get_cache_service),
    groups: GroupService = Depends(get_group_service),
    cfg: ConfigService = Depends(get_config_service),
):
    server_id = session.require_server_id()
    one_at_a_time = cfg.get_preferences().show_one_group_at_a_time
    all_ids = _all_group_ids(server_id, kind, session, cache, groups) if one_at_a_time else []
    visible = visibility.toggle(server_id, kind, _parse_group_id(group_id), all_ids, one_at_a_time)
    return {"status": "ok", "visible": visible}
