"""Custom group routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from xtreamsync.dependencies import get_group_service, get_session_service, read_json_body
from xtreamsync.models.catalog import ContentKind
from xtreamsync.services.group_service import GroupService
from xtreamsync.services.session_service import SessionService

router = APIRouter(prefix="/api/groups", tags=["groups"])


@router.get("")
async def list_groups(
    kind: Optional[ContentKind] = None,
    content_id: Optional[int] = None,
    groups: GroupService = Depends(get_group_service),
    session: SessionService = Depends(get_session_service),
):
    server_id = session.require_server_id()
    if content_id is not None and kind is not None:
        return {"groups": groups.groups_containing(server_id, kind, content_id)}
    return {"groups": groups.list_groups(server_id, kind)}


@router.post("")
async def create_group(
    request: Request,
    groups: GroupService = Depends(get_group_service),
    session: SessionService = Depends(get_session_service),
):
    server_id = session.require_server_id()
    data = await read_json_body(request)
    if data is None:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    name = str(data.get("name", "")).strip()
    if not name:
        return JSONResponse({"error": "Group name is required"}, status_code=400)
    try:
        kind = ContentKind(data.get("kind"))
    except ValueError:
        return JSONResponse({"error": "kind must be one of live, movie, series"}, status_code=400)
    group = groups.create(server_id, name, kind, data.get("content_ids") or [])
    return {"status": "ok", "group": group}


@router.delete("/{group_id}")
async def delete_group(
    group_id: str,
    groups: GroupService = Depends(get_group_service),
    session: SessionService = Depends(get_session_service),
):
    if not groups.delete(session.require_server_id(), group_id):
        return JSONResponse({"error": "Group not found"}, status_code=404)
    return {"status": "ok"}


@router.post("/{group_id}/items/{content_id}")
async def add_to_group(
    group_id: str,
    content_id: int,
    groups: GroupService = Depends(get_group_service),
    session: SessionService = Depends(get_session_service),
):
    group = groups.add_content(session.require_server_id(), group_id, content_id)
    if group is None:
        return JSONResponse({"error": "Group not found"}, status_code=404)
    return {"status": "ok", "group": group}


@router.delete("/{group_id}/items/{content_id}")
async def remove_from_group(
    group_id: str,
    content_id: int,
    groups: GroupService = Depends(get_group_service),
    session: SessionService = Depends(get_session_service),
):
    group = groups.remove_content(session.require_server_id(), group_id, content_id)
    if group is None:
        return JSONResponse({"error": "Group not found"}, status_code=404)
    return {"status": "ok", "group": group}
