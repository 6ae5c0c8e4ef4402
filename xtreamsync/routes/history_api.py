"""Watch history routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from xtreamsync.dependencies import (
    get_config_service,
    get_history_service,
    get_session_service,
    read_json_body,
)
from xtreamsync.models.library import WatchHistoryEntry
from xtreamsync.services.config_service import ConfigService
from xtreamsync.services.history_service import WatchHistoryService
from xtreamsync.services.session_service import SessionService

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("")
async def get_history(
    limit: int = 50,
    history: WatchHistoryService = Depends(get_history_service),
    session: SessionService = Depends(get_session_service),
    cfg: ConfigService = Depends(get_config_service),
):
    session.require_server_id()
    masked = cfg.get_preferences().hide_credentials_in_url
    return {"history": history.resolve(session.server, session.live, limit=limit, masked=masked)}


@router.post("")
async def add_history(
    request: Request,
    history: WatchHistoryService = Depends(get_history_service),
    session: SessionService = Depends(get_session_service),
):
    server_id = session.require_server_id()
    data = await read_json_body(request)
    if data is None:
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    try:
        entry = WatchHistoryEntry.model_validate(data)
    except ValidationError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    history.add(server_id, entry)
    return {"status": "ok", "entry": entry}


@router.delete("")
async def clear_history(
    history: WatchHistoryService = Depends(get_history_service),
    session: SessionService = Depends(get_session_service),
):
    history.clear(session.require_server_id())
    return {"status": "ok"}
