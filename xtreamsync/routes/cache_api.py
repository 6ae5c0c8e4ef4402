"""Cache management and bulk refresh routes."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from xtreamsync.dependencies import get_cache_service, get_refresh_service, get_session_service, read_json_body
from xtreamsync.services.cache_service import CacheService
from xtreamsync.services.refresh_service import RefreshInProgress, RefreshService
from xtreamsync.services.session_service import SessionService

router = APIRouter(prefix="/api/cache", tags=["cache"])


@router.get("/status")
async def cache_status(
    cache: CacheService = Depends(get_cache_service),
    session: SessionService = Depends(get_session_service),
    refresh: RefreshService = Depends(get_refresh_service),
):
    stats = cache.get_stats(session.server_id).model_dump() if session.is_connected else None
    return {
        "connected": session.is_connected,
        "server_id": session.server_id,
        "stats": stats,
        "refresh": refresh.run.snapshot(),
    }


@router.post("/refresh")
async def trigger_refresh(request: Request, refresh: RefreshService = Depends(get_refresh_service)):
    visible_only = False
    body = await request.body()
    if body:
        data = await read_json_body(request)
        if data is None:
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)
        visible_only = data.get("visible_only", False)
        if not isinstance(visible_only, bool):
            return JSONResponse({"error": "visible_only must be a boolean"}, status_code=400)
    try:
        refresh.start(visible_only=visible_only)
    except RefreshInProgress as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    return {"status": "refresh_started", "visible_only": visible_only}


@router.post("/stop")
async def stop_refresh(refresh: RefreshService = Depends(get_refresh_service)):
    if not refresh.stop():
        return {"status": "not_running"}
    return {"status": "stopping"}


@router.post("/clear")
async def clear_cache(
    cache: CacheService = Depends(get_cache_service),
    session: SessionService = Depends(get_session_service),
    refresh: RefreshService = Depends(get_refresh_service),
):
    if refresh.run.is_running:
        return JSONResponse({"error": "A refresh is already running"}, status_code=409)
    server_id = session.require_server_id()
    cache.clear(server_id)
    session.live.reset()
    return {"status": "ok"}
