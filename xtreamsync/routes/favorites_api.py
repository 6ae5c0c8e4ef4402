"""Favorites routes."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from xtreamsync.dependencies import get_favorites_service, get_session_service
from xtreamsync.models.catalog import ContentKind
from xtreamsync.services.favorites_service import FavoritesService
from xtreamsync.services.session_service import SessionService

router = APIRouter(prefix="/api/favorites", tags=["favorites"])


@router.get("")
async def list_favorites(
    kind: Optional[ContentKind] = None,
    favorites: FavoritesService = Depends(get_favorites_service),
    session: SessionService = Depends(get_session_service),
):
    server_id = session.require_server_id()
    return {"favorites": favorites.resolve(server_id, session.live, kind)}


@router.post("/{kind}/{content_id}/toggle")
async def toggle_favorite(
    kind: ContentKind,
    content_id: int,
    favorites: FavoritesService = Depends(get_favorites_service),
    session: SessionService = Depends(get_session_service),
):
    is_favorite = favorites.toggle(session.require_server_id(), kind, content_id)
    return {"status": "ok", "is_favorite": is_favorite}


@router.put("/{kind}/{content_id}")
async def add_favorite(
    kind: ContentKind,
    content_id: int,
    favorites: FavoritesService = Depends(get_favorites_service),
    session: SessionService = Depends(get_session_service),
):
    added = favorites.add(session.require_server_id(), kind, content_id)
    return {"status": "ok", "added": added}


@router.delete("/{kind}/{content_id}")
async def remove_favorite(
    kind: ContentKind,
    content_id: int,
    favorites: FavoritesService = Depends(get_favorites_service),
    session: SessionService = Depends(get_session_service),
):
    removed = favorites.remove(session.require_server_id(), kind, content_id)
    return {"status": "ok", "removed": removed}


@router.get("/{kind}/{content_id}")
async def favorite_status(
    kind: ContentKind,
    content_id: int,
    favorites: FavoritesService = Depends(get_favorites_service),
    session: SessionService = Depends(get_session_service),
):
    return {"is_favorite": favorites.is_favorite(session.require_server_id(), kind, content_id)}
