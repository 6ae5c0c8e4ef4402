"""Catalog browsing routes: categories, items, search, details and stream URLs."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from xtreamsync.dependencies import get_catalog_service, get_config_service
from xtreamsync.models.catalog import ContentKind
from xtreamsync.services.catalog_service import CatalogService
from xtreamsync.services.config_service import ConfigService

router = APIRouter(prefix="/api/catalog", tags=["catalog"])


@router.get("/{kind}/categories")
async def get_categories(kind: ContentKind, catalog: CatalogService = Depends(get_catalog_service)):
    categories = await catalog.load_categories(kind)
    return {"kind": kind.value, "categories": categories}


@router.post("/{kind}/refresh")
async def refresh_kind(kind: ContentKind, catalog: CatalogService = Depends(get_catalog_service)):
    categories = await catalog.refresh_kind(kind)
    return {"status": "ok", "kind": kind.value, "categories": len(categories)}


@router.get("/{kind}/groups")
async def get_visible_groups(kind: ContentKind, catalog: CatalogService = Depends(get_catalog_service)):
    return {"kind": kind.value, "groups": catalog.visible_categories(kind)}


@router.get("/{kind}/categories/{category_id}/items")
async def get_category_items(
    kind: ContentKind,
    category_id: int,
    catalog: CatalogService = Depends(get_catalog_service),
):
    items = await catalog.load_category(kind, category_id)
    return {"kind": kind.value, "category_id": category_id, "items": items}


@router.get("/{kind}/groups/{group_id}/items")
async def get_group_items(kind: ContentKind, group_id: str, catalog: CatalogService = Depends(get_catalog_service)):
    try:
        items = await catalog.load_custom_group(group_id, kind)
    except LookupError:
        return JSONResponse({"error": "Group not found"}, status_code=404)
    return {"group_id": group_id, "items": items}


@router.get("/search")
async def search(
    q: str = "",
    kind: Optional[ContentKind] = None,
    fuzzy: bool = False,
    catalog: CatalogService = Depends(get_catalog_service),
):
    return {"query": q, "results": catalog.search(q, kind, fuzzy=fuzzy)}


@router.get("/series/{series_id}")
async def series_detail(series_id: int, catalog: CatalogService = Depends(get_catalog_service)):
    detail = await catalog.series_detail(series_id)
    return {
        "info": detail.info,
        "seasons": {str(season): episodes for season, episodes in sorted(detail.episodes_by_season.items())},
    }


@router.get("/movie/{vod_id}")
async def movie_detail(vod_id: int, catalog: CatalogService = Depends(get_catalog_service)):
    return await catalog.movie_detail(vod_id)


@router.get("/{kind}/stream-url/{stream_id}")
async def stream_url(
    kind: ContentKind,
    stream_id: int,
    extension: Optional[str] = None,
    catalog: CatalogService = Depends(get_catalog_service),
    cfg: ConfigService = Depends(get_config_service),
):
    masked = cfg.get_preferences().hide_credentials_in_url
    url = catalog.stream_url(kind, stream_id, extension, masked=masked)
    return {"url": url}
