"""XtreamSync — FastAPI application factory.

Wires the services onto ``app.state``, includes the route modules and maps
the catalog error taxonomy onto HTTP responses.
"""
from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from xtreamsync.database import DB_NAME, KeyValueStore, init_db
from xtreamsync.errors import (
    AccountInactive,
    HttpError,
    InvalidCredentials,
    NotConnected,
    RequestCancelled,
    RequestTimeout,
    XtreamApiError,
)
from xtreamsync.routes import (
    cache_api,
    catalog_api,
    favorites_api,
    group_api,
    health,
    history_api,
    server_api,
    visibility_api,
)
from xtreamsync.services.cache_service import CacheService
from xtreamsync.services.catalog_service import CatalogService
from xtreamsync.services.config_service import ConfigService
from xtreamsync.services.favorites_service import FavoritesService
from xtreamsync.services.group_service import GroupService
from xtreamsync.services.history_service import WatchHistoryService
from xtreamsync.services.http_client import HttpClientService
from xtreamsync.services.refresh_service import RefreshOrchestrator, RefreshService
from xtreamsync.services.session_service import SessionService
from xtreamsync.services.visibility_service import VisibilityService

# Configure logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
logger = logging.getLogger(__name__)

# Data directory - use environment variable or default to /data (Docker) or ./data (local)
DATA_DIR = os.environ.get("DATA_DIR", "/data" if os.path.exists("/data") else "./data")

# Status code per error class; the first matching entry wins.
ERROR_STATUS = (
    (InvalidCredentials, 401),
    (AccountInactive, 403),
    (NotConnected, 409),
    (RequestCancelled, 409),
    (RequestTimeout, 504),
    (HttpError, 502),
)


def error_status(exc: XtreamApiError) -> int:
    for error_class, status_code in ERROR_STATUS:
        if isinstance(exc, error_class):
            return status_code
    return 502


def create_app(data_dir: str = DATA_DIR, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    db_path = os.path.join(data_dir, DB_NAME)

    config_service = ConfigService(data_dir)
    config_service.load()
    http_client = HttpClientService(transport=transport)
    cache_service = CacheService(KeyValueStore(db_path, "content_cache"))
    visibility_service = VisibilityService(KeyValueStore(db_path, "group_visibility"))
    group_service = GroupService(KeyValueStore(db_path, "custom_groups"))
    favorites_service = FavoritesService(
        KeyValueStore(db_path, "favorites"), cache_service, visibility_service, group_service
    )
    history_service = WatchHistoryService(
        KeyValueStore(db_path, "watch_history"), cache_service, limit=config_service.get_history_limit()
    )
    session_service = SessionService(config_service, http_client)
    catalog_service = CatalogService(session_service, cache_service, visibility_service, group_service)
    refresh_service = RefreshService(
        session_service,
        RefreshOrchestrator(cache_service, visibility_service, done_delay=config_service.get_done_delay()),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager - handles startup and shutdown"""
        os.makedirs(data_dir, exist_ok=True)
        init_db(db_path)
        cache_service.load_cache_from_disk()
        visibility_service.load()
        group_service.load()
        favorites_service.load()
        history_service.load()
        logger.info(f"XtreamSync started with {len(config_service.get_servers())} saved server(s)")

        yield

        await refresh_service.shutdown()
        session_service.disconnect()
        await http_client.close()
        logger.info("Application shutdown complete")

    app = FastAPI(title="XtreamSync", lifespan=lifespan)

    app.state.config_service = config_service
    app.state.http_client = http_client
    app.state.cache_service = cache_service
    app.state.visibility_service = visibility_service
    app.state.group_service = group_service
    app.state.favorites_service = favorites_service
    app.state.history_service = history_service
    app.state.session_service = session_service
    app.state.catalog_service = catalog_service
    app.state.refresh_service = refresh_service

    @app.exception_handler(XtreamApiError)
    async def xtream_error_handler(request: Request, exc: XtreamApiError):
        status_code = error_status(exc)
        logger.warning(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse({"error": exc.message, "type": exc.__class__.__name__}, status_code=status_code)

    # Middleware to ensure UTF-8 charset in JSON responses
    @app.middleware("http")
    async def add_utf8_charset(request: Request, call_next):
        response = await call_next(request)
        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type and "charset" not in content_type:
            response.headers["content-type"] = "application/json; charset=utf-8"
        return response

    for module in (
        health,
        server_api,
        catalog_api,
        cache_api,
        visibility_api,
        group_api,
        favorites_api,
        history_api,
    ):
        app.include_router(module.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=5000)
