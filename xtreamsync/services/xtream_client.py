"""Xtream Codes catalog client — authenticated ``player_api.php`` calls with timeout/retry policy."""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Optional

import httpx

from xtreamsync.errors import (
    RETRYABLE_ERRORS,
    AccountInactive,
    HttpError,
    InvalidCredentials,
    MalformedResponse,
    NetworkError,
    RequestCancelled,
    RequestTimeout,
    XtreamApiError,
)
from xtreamsync.models.catalog import AuthInfo, Category, ContentKind, SeriesDetail
from xtreamsync.models.config import ClientOptions, ServerConnection
from xtreamsync.services.normalizer import transform_categories, transform_series_detail
from xtreamsync.services.stream_urls import build_stream_url, mask_credentials

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "Active"

CATEGORY_ACTIONS = {
    ContentKind.LIVE: "get_live_categories",
    ContentKind.MOVIE: "get_vod_categories",
    ContentKind.SERIES: "get_series_categories",
}

ITEM_ACTIONS = {
    ContentKind.LIVE: "get_live_streams",
    ContentKind.MOVIE: "get_vod_streams",
    ContentKind.SERIES: "get_series",
}


class XtreamClient:
    """Catalog API client bound to one server connection.

    Every request runs as its own task under ``options.timeout``; timeouts
    and connection failures are retried ``options.retries`` times with a
    fixed ``options.retry_delay`` between attempts. HTTP error statuses and
    unparseable bodies fail immediately.
    """

    def __init__(
        self,
        server: ServerConnection,
        http_client: httpx.AsyncClient,
        options: Optional[ClientOptions] = None,
    ):
        self.server = server
        self.http_client = http_client
        self.options = options or ClientOptions()
        self._pending: set[asyncio.Task] = set()
        self._aborted: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        return f"{self.server.url.rstrip('/')}/player_api.php"

    def _params(self, action: Optional[str] = None, **extra) -> dict[str, Any]:
        params: dict[str, Any] = {"username": self.server.username, "password": self.server.password}
        if action:
            params["action"] = action
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    def cancel_pending_requests(self) -> int:
        """Abort every in-flight request. Returns how many were cancelled."""
        cancelled = 0
        for task in list(self._pending):
            if not task.done():
                self._aborted.add(task)
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.info(f"Cancelled {cancelled} pending request(s) to {self.server.url}")
        return cancelled

    async def _send_once(self, params: dict) -> httpx.Response:
        timeout = self.options.timeout
        task = asyncio.ensure_future(self.http_client.get(self.base_url, params=params, timeout=timeout))
        self._pending.add(task)
        try:
            return await asyncio.wait_for(task, timeout=timeout)
        except asyncio.TimeoutError:
            raise RequestTimeout("Request timeout") from None
        except httpx.TimeoutException:
            raise RequestTimeout("Request timeout") from None
        except httpx.TransportError as e:
            raise NetworkError(f"Network error: Unable to connect to server ({e.__class__.__name__})") from e
        except asyncio.CancelledError:
            if task in self._aborted:
                raise RequestCancelled("Request cancelled") from None
            raise
        except httpx.HTTPError as e:
            raise XtreamApiError(str(e) or "Unknown error occurred") from e
        finally:
            self._pending.discard(task)
            self._aborted.discard(task)

    async def _backoff(self) -> None:
        # Tracked like a send so a cancel during the retry delay aborts the request.
        task = asyncio.ensure_future(asyncio.sleep(self.options.retry_delay))
        self._pending.add(task)
        try:
            await task
        except asyncio.CancelledError:
            if task in self._aborted:
                raise RequestCancelled("Request cancelled") from None
            raise
        finally:
            self._pending.discard(task)
            self._aborted.discard(task)

    async def _request(self, params: dict) -> Any:
        action = params.get("action", "authenticate")
        attempts = max(self.options.retries, 0) + 1
        for attempt in range(attempts):
            start_time = time.time()
            try:
                response = await self._send_once(params)
            except RETRYABLE_ERRORS as e:
                if attempt + 1 < attempts:
                    logger.warning(
                        f"{e.message} on {action} (attempt {attempt + 1}/{attempts}), "
                        f"retrying in {self.options.retry_delay}s"
                    )
                    await self._backoff()
                    continue
                logger.error(f"{e.message} on {action} after {attempts} attempt(s)")
                raise

            elapsed = time.time() - start_time
            if not response.is_success:
                logger.warning(
                    f"Fetch {action} failed with status {response.status_code} in {elapsed:.1f}s "
                    f"({mask_credentials(str(response.request.url))})"
                )
                raise HttpError(response.status_code, response.reason_phrase)
            data = self._parse_json(response)
            logger.debug(
                f"Fetched {action}: {len(data) if isinstance(data, list) else 'ok'} items in {elapsed:.1f}s"
            )
            return data
        raise XtreamApiError("Unknown error occurred")

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        text = response.text
        if not text or not text.strip():
            return []
        try:
            return json.loads(text)
        except ValueError:
            raise MalformedResponse("Invalid JSON response from server") from None

    @staticmethod
    def _as_list(data: Any, action: str) -> list:
        if isinstance(data, list):
            return data
        if not data:
            return []
        # Some panels serialise arrays as {"0": {...}, "1": {...}}
        if isinstance(data, dict) and all(isinstance(v, dict) for v in data.values()):
            return list(data.values())
        raise MalformedResponse(f"Unexpected payload for {action}")

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self) -> AuthInfo:
        data = await self._request(self._params())
        if not isinstance(data, dict) or not data.get("user_info") or not data.get("server_info"):
            raise InvalidCredentials("Invalid authentication response")
        status = str(data["user_info"].get("status", ""))
        if status != ACTIVE_STATUS:
            raise AccountInactive(status)
        return AuthInfo.model_validate(data)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def list_categories(self, kind: ContentKind) -> list[Category]:
        kind = ContentKind(kind)
        action = CATEGORY_ACTIONS[kind]
        data = await self._request(self._params(action))
        return transform_categories(self._as_list(data, action), kind)

    async def list_items(self, kind: ContentKind, category_id: Optional[int] = None) -> list[dict]:
        """Raw item records of one category, or of every category when omitted."""
        action = ITEM_ACTIONS[ContentKind(kind)]
        data = await self._request(self._params(action, category_id=category_id))
        return self._as_list(data, action)

    async def get_series_detail(self, series_id: int) -> SeriesDetail:
        data = await self._request(self._params("get_series_info", series_id=series_id))
        if not isinstance(data, dict):
            if not data:
                return SeriesDetail()
            raise MalformedResponse("Unexpected payload for get_series_info")
        return transform_series_detail(data)

    async def get_vod_info(self, vod_id: int) -> dict:
        data = await self._request(self._params("get_vod_info", vod_id=vod_id))
        if not isinstance(data, dict):
            if not data:
                return {"info": {}, "movie_data": {}}
            raise MalformedResponse("Unexpected payload for get_vod_info")
        return {"info": data.get("info") or {}, "movie_data": data.get("movie_data") or {}}

    # ------------------------------------------------------------------
    # Stream URLs
    # ------------------------------------------------------------------

    def build_stream_url(
        self,
        kind: ContentKind,
        stream_id: int,
        extension: Optional[str] = None,
        masked: bool = False,
    ) -> str:
        return build_stream_url(
            self.server.url,
            self.server.username,
            self.server.password,
            kind,
            stream_id,
            extension,
            masked=masked,
        )


async def check_connection(
    server: ServerConnection,
    http_client: httpx.AsyncClient,
    options: Optional[ClientOptions] = None,
) -> AuthInfo:
    """Authenticate against *server* with the short connectivity-test policy."""
    client = XtreamClient(
        server,
        http_client,
        options or ClientOptions(timeout=15.0, retries=1, retry_delay=0.5),
    )
    try:
        return await client.authenticate()
    finally:
        client.cancel_pending_requests()
