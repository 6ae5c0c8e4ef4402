"""Bulk refresh — clear a server's cache and re-fetch every category and its items.

The run is a single sequential coroutine. Stopping is cooperative: a stop
request is only observed between fetches, so an in-flight request always
finishes first.
"""
from __future__ import annotations

import asyncio
import logging
import math
from enum import Enum
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from xtreamsync.errors import RequestCancelled
from xtreamsync.models.catalog import KIND_LABELS, KINDS, Category, ContentKind
from xtreamsync.models.library import RefreshStats, now_ms
from xtreamsync.services.normalizer import transform_items

if TYPE_CHECKING:
    from xtreamsync.services.cache_service import CacheService
    from xtreamsync.services.session_service import LiveContent, SessionService
    from xtreamsync.services.visibility_service import VisibilityService
    from xtreamsync.services.xtream_client import XtreamClient

logger = logging.getLogger(__name__)

# Progress reached once each kind's category list is cached.
CATEGORY_MILESTONES = {
    ContentKind.LIVE: 5,
    ContentKind.MOVIE: 10,
    ContentKind.SERIES: 15,
}
ITEMS_BASE_PERCENT = 15
ITEMS_SPAN_PERCENT = 80

ProgressCallback = Callable[[str, int], None]


class RefreshState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    COMPLETED = "completed"
    FAILED = "failed"


class RefreshInProgress(RuntimeError):
    """Raised by the call site when a second bulk refresh is requested."""


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class RefreshRun:
    """Process-wide state of the (single) bulk refresh.

    Passed by reference to whoever starts or queries a refresh.
    """

    def __init__(self):
        self.state = RefreshState.IDLE
        self.server_id: Optional[str] = None
        self.phase_label = ""
        self.percent = 0
        self.final_stats: Optional[RefreshStats] = None
        self.error: Optional[str] = None
        self.started_at: Optional[int] = None
        self.finished_at: Optional[int] = None
        self.token = CancellationToken()
        self._listeners: list[ProgressCallback] = []

    @property
    def is_running(self) -> bool:
        return self.state in (RefreshState.RUNNING, RefreshState.STOPPING)

    @property
    def should_stop(self) -> bool:
        return self.token.cancelled

    def subscribe(self, callback: ProgressCallback) -> None:
        self._listeners.append(callback)

    def begin(self, server_id: str) -> None:
        self.state = RefreshState.RUNNING
        self.server_id = server_id
        self.phase_label = ""
        self.percent = 0
        self.final_stats = None
        self.error = None
        self.started_at = now_ms()
        self.finished_at = None
        self.token = CancellationToken()

    def report(self, phase_label: str, percent: int) -> None:
        self.phase_label = phase_label
        self.percent = max(0, min(100, percent))
        for callback in self._listeners:
            callback(self.phase_label, self.percent)

    def request_stop(self) -> bool:
        """Ask a running refresh to stop at its next checkpoint."""
        if not self.is_running:
            return False
        self.token.cancel()
        self.state = RefreshState.STOPPING
        logger.info("Refresh stop requested")
        return True

    def finish(self, state: RefreshState, stats: RefreshStats, error: Optional[str] = None) -> None:
        self.state = state
        self.final_stats = stats
        self.error = error
        self.phase_label = ""
        self.percent = 0
        self.finished_at = now_ms()
        self.token = CancellationToken()

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "is_running": self.is_running,
            "should_stop": self.should_stop,
            "server_id": self.server_id,
            "phase": self.phase_label,
            "percent": self.percent,
            "final_stats": self.final_stats.model_dump() if self.final_stats else None,
            "error": self.error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


def items_percent(completed: int, total: int) -> int:
    if total <= 0:
        return ITEMS_BASE_PERCENT
    # Round half up, the way a progress bar reads.
    return ITEMS_BASE_PERCENT + math.floor(ITEMS_SPAN_PERCENT * completed / total + 0.5)


class RefreshOrchestrator:
    """Drives one bulk refresh over a :class:`RefreshRun`."""

    def __init__(
        self,
        cache: "CacheService",
        visibility: "VisibilityService",
        done_delay: float = 1.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.cache = cache
        self.visibility = visibility
        self.done_delay = done_delay
        self._sleep = sleep

    async def run(
        self,
        run: RefreshRun,
        server_id: str,
        client: "XtreamClient",
        live: "LiveContent",
        visible_only: bool = False,
    ) -> RefreshStats:
        try:
            return await self._run(run, server_id, client, live, visible_only)
        except asyncio.CancelledError:
            self._stop(run, server_id)
            raise

    async def _run(
        self,
        run: RefreshRun,
        server_id: str,
        client: "XtreamClient",
        live: "LiveContent",
        visible_only: bool,
    ) -> RefreshStats:
        if not (run.is_running and run.server_id == server_id):
            run.begin(server_id)
        logger.info(f"Starting bulk refresh for server {server_id} (visible_only={visible_only})")

        with self.cache.deferred_save(server_id):
            categories: dict[ContentKind, list[Category]] = {}
            try:
                run.report("Clearing cache…", 0)
                self.cache.clear(server_id)
                live.reset()

                for kind in KINDS:
                    run.report(f"Loading {KIND_LABELS[kind]} categories…", run.percent)
                    fetched = await client.list_categories(kind)
                    self.cache.set_cached_categories(server_id, kind, fetched)
                    live.set_categories(kind, fetched)
                    categories[kind] = fetched
                    run.report(f"Loaded {len(fetched)} {KIND_LABELS[kind]} categories", CATEGORY_MILESTONES[kind])
                    if run.should_stop:
                        return self._stop(run, server_id)
            except RequestCancelled:
                logger.info("Bulk refresh aborted: request cancelled")
                return self._stop(run, server_id)
            except Exception as e:
                logger.error(f"Bulk refresh failed while loading categories: {e}")
                stats = self.cache.get_stats(server_id)
                run.finish(RefreshState.FAILED, stats, error=str(e) or e.__class__.__name__)
                return stats

            working = self._working_set(server_id, categories, visible_only)
            pairs = [(kind, cat) for kind in KINDS for cat in working[kind]]
            total = len(pairs)
            logger.info(f"Fetching items for {total} categor{'y' if total == 1 else 'ies'}")

            for completed, (kind, category) in enumerate(pairs):
                if run.should_stop:
                    return self._stop(run, server_id)
                run.report(
                    f"Loading {KIND_LABELS[kind]}: {category.name} ({completed}/{total})",
                    items_percent(completed, total),
                )
                try:
                    raw_items = await client.list_items(kind, category.id)
                    items = transform_items(raw_items, kind)
                except RequestCancelled:
                    logger.info("Bulk refresh aborted: request cancelled")
                    run.token.cancel()
                    return self._stop(run, server_id)
                except Exception as e:
                    logger.error(f"Failed to refresh {kind.value} category {category.id} ({category.name}): {e}")
                    continue
                self.cache.set_cached_items(server_id, kind, category.id, items)

        run.report("Done", 100)
        stats = self.cache.get_stats(server_id)
        run.final_stats = stats
        logger.info(
            f"Refresh complete. {stats.channels} live, {stats.movies} movies, {stats.series} series "
            f"in {stats.live_categories + stats.movie_categories + stats.series_categories} categories"
        )
        if self.done_delay > 0:
            await self._sleep(self.done_delay)
        run.finish(RefreshState.COMPLETED, stats)
        return stats

    def _working_set(
        self,
        server_id: str,
        categories: dict[ContentKind, list[Category]],
        visible_only: bool,
    ) -> dict[ContentKind, list[Category]]:
        if not visible_only:
            return categories
        return {
            kind: self.visibility.filter_categories(server_id, kind, cats)
            for kind, cats in categories.items()
        }

    def _stop(self, run: RefreshRun, server_id: str) -> RefreshStats:
        stats = self.cache.get_stats(server_id)
        run.finish(RefreshState.STOPPED, stats)
        logger.info(f"Bulk refresh stopped for server {server_id}")
        return stats


class RefreshService:
    """Call-site wrapper: owns the shared run, guards against concurrent runs."""

    def __init__(
        self,
        session: "SessionService",
        orchestrator: RefreshOrchestrator,
        run: Optional[RefreshRun] = None,
    ):
        self.session = session
        self.orchestrator = orchestrator
        self.run = run or RefreshRun()
        self._task: Optional[asyncio.Task] = None

    def start(self, visible_only: bool = False) -> asyncio.Task:
        """Schedule a bulk refresh of the connected server in the background."""
        if self.run.is_running:
            raise RefreshInProgress("A refresh is already running")
        server_id = self.session.require_server_id()
        client = self.session.require_client()
        # Claim the run before the task gets scheduled so a second call is rejected.
        self.run.begin(server_id)
        self._task = asyncio.create_task(
            self.orchestrator.run(self.run, server_id, client, self.session.live, visible_only)
        )
        return self._task

    def stop(self) -> bool:
        return self.run.request_stop()

    async def shutdown(self) -> None:
        if self._task is not None and not self._task.done():
            self.run.request_stop()
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
