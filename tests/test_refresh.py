"""Tests for the bulk refresh orchestrator and its call-site guard."""

import asyncio

import httpx
import pytest

from conftest import FAST_OPTIONS
from xtreamsync.errors import NotConnected
from xtreamsync.models.catalog import ContentKind
from xtreamsync.services.config_service import ConfigService
from xtreamsync.services.http_client import HttpClientService
from xtreamsync.services.refresh_service import (
    RefreshInProgress,
    RefreshOrchestrator,
    RefreshRun,
    RefreshService,
    RefreshState,
    items_percent,
)
from xtreamsync.services.session_service import LiveContent, SessionService
from xtreamsync.services.xtream_client import XtreamClient


def _slow_items(panel):
    async def handler(request):
        if request.url.params.get("action") == "get_live_streams":
            await asyncio.sleep(5)
        return panel(request)

    return handler


async def _wait_for_phase(run, prefix):
    for _ in range(500):
        if run.phase_label.startswith(prefix):
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"phase {prefix!r} never reported")


def _refresh(panel, server, cache, visibility, run=None, visible_only=False, live=None):
    run = run or RefreshRun()
    live = live or LiveContent()
    orchestrator = RefreshOrchestrator(cache, visibility, done_delay=0)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(panel)) as http:
            client = XtreamClient(server, http, FAST_OPTIONS)
            return await orchestrator.run(run, server.id, client, live, visible_only)

    stats = asyncio.run(go())
    return run, stats


def test_items_percent():
    assert items_percent(0, 3) == 15
    assert items_percent(1, 3) == 42
    assert items_percent(2, 3) == 68
    assert items_percent(3, 3) == 95
    assert items_percent(0, 0) == 15


class TestBulkRefresh:
    def test_full_refresh(self, panel, server, cache, visibility):
        run = RefreshRun()
        progress = []
        run.subscribe(lambda phase, percent: progress.append((phase, percent)))

        run, stats = _refresh(panel, server, cache, visibility, run=run)

        assert run.state == RefreshState.COMPLETED
        assert run.final_stats == stats
        assert stats.live_categories == 2
        assert stats.movie_categories == 1
        assert stats.series_categories == 0
        assert stats.channels == 22
        assert stats.movies == 5
        assert stats.series == 0

        percents = [p for _, p in progress]
        assert percents == sorted(percents)
        for milestone in (5, 10, 15):
            assert milestone in percents
        assert progress[-1] == ("Done", 100)

    def test_items_are_cached_per_category(self, panel, server, cache, visibility):
        _refresh(panel, server, cache, visibility)
        assert len(cache.get_cached_items(server.id, ContentKind.LIVE, 1)) == 12
        assert len(cache.get_cached_items(server.id, ContentKind.LIVE, 2)) == 10
        assert [m.extension for m in cache.get_cached_items(server.id, ContentKind.MOVIE, 10)] == ["mkv"] * 5

    def test_previous_cache_is_cleared(self, panel, server, cache, visibility):
        cache.set_cached_items(server.id, ContentKind.LIVE, 99, [])
        _refresh(panel, server, cache, visibility)
        assert cache.get_cached_items(server.id, ContentKind.LIVE, 99) is None

    def test_live_content_gets_categories(self, panel, server, cache, visibility):
        live = LiveContent()
        _refresh(panel, server, cache, visibility, live=live)
        assert [c.id for c in live.categories[ContentKind.LIVE]] == [1, 2]
        assert live.items[ContentKind.LIVE] == []

    def test_visible_only_skips_hidden_categories(self, panel, server, cache, visibility):
        visibility.set_visible(server.id, ContentKind.LIVE, 2, False)
        run, stats = _refresh(panel, server, cache, visibility, visible_only=True)

        assert run.state == RefreshState.COMPLETED
        assert ("get_live_streams", "2") not in panel.calls
        assert stats.channels == 12
        assert stats.live_categories == 2

    def test_failed_category_is_skipped(self, panel, server, cache, visibility):
        panel.failures[("get_live_streams", "1")] = 500
        run, stats = _refresh(panel, server, cache, visibility)

        assert run.state == RefreshState.COMPLETED
        assert cache.get_cached_items(server.id, ContentKind.LIVE, 1) is None
        assert stats.channels == 10
        assert stats.movies == 5

    def test_timed_out_category_is_skipped(self, panel, server, cache, visibility):
        def handler(request):
            if request.url.params.get("category_id") == "2":
                raise httpx.ReadTimeout("slow", request=request)
            return panel(request)

        run, stats = _refresh(handler, server, cache, visibility)

        assert run.state == RefreshState.COMPLETED
        assert stats.channels == 12
        assert stats.movies == 5

    def test_working_set_is_fixed_once_computed(self, panel, server, cache, visibility):
        visibility.set_visible(server.id, ContentKind.LIVE, 2, False)
        run = RefreshRun()
        run.subscribe(
            lambda phase, percent: visibility.set_visible(server.id, ContentKind.LIVE, 2, True)
            if phase.startswith("Loading Live TV:") else None
        )
        _refresh(panel, server, cache, visibility, run=run, visible_only=True)
        assert ("get_live_streams", "2") not in panel.calls

    def test_category_phase_failure_fails_the_run(self, panel, server, cache, visibility):
        panel.failures["get_vod_categories"] = 500
        run, stats = _refresh(panel, server, cache, visibility)

        assert run.state == RefreshState.FAILED
        assert "500" in run.error
        assert stats.live_categories == 2
        assert panel.item_calls() == []

    def test_stop_between_categories(self, panel, server, cache, visibility):
        run = RefreshRun()

        def stop_on_first_item_phase(phase, percent):
            if phase.startswith("Loading Live TV:"):
                run.request_stop()

        run.subscribe(stop_on_first_item_phase)
        run, stats = _refresh(panel, server, cache, visibility, run=run)

        assert run.state == RefreshState.STOPPED
        assert not run.is_running
        # The in-flight fetch completes before the stop is observed.
        assert panel.item_calls() == [("get_live_streams", "1")]
        assert stats.channels == 12
        assert stats.live_categories == 2

    def test_stop_during_category_phase(self, panel, server, cache, visibility):
        run = RefreshRun()
        run.subscribe(
            lambda phase, percent: run.request_stop() if phase == "Loaded 2 Live TV categories" else None
        )
        run, stats = _refresh(panel, server, cache, visibility, run=run)

        assert run.state == RefreshState.STOPPED
        assert ("get_vod_categories", None) not in panel.calls
        assert panel.item_calls() == []
        assert stats.live_categories == 2
        assert stats.movie_categories == 0

    def test_cancelled_request_stops_the_run(self, panel, server, cache, visibility):
        run = RefreshRun()
        orchestrator = RefreshOrchestrator(cache, visibility, done_delay=0)

        async def go():
            async with httpx.AsyncClient(transport=httpx.MockTransport(_slow_items(panel))) as http:
                client = XtreamClient(server, http, FAST_OPTIONS)
                task = asyncio.ensure_future(orchestrator.run(run, server.id, client, LiveContent()))
                await _wait_for_phase(run, "Loading Live TV:")
                await asyncio.sleep(0.05)
                assert client.cancel_pending_requests() == 1
                return await task

        stats = asyncio.run(go())
        assert run.state == RefreshState.STOPPED
        assert not run.is_running
        assert panel.item_calls() == [("get_live_streams", "1")]
        assert stats.channels == 0
        assert stats.live_categories == 2

    def test_stop_request_when_idle(self):
        run = RefreshRun()
        assert run.request_stop() is False
        assert run.state == RefreshState.IDLE


class TestRefreshService:
    def test_second_start_is_rejected(self, panel, server, cache, visibility, tmp_path):
        cfg = ConfigService(str(tmp_path))
        cfg.add_server(server)
        http = HttpClientService(transport=httpx.MockTransport(panel))
        session = SessionService(cfg, http)
        service = RefreshService(session, RefreshOrchestrator(cache, visibility, done_delay=0))

        async def go():
            await session.connect(server.id)
            task = service.start()
            assert service.run.is_running
            with pytest.raises(RefreshInProgress):
                service.start()
            stats = await task
            await http.close()
            return stats

        stats = asyncio.run(go())
        assert service.run.state == RefreshState.COMPLETED
        assert stats.channels == 22

    def test_requires_connection(self, server, cache, visibility, tmp_path):
        session = SessionService(ConfigService(str(tmp_path)), HttpClientService())
        service = RefreshService(session, RefreshOrchestrator(cache, visibility, done_delay=0))
        with pytest.raises(NotConnected):
            service.start()
        assert service.run.state == RefreshState.IDLE

    def test_shutdown_finishes_the_run(self, panel, server, cache, visibility, tmp_path):
        cfg = ConfigService(str(tmp_path))
        cfg.add_server(server)
        http = HttpClientService(transport=httpx.MockTransport(_slow_items(panel)))
        session = SessionService(cfg, http)
        service = RefreshService(session, RefreshOrchestrator(cache, visibility, done_delay=0))

        async def go():
            await session.connect(server.id)
            service.start()
            await _wait_for_phase(service.run, "Loading Live TV:")
            await service.shutdown()
            await http.close()

        asyncio.run(go())
        assert service.run.state == RefreshState.STOPPED
        assert not service.run.is_running
