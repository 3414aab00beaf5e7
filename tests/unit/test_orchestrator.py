"""ScrapeOrchestrator 유닛 테스트 (이벤트 스트림, 캐시/회로/stale/데드라인)"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.exceptions import CacheConnectionException, InvalidQueryException, OrchestrationException
from src.crawlers.direct_api import ApiScrapeResult
from src.crawlers.sources import get_source
from src.engine import BudgetConfig, CacheAdapter, CacheLookup, HealthMonitor, ScrapeOrchestrator
from src.schemas.product_schema import (
    CompletedEvent,
    ErrorEvent,
    MessageEvent,
    PlatformResultEvent,
    StartedEvent,
)
from src.services import CacheService, MemoryCacheBackend

FAST_BUDGET = BudgetConfig(
    total_budget=3.0,
    direct_api_timeout=0.2,
    source_timeout=1.0,
    poll_interval=0.05,
    min_remaining=0.1,
)


def _sources(*ids: str):
    return [get_source(source_id) for source_id in ids]


@pytest.fixture
def cache_adapter(fake_clock):
    return CacheAdapter(CacheService(MemoryCacheBackend(), stale_window_s=3600, clock=fake_clock))


@pytest.fixture
def health(fake_clock):
    return HealthMonitor(failure_threshold=3, clock=fake_clock)


@pytest.fixture
def direct_api():
    """Direct API 모의 객체 (기본: 상품 없음)"""
    client = MagicMock()
    client.supports = MagicMock(return_value=True)
    client.scrape = AsyncMock(return_value=ApiScrapeResult.no_products())
    return client


@pytest.fixture
def fallback():
    """Fallback Manager 모의 객체 (기본: 빈 결과)"""
    manager = MagicMock()
    manager.scrape = AsyncMock(return_value=[])
    return manager


def _orchestrator(cache_adapter, health, direct_api, fallback, sources, budget=FAST_BUDGET, **kwargs):
    return ScrapeOrchestrator(
        cache=cache_adapter,
        health=health,
        direct_api=direct_api,
        fallback=fallback,
        budget_config=budget,
        sources=sources,
        **kwargs,
    )


async def _collect(orchestrator, query="milk", location="560001") -> list:
    return [event async for event in orchestrator.search_stream(query, location)]


def _results(events) -> dict[str, PlatformResultEvent]:
    return {e.source: e for e in events if isinstance(e, PlatformResultEvent)}


@pytest.mark.asyncio
class TestSearchStream:
    """이벤트 순서와 소스당 1회 결과"""

    async def test_mixed_outcomes(self, cache_adapter, health, direct_api, fallback, make_product):
        """성공 / Direct API 타임아웃 후 폴백 / Direct API 예외 후 폴백이 섞여도 소스마다 결과 1개"""

        async def scrape(source_id, query, location, timeout_s=None):
            if source_id == "Zepto":
                return ApiScrapeResult.success([make_product(source="Zepto")])
            if source_id == "Blinkit":
                await asyncio.sleep(5)
            raise RuntimeError("endpoint exploded")

        async def render(source_id, query, location, render_gate):
            return [make_product(name="Amul Gold Milk 500ml", source=source_id)]

        direct_api.scrape = AsyncMock(side_effect=scrape)
        fallback.scrape = AsyncMock(side_effect=render)
        orchestrator = _orchestrator(
            cache_adapter, health, direct_api, fallback, _sources("Zepto", "Blinkit", "Amazon")
        )

        events = await _collect(orchestrator)

        assert isinstance(events[0], StartedEvent)
        assert events[0].sources == ["Zepto", "Blinkit", "Amazon"]
        assert isinstance(events[-1], CompletedEvent)
        platform = [e for e in events if isinstance(e, PlatformResultEvent)]
        assert sorted(e.source for e in platform) == ["Amazon", "Blinkit", "Zepto"]

        results = _results(events)
        assert len(results["Zepto"].products) == 1
        assert results["Blinkit"].products[0].name == "Amul Gold Milk 500ml"
        assert results["Amazon"].products[0].source == "Amazon"
        assert all(e.cached is False for e in platform)

        assert sorted(c.args[0] for c in fallback.scrape.await_args_list) == ["Amazon", "Blinkit"]
        assert health.health_detail("Amazon")["failure_count"] == 0
        assert health.health_detail("Zepto")["success_rate"] == 1.0

    async def test_direct_api_error_then_fallback_success(
        self, cache_adapter, health, direct_api, fallback, make_product
    ):
        direct_api.scrape = AsyncMock(side_effect=KeyError("products"))
        fallback.scrape = AsyncMock(return_value=[make_product(price=24.0)])
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        events = await _collect(orchestrator)

        result = _results(events)["Zepto"]
        assert result.cached is False
        assert result.products[0].price == 24.0
        assert health.health_detail("Zepto")["failure_count"] == 0
        assert (await cache_adapter.lookup("milk", "Zepto", "560001")).is_fresh_hit is True

    async def test_direct_api_error_serves_stale(
        self, cache_adapter, health, direct_api, fallback, fake_clock, make_product
    ):
        """Direct API 예외 + 폴백도 빈 결과면 stale 캐시와 안내 메시지"""
        await cache_adapter.store("milk", "Zepto", "560001", [make_product(price=25.0)])
        fake_clock.advance(400)
        direct_api.scrape = AsyncMock(side_effect=RuntimeError("boom"))
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        events = await _collect(orchestrator)

        result = _results(events)["Zepto"]
        assert result.cached is True
        assert result.products[0].price == 25.0
        assert any(isinstance(e, MessageEvent) and "Zepto" in e.text for e in events)
        fallback.scrape.assert_awaited_once()
        assert health.health_detail("Zepto")["failure_count"] == 1

    async def test_fallback_error_serves_stale(
        self, cache_adapter, health, direct_api, fallback, fake_clock, make_product
    ):
        await cache_adapter.store("milk", "Zepto", "560001", [make_product(price=25.0)])
        fake_clock.advance(400)
        fallback.scrape = AsyncMock(side_effect=RuntimeError("renderer crashed"))
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        events = await _collect(orchestrator)

        assert _results(events)["Zepto"].cached is True
        assert isinstance(events[-1], CompletedEvent)

    async def test_cancelled_trial_request_is_released(
        self, cache_adapter, health, direct_api, fallback, fake_clock, make_product
    ):
        """HALF_OPEN 시험 요청이 취소(클라이언트 연결 종료)되면 다음 요청이 다시 시도 가능"""
        for _ in range(3):
            health.record_failure("Zepto")
        fake_clock.advance(60)

        async def render(source_id, query, location, render_gate):
            if source_id == "Zepto":
                await asyncio.sleep(10)
            return [make_product(source=source_id)]

        direct_api.supports = MagicMock(return_value=False)
        fallback.scrape = AsyncMock(side_effect=render)
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto", "Blinkit"))

        stream = orchestrator.search_stream("milk", "560001")
        async for event in stream:
            if isinstance(event, PlatformResultEvent) and event.source == "Blinkit":
                break
        await stream.aclose()

        assert health.health_detail("Zepto")["state"] == "HALF_OPEN"
        assert health.health_detail("Zepto")["failure_count"] == 3
        assert health.should_attempt("Zepto") is True

    async def test_live_success_is_cached(self, cache_adapter, health, direct_api, fallback, make_product):
        direct_api.scrape = AsyncMock(return_value=ApiScrapeResult.success([make_product()]))
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        await _collect(orchestrator)
        events = await _collect(orchestrator)

        assert direct_api.scrape.await_count == 1
        assert _results(events)["Zepto"].cached is True

    async def test_cache_hit_skips_scrape(self, cache_adapter, health, direct_api, fallback, make_product):
        await cache_adapter.store("milk", "Zepto", "560001", [make_product()])
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto", "Blinkit"))

        events = await _collect(orchestrator)

        results = _results(events)
        assert results["Zepto"].cached is True
        assert results["Zepto"].products[0].name == "Amul Taaza Toned Milk 500ml"
        assert [c.args[0] for c in direct_api.scrape.await_args_list] == ["Blinkit"]

    async def test_query_normalized_for_cache(self, cache_adapter, health, direct_api, fallback, make_product):
        await cache_adapter.store("toned milk", "Zepto", "560001", [make_product()])
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        events = await _collect(orchestrator, query="  Toned   Milk ")

        assert _results(events)["Zepto"].cached is True

    async def test_circuit_open_source_skipped(self, cache_adapter, health, direct_api, fallback):
        for _ in range(3):
            health.record_failure("Zepto")
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        events = await _collect(orchestrator)

        messages = [e.text for e in events if isinstance(e, MessageEvent)]
        assert messages == ["Zepto is temporarily unavailable (retry in 60s)"]
        assert _results(events)["Zepto"].products == []
        direct_api.scrape.assert_not_awaited()
        fallback.scrape.assert_not_awaited()
        assert isinstance(events[-1], CompletedEvent)

    async def test_stale_served_when_live_fails(
        self, cache_adapter, health, direct_api, fallback, fake_clock, make_product
    ):
        await cache_adapter.store("milk", "Zepto", "560001", [make_product(price=25.0)])
        fake_clock.advance(400)
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        events = await _collect(orchestrator)

        result = _results(events)["Zepto"]
        assert result.cached is True
        assert result.products[0].price == 25.0
        assert any(
            isinstance(e, MessageEvent) and e.text.startswith("Showing recently cached Zepto results")
            for e in events
        )
        fallback.scrape.assert_awaited_once()
        assert health.health_detail("Zepto")["failure_count"] == 1

    async def test_empty_live_result_counts_as_failure(self, cache_adapter, health, direct_api, fallback):
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        for _ in range(3):
            await _collect(orchestrator)

        assert health.is_healthy("Zepto") is False

    async def test_cache_unavailable_ends_with_error(self, health, direct_api, fallback):
        cache = MagicMock()
        cache.ensure_available = AsyncMock(side_effect=CacheConnectionException("redis down"))
        orchestrator = _orchestrator(cache, health, direct_api, fallback, _sources("Zepto"))

        events = await _collect(orchestrator)

        assert isinstance(events[0], StartedEvent)
        assert isinstance(events[-1], ErrorEvent)
        assert "redis down" in events[-1].message
        assert not any(isinstance(e, CompletedEvent) for e in events)

    async def test_deadline_fills_missing_sources(self, health, direct_api, fallback, make_product):
        """데드라인이 지나면 못 끝낸 소스는 빈 결과로 채우고 Completed"""

        async def lookup(query, source, location):
            if source == "Blinkit":
                await asyncio.sleep(10)
            return CacheLookup(products=[make_product(source=source)])

        cache = MagicMock()
        cache.ensure_available = AsyncMock()
        cache.lookup = AsyncMock(side_effect=lookup)
        cache.store = AsyncMock()
        budget = BudgetConfig(total_budget=0.3, direct_api_timeout=0.1, source_timeout=0.2, poll_interval=0.05)
        orchestrator = _orchestrator(cache, health, direct_api, fallback, _sources("Zepto", "Blinkit"), budget=budget)

        events = await asyncio.wait_for(_collect(orchestrator), timeout=5)

        results = _results(events)
        assert results["Zepto"].cached is True
        assert results["Blinkit"].products == []
        assert isinstance(events[-1], CompletedEvent)

    async def test_render_concurrency_limited(self, cache_adapter, health, direct_api, fallback):
        active = 0
        peak = 0

        async def scrape(source_id, query, location, render_gate):
            nonlocal active, peak
            async with render_gate:
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.05)
                active -= 1
            return []

        direct_api.supports = MagicMock(return_value=False)
        fallback.scrape = AsyncMock(side_effect=scrape)
        sources = _sources("Zepto", "Blinkit", "BigBasket", "Instamart", "Amazon", "Flipkart")
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, sources, render_concurrency=2)

        events = await _collect(orchestrator)

        assert len(_results(events)) == 6
        assert fallback.scrape.await_count == 6
        assert peak == 2

    async def test_blank_query_rejected(self, cache_adapter, health, direct_api, fallback):
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))
        with pytest.raises(InvalidQueryException):
            await _collect(orchestrator, query="   ")

    async def test_default_location(self, cache_adapter, health, direct_api, fallback):
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto"))

        await _collect(orchestrator, location=None)

        assert direct_api.scrape.await_args.args[2] == "560001"


@pytest.mark.asyncio
class TestAggregation:
    """search / find_best_deal"""

    async def test_search_returns_mapping(self, cache_adapter, health, direct_api, fallback, make_product):
        direct_api.scrape = AsyncMock(
            side_effect=lambda source_id, *a, **kw: ApiScrapeResult.success([make_product(source=source_id)])
        )
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto", "Blinkit"))

        results = await orchestrator.search("milk", "560001")

        assert set(results) == {"Zepto", "Blinkit"}
        assert results["Blinkit"][0].source == "Blinkit"

    async def test_search_raises_on_error(self, health, direct_api, fallback):
        cache = MagicMock()
        cache.ensure_available = AsyncMock(side_effect=CacheConnectionException("redis down"))
        orchestrator = _orchestrator(cache, health, direct_api, fallback, _sources("Zepto"))

        with pytest.raises(OrchestrationException):
            await orchestrator.search("milk", "560001")

    async def test_find_best_deal(self, cache_adapter, health, direct_api, fallback, make_product):
        offers = {
            "Zepto": [make_product(name="Amul Milk 1L", price=60.0), make_product(name="Milk Chocolate Bar", price=40.0)],
            "Blinkit": [make_product(name="Toned Milk 500ml", price=35.0, source="Blinkit")],
        }
        direct_api.scrape = AsyncMock(
            side_effect=lambda source_id, *a, **kw: ApiScrapeResult.success(offers[source_id])
        )
        orchestrator = _orchestrator(cache_adapter, health, direct_api, fallback, _sources("Zepto", "Blinkit"))

        best = await orchestrator.find_best_deal("milk", "560001")

        assert best.name == "Toned Milk 500ml"
