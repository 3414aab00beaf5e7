"""API 통합 테스트 (의존성 오버라이드로 네트워크/브라우저 없이 실행)"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.api import get_cache_service, get_health_monitor, get_orchestrator
from src.app import create_app
from src.core.exceptions import CacheConnectionException
from src.crawlers.direct_api import ApiScrapeResult
from src.crawlers.sources import get_source
from src.engine import BudgetConfig, CacheAdapter, HealthMonitor, ScrapeOrchestrator
from src.services import CacheService, MemoryCacheBackend


@pytest.fixture
def cache_service(fake_clock):
    return CacheService(MemoryCacheBackend(), stale_window_s=3600, clock=fake_clock)


@pytest.fixture
def health_monitor(fake_clock):
    return HealthMonitor(failure_threshold=3, clock=fake_clock)


@pytest.fixture
def direct_api(make_product):
    offers = {
        "Zepto": [make_product(name="Amul Milk 1L", price=60.0)],
        "Blinkit": [make_product(name="Toned Milk 500ml", price=35.0, source="Blinkit")],
    }
    client = MagicMock()
    client.supports = MagicMock(return_value=True)
    client.scrape = AsyncMock(side_effect=lambda source_id, *a, **kw: ApiScrapeResult.success(offers[source_id]))
    return client


@pytest.fixture
def orchestrator(cache_service, health_monitor, direct_api):
    fallback = MagicMock()
    fallback.scrape = AsyncMock(return_value=[])
    return ScrapeOrchestrator(
        cache=CacheAdapter(cache_service),
        health=health_monitor,
        direct_api=direct_api,
        fallback=fallback,
        budget_config=BudgetConfig(total_budget=3.0, direct_api_timeout=0.5, source_timeout=1.0, poll_interval=0.05),
        sources=[get_source("Zepto"), get_source("Blinkit")],
    )


@pytest.fixture
def app(cache_service, health_monitor, orchestrator):
    application = create_app()
    application.dependency_overrides[get_cache_service] = lambda: cache_service
    application.dependency_overrides[get_health_monitor] = lambda: health_monitor
    application.dependency_overrides[get_orchestrator] = lambda: orchestrator
    return application


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest.mark.asyncio
class TestHealthAPI:
    """헬스 체크 API 테스트"""

    async def test_health_ok(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["cache_ok"] is True
        assert data["disabled_sources"] == []
        assert "timestamp" in data
        assert "version" in data

    async def test_health_degraded(self, client, health_monitor):
        for _ in range(3):
            health_monitor.record_failure("Zepto")

        data = (await client.get("/health")).json()

        assert data["status"] == "degraded"
        assert data["disabled_sources"] == ["Zepto"]

    async def test_health_cache_down(self, client, cache_service):
        cache_service.health_check = AsyncMock(return_value=False)

        data = (await client.get("/health")).json()

        assert data["status"] == "error"
        assert data["cache_ok"] is False

    async def test_root_endpoint(self, client):
        response = await client.get("/")

        assert response.status_code == 200
        assert "service" in response.json()


@pytest.mark.asyncio
class TestSearchAPI:
    """검색 API 테스트"""

    async def test_search(self, client):
        response = await client.post("/api/v1/search", json={"query": "milk", "location": "560001"})

        assert response.status_code == 200
        data = response.json()
        assert set(data["results"]) == {"Zepto", "Blinkit"}
        assert data["best_deal"]["name"] == "Toned Milk 500ml"
        assert data["location"] == "560001"
        assert data["elapsed_ms"] >= 0

    async def test_search_ranked_and_grouped(self, client):
        data = (await client.post("/api/v1/search", json={"query": "milk", "location": "560001"})).json()

        assert {p["name"] for p in data["ranked"]} == {"Amul Milk 1L", "Toned Milk 500ml"}
        assert sorted(g["canonical_name"] for g in data["groups"]) == ["Amul Milk 1L", "Toned Milk 500ml"]
        assert all(len(g["products"]) == 1 for g in data["groups"])

    async def test_search_default_location(self, client):
        response = await client.post("/api/v1/search", json={"query": "milk"})

        assert response.status_code == 200
        assert response.json()["location"] == "560001"

    async def test_blank_query_rejected(self, client):
        response = await client.post("/api/v1/search", json={"query": "   "})
        assert response.status_code == 422

    async def test_bad_location_rejected(self, client):
        response = await client.post("/api/v1/search", json={"query": "milk", "location": "12ab"})
        assert response.status_code == 422

    async def test_cache_unavailable_returns_503(self, client, cache_service):
        cache_service.ensure_available = AsyncMock(side_effect=CacheConnectionException("redis down"))

        response = await client.post("/api/v1/search", json={"query": "milk"})

        assert response.status_code == 503
        assert response.json()["detail"]["error_code"] == "ORCHESTRATION_ERROR"

    async def test_stream(self, client):
        response = await client.post("/api/v1/search/stream", json={"query": "milk"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        events = [json.loads(line) for line in response.text.splitlines() if line]
        assert events[0] == {"type": "started", "sources": ["Zepto", "Blinkit"]}
        assert events[-1] == {"type": "completed"}
        assert sorted(e["source"] for e in events if e["type"] == "platform_result") == ["Blinkit", "Zepto"]


@pytest.mark.asyncio
class TestSourceAPI:
    """소스 회로 상태 API 테스트"""

    async def test_sources_health(self, client, health_monitor):
        health_monitor.record_failure("Blinkit")

        data = (await client.get("/api/v1/sources/health")).json()

        assert [d["source"] for d in data] == ["Zepto", "Blinkit"]
        assert data[1]["failure_count"] == 1

    async def test_single_source_case_insensitive(self, client):
        response = await client.get("/api/v1/sources/zepto/health")

        assert response.status_code == 200
        assert response.json()["state"] == "CLOSED"

    async def test_unknown_source(self, client):
        response = await client.get("/api/v1/sources/nosuchmart/health")
        assert response.status_code == 404

    async def test_reset_source(self, client, health_monitor):
        for _ in range(3):
            health_monitor.record_failure("Zepto")

        response = await client.post("/api/v1/sources/Zepto/reset")

        assert response.status_code == 200
        assert response.json()["state"] == "CLOSED"
        assert health_monitor.is_healthy("Zepto")


@pytest.mark.asyncio
class TestCacheAPI:
    """캐시 관리 API 테스트"""

    async def test_stats_after_search(self, client):
        await client.post("/api/v1/search", json={"query": "milk"})

        data = (await client.get("/api/v1/cache/stats", params={"window_s": 600})).json()

        assert data["entry_count"] == 2
        assert data["hits_since"] == 2
        assert data["window_s"] == 600

    async def test_clear(self, client, cache_service, make_product):
        await cache_service.set("prices:zepto:560001:a", [make_product()], ttl_s=300)

        response = await client.delete("/api/v1/cache")

        assert response.json() == {"status": "ok", "removed": 1}

    async def test_invalid_window(self, client):
        response = await client.get("/api/v1/cache/stats", params={"window_s": 0})
        assert response.status_code == 422
