"""Search Routes - HTTP 요청을 ScrapeOrchestrator로 위임

- POST /api/v1/search: 스트림을 모두 모아 소스별 결과 + best deal + 의도 기준 정렬/동일 상품 묶음 반환
- POST /api/v1/search/stream: 검색 이벤트를 NDJSON으로 스트리밍
"""

import time
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from src.core.config import settings
from src.core.exceptions import OrchestrationException, ValidationException
from src.core.logging import logger, sanitize_for_log
from src.engine import (
    CacheAdapter,
    HealthMonitor,
    ScrapeOrchestrator,
    group_similar_products,
    rank_results,
    select_best_deal,
)
from src.schemas.product_schema import ProductGroup, SearchRequest, SearchResponse
from src.services.impl.cache_service import CacheService, build_cache_service
from src.utils.search_intent import analyze_query

router = APIRouter(prefix="/api/v1", tags=["search"])

# 싱글톤 서비스 (프로세스 당 1개의 캐시/헬스 상태)
_cache_service: Optional[CacheService] = None
_health_monitor: Optional[HealthMonitor] = None
_orchestrator: Optional[ScrapeOrchestrator] = None


def get_cache_service() -> CacheService:
    """CacheService 싱글톤 (cache_backend 설정에 따라 메모리/Redis)"""
    global _cache_service
    if _cache_service is None:
        _cache_service = build_cache_service()
    return _cache_service


def get_health_monitor() -> HealthMonitor:
    """HealthMonitor 싱글톤"""
    global _health_monitor
    if _health_monitor is None:
        _health_monitor = HealthMonitor()
    return _health_monitor


def get_orchestrator(
    cache_service: CacheService = Depends(get_cache_service),
    health_monitor: HealthMonitor = Depends(get_health_monitor),
) -> ScrapeOrchestrator:
    """ScrapeOrchestrator 싱글톤"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ScrapeOrchestrator(
            cache=CacheAdapter(cache_service),
            health=health_monitor,
        )
    return _orchestrator


@router.post("/search", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
):
    """멀티 소스 가격 검색 (비스트리밍)

    모든 소스 결과(또는 데드라인)까지 기다린 뒤 한 번에 반환합니다.
    """
    location = request.location or settings.default_location
    logger.info(f"[API] Search request: query='{sanitize_for_log(request.query)}', location={location}")

    started = time.perf_counter()
    try:
        results = await orchestrator.search(request.query, location)
    except ValidationException as e:
        logger.warning(f"[API] Invalid search request: {e}")
        raise HTTPException(status_code=400, detail={"error_code": e.error_code, "message": e.message})
    except OrchestrationException as e:
        logger.error(f"[API] Search failed: {e}")
        raise HTTPException(status_code=503, detail={"error_code": e.error_code, "message": e.message})

    best_deal = select_best_deal(results, request.query)
    all_products = [p for products in results.values() for p in products]
    ranked = rank_results(all_products, analyze_query(request.query))
    groups = [
        ProductGroup(canonical_name=name, products=members)
        for name, members in group_similar_products(ranked).items()
    ]
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        f"[API] Search done: {sum(len(v) for v in results.values())} products "
        f"from {len(results)} sources in {elapsed_ms:.0f}ms"
    )
    return SearchResponse(
        query=request.query,
        location=location,
        results=results,
        best_deal=best_deal,
        ranked=ranked,
        groups=groups,
        elapsed_ms=elapsed_ms,
    )


@router.post("/search/stream")
async def search_stream(
    request: SearchRequest,
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
):
    """검색 이벤트 스트림 (NDJSON, 한 줄에 이벤트 1개)

    started → platform_result/message ... → completed | error
    """
    location = request.location or settings.default_location
    logger.info(f"[API] Stream request: query='{sanitize_for_log(request.query)}', location={location}")

    async def _ndjson() -> AsyncIterator[str]:
        async for event in orchestrator.search_stream(request.query, location):
            yield event.model_dump_json() + "\n"

    return StreamingResponse(_ndjson(), media_type="application/x-ndjson")
