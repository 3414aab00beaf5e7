"""헬스 체크 / 소스 회로차단기 엔드포인트"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime

from src.schemas.product_schema import HealthResponse, SourceHealthResponse
from src.services.impl.cache_service import CacheService
from src.api.routes.search_routes import get_cache_service, get_health_monitor, get_orchestrator
from src.crawlers.sources import get_source
from src.engine import HealthMonitor, ScrapeOrchestrator
from src.core.logging import logger
from src import __version__

router = APIRouter(tags=["health"])


def _resolve_source(source: str) -> str:
    cfg = get_source(source)
    if cfg is None:
        raise HTTPException(status_code=404, detail={"error_code": "UNKNOWN_SOURCE", "message": f"Unknown source: {source}"})
    return cfg.id


@router.get("/health", response_model=HealthResponse)
async def health_check(
    cache_service: CacheService = Depends(get_cache_service),
    health_monitor: HealthMonitor = Depends(get_health_monitor),
):
    """
    헬스 체크 엔드포인트

    - 서버 상태
    - 캐시 저장소 연결 상태
    - 회로가 열린 소스 목록
    """
    cache_ok = await cache_service.health_check()
    disabled = health_monitor.disabled_sources()
    if not cache_ok:
        logger.warning("[API] Health check: cache unavailable")

    if not cache_ok:
        status = "error"
    elif disabled:
        status = "degraded"
    else:
        status = "ok"

    return HealthResponse(
        status=status,
        timestamp=datetime.now(),
        version=__version__,
        cache_ok=cache_ok,
        disabled_sources=disabled,
    )


@router.get("/api/v1/sources/health", response_model=List[SourceHealthResponse])
async def sources_health(
    orchestrator: ScrapeOrchestrator = Depends(get_orchestrator),
    health_monitor: HealthMonitor = Depends(get_health_monitor),
):
    """활성 소스 전체의 회로 상태"""
    return [SourceHealthResponse(**health_monitor.health_detail(s)) for s in orchestrator.source_ids]


@router.get("/api/v1/sources/{source}/health", response_model=SourceHealthResponse)
async def source_health(source: str, health_monitor: HealthMonitor = Depends(get_health_monitor)):
    return SourceHealthResponse(**health_monitor.health_detail(_resolve_source(source)))


@router.post("/api/v1/sources/reset")
async def reset_all_sources(health_monitor: HealthMonitor = Depends(get_health_monitor)):
    health_monitor.reset_all()
    return {"status": "ok"}


@router.post("/api/v1/sources/{source}/reset", response_model=SourceHealthResponse)
async def reset_source(source: str, health_monitor: HealthMonitor = Depends(get_health_monitor)):
    """소스 회로를 CLOSED로 초기화"""
    source_id = _resolve_source(source)
    health_monitor.reset_source(source_id)
    return SourceHealthResponse(**health_monitor.health_detail(source_id))


@router.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "service": "Grocery Price Aggregator",
        "version": __version__,
        "docs": "/docs"
    }
