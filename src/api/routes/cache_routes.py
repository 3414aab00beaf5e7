"""캐시 관리 엔드포인트"""
from fastapi import APIRouter, Depends, HTTPException, Query

from src.core.exceptions import CacheException
from src.core.logging import logger
from src.schemas.product_schema import CacheStatsResponse
from src.services.impl.cache_service import CacheService
from src.api.routes.search_routes import get_cache_service

router = APIRouter(prefix="/api/v1/cache", tags=["cache"])


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(
    window_s: int = Query(3600, gt=0, le=86400, description="최근 갱신 집계 구간 (초)"),
    cache_service: CacheService = Depends(get_cache_service),
):
    try:
        stats = await cache_service.stats(window_s=window_s)
    except CacheException as e:
        logger.error(f"[API] Cache stats failed: {e}")
        raise HTTPException(status_code=503, detail={"error_code": e.error_code, "message": e.message})
    return CacheStatsResponse(**stats)


@router.delete("")
async def clear_cache(cache_service: CacheService = Depends(get_cache_service)):
    """캐시 전체 삭제"""
    try:
        removed = await cache_service.clear_all()
    except CacheException as e:
        logger.error(f"[API] Cache clear failed: {e}")
        raise HTTPException(status_code=503, detail={"error_code": e.error_code, "message": e.message})
    return {"status": "ok", "removed": removed}
