"""FastAPI 앱 팩토리"""
import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.core.config import settings
from src.core.logging import logger
from src.api import cache_router, get_cache_service, health_router, search_router
from src.services.impl.cache_service import CacheService


async def _purge_loop(cache_service: CacheService, interval_s: int) -> None:
    """만료된 캐시 엔트리를 주기적으로 삭제"""
    while True:
        await asyncio.sleep(interval_s)
        try:
            await cache_service.purge_expired()
        except Exception as e:
            logger.warning(f"[CACHE] Periodic purge failed: {type(e).__name__}: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기"""
    logger.info("Starting application...")

    if settings.crawler_playwright_warmup:
        from src.crawlers.playwright import warmup

        try:
            await warmup()
        except Exception as e:
            # 워밍업 실패는 첫 렌더 요청에서 재시도됨
            logger.warning(f"[Playwright] Warmup failed: {type(e).__name__}: {e}")

    cache_service = get_cache_service()
    purge_task = asyncio.create_task(_purge_loop(cache_service, settings.cache_purge_interval_s))
    logger.info("Application started")
    yield
    logger.info("Shutting down application...")

    purge_task.cancel()
    await asyncio.gather(purge_task, return_exceptions=True)

    try:
        from src.crawlers.http_client import shutdown_shared_http_client
        await shutdown_shared_http_client()
    except Exception as e:
        # 종료 훅에서의 예외는 앱 종료를 막지 않음
        logger.debug(f"[HTTP_CLIENT] shutdown ignored: {type(e).__name__}")

    try:
        from src.crawlers.playwright import shutdown_shared_browser
        await shutdown_shared_browser()
    except Exception as e:
        logger.debug(f"[Playwright] shutdown ignored: {type(e).__name__}")

    try:
        await cache_service.close()
    except Exception as e:
        logger.debug(f"[CACHE] close ignored: {type(e).__name__}")


def create_app() -> FastAPI:
    """
    FastAPI 앱 생성 (Factory Pattern)

    Returns:
        FastAPI 앱 인스턴스
    """
    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        lifespan=lifespan
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 라우터 등록
    app.include_router(health_router)
    app.include_router(search_router)
    app.include_router(cache_router)

    return app

# 앱 인스턴스 생성 (uvicorn이 로드할 수 있도록)
app = create_app()
