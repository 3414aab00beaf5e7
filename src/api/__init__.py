"""API 엔드포인트 패키지 - export only."""

from .routes import (
    cache_router,
    get_cache_service,
    get_health_monitor,
    get_orchestrator,
    health_router,
    search_router,
)

__all__ = [
    "search_router",
    "health_router",
    "cache_router",
    "get_cache_service",
    "get_health_monitor",
    "get_orchestrator",
]
