"""API routes package."""

from .search_routes import router as search_router, get_cache_service, get_health_monitor, get_orchestrator
from .health_routes import router as health_router
from .cache_routes import router as cache_router

__all__ = [
    "search_router",
    "health_router",
    "cache_router",
    "get_cache_service",
    "get_health_monitor",
    "get_orchestrator",
]
