"""Services implementation package."""

from .cache_service import (
    CacheBackend,
    CacheEntry,
    CacheService,
    MemoryCacheBackend,
    RedisCacheBackend,
    build_cache_service,
)

__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheService",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "build_cache_service",
]
