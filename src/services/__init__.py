"""비즈니스 로직 서비스 - export only."""

from .impl import CacheService, MemoryCacheBackend, RedisCacheBackend, build_cache_service

__all__ = ["CacheService", "MemoryCacheBackend", "RedisCacheBackend", "build_cache_service"]
