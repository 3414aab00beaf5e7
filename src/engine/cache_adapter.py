"""Cache Adapter - CacheService를 오케스트레이터가 쓰는 (검색어, 소스, 위치) 인터페이스로 변환"""

from dataclasses import dataclass, field
from typing import List, Optional

from src.core.config import settings
from src.core.exceptions import CacheException
from src.core.logging import logger
from src.crawlers.sources import get_source
from src.schemas.product_schema import Product
from src.services.impl.cache_service import CacheService
from src.utils.hash_utils import generate_cache_key


@dataclass
class CacheLookup:
    """캐시 조회 결과"""

    products: List[Product] = field(default_factory=list)
    is_stale: bool = False

    @property
    def is_fresh_hit(self) -> bool:
        return bool(self.products) and not self.is_stale

    @property
    def has_stale(self) -> bool:
        return bool(self.products) and self.is_stale


class CacheAdapter:
    """캐시 서비스 어댑터

    소스 작업 안에서의 읽기/쓰기 오류는 로그만 남기고 캐시 미스로 취급합니다.
    저장소 자체를 쓸 수 없는지는 검색 시작 시 ensure_available()로 확인합니다.
    """

    def __init__(self, cache_service: Optional[CacheService] = None):
        self.cache_service = cache_service or CacheService()

    @staticmethod
    def key_for(query: str, source: str, location: str) -> str:
        return generate_cache_key(query, source, location, prefix=settings.cache_key_prefix)

    async def ensure_available(self) -> None:
        await self.cache_service.ensure_available()

    async def lookup(self, query: str, source: str, location: str) -> CacheLookup:
        key = self.key_for(query, source, location)
        try:
            products, is_stale = await self.cache_service.get(key)
        except CacheException as e:
            logger.warning(f"[CACHE] {source}: lookup failed: {e}")
            return CacheLookup()
        if not products:
            return CacheLookup()
        return CacheLookup(products=products, is_stale=is_stale)

    async def store(self, query: str, source: str, location: str, products: List[Product]) -> None:
        if not products:
            return
        cfg = get_source(source)
        ttl_s = cfg.cache_ttl_s if cfg is not None else settings.cache_ecommerce_ttl_s
        try:
            await self.cache_service.set(self.key_for(query, source, location), products, ttl_s)
        except CacheException as e:
            logger.warning(f"[CACHE] {source}: store failed: {e}")
