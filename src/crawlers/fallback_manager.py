"""Fallback Manager - 소스별 어댑터 체인을 순서대로 시도

체인: 기본 변형 → 대체 URL 변형 → 더 긴 렌더 대기 변형 (SourceConfig.variants 순서)
- 비어 있지 않은 첫 결과를 사용
- 어댑터 하나의 실패는 로그만 남기고 다음 어댑터로 진행
- 렌더 게이트(세마포어)는 렌더가 필요한 어댑터 실행 구간에서만 획득
"""

from __future__ import annotations

from typing import AsyncContextManager, Dict, List, Optional

from src.core.exceptions import ScraperException
from src.core.logging import logger
from src.crawlers.extraction.engine import ResilientExtractor, get_extractor
from src.crawlers.http_client import SharedHttpClient, get_shared_http_client
from src.crawlers.renderer import Renderer
from src.crawlers.source_adapter import SourceAdapter, StructureObserver
from src.crawlers.sources import get_source
from src.schemas.product_schema import Product


class FallbackManager:
    def __init__(
        self,
        renderer: Renderer,
        http_client: Optional[SharedHttpClient] = None,
        extractor: Optional[ResilientExtractor] = None,
        structure_observer: Optional[StructureObserver] = None,
    ):
        self.renderer = renderer
        self.http_client = http_client or get_shared_http_client()
        self.extractor = extractor or get_extractor()
        self.structure_observer = structure_observer
        self._chains: Dict[str, List[SourceAdapter]] = {}

    def adapters_for(self, source_id: str) -> List[SourceAdapter]:
        """소스의 어댑터 체인 (고정 순서)"""
        cfg = get_source(source_id)
        if cfg is None:
            return []
        chain = self._chains.get(cfg.id)
        if chain is None:
            chain = [
                SourceAdapter(
                    cfg,
                    variant,
                    renderer=self.renderer,
                    http_client=self.http_client,
                    extractor=self.extractor,
                    structure_observer=self.structure_observer,
                )
                for variant in cfg.variants
            ]
            self._chains[cfg.id] = chain
        return chain

    async def scrape(
        self,
        source_id: str,
        query: str,
        location: str,
        render_gate: AsyncContextManager,
    ) -> List[Product]:
        """어댑터 체인을 순차 실행

        Args:
            source_id: 소스 ID
            query: 검색어
            location: pincode
            render_gate: 렌더 동시성 제한 (asyncio.Semaphore 등)

        Returns:
            첫 번째로 비어 있지 않은 결과, 모두 실패하면 []
        """
        for adapter in self.adapters_for(source_id):
            try:
                if adapter.requires_render:
                    async with render_gate:
                        products = await adapter.search(query, location)
                else:
                    products = await adapter.search(query, location)
            except ScraperException as e:
                logger.info(f"[FALLBACK] {adapter.name} failed: {e}")
                continue
            except Exception as e:
                logger.warning(f"[FALLBACK] {adapter.name} unexpected error: {type(e).__name__}: {e}")
                continue

            if products:
                logger.info(f"[FALLBACK] {adapter.name} ✓ {len(products)} products")
                return products
            logger.debug(f"[FALLBACK] {adapter.name} returned no products")

        return []
