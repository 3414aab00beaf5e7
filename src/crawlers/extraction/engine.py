"""Resilient Extractor - 전략 캐스케이드로 마크업을 상품 목록으로 변환

특정 클래스명에 의존하지 않고, 신뢰도 순으로 정렬된 독립 전략들을 차례로 시도합니다.
유효한 후보를 하나 이상 만든 첫 전략의 결과를 사용하고 나머지는 실행하지 않습니다.

Tier:
    1. 소스 전용 (상품 URL 규칙 + 가격 셀렉터 힌트)
    2. 구조화 메타데이터 (JSON-LD, microdata, Open Graph)
    3. 프레임워크 내장 상태 (__NEXT_DATA__ 등)
    4. 접근성 (data-* 카드, ARIA, img alt)
    5. 구조 (링크 패턴, 가격 근접, 반복 그리드, 형제 탐색)
    6. 텍스트 패턴 (최후 폴백)

같은 입력에 대해 결정적이며 순수 함수입니다 (네트워크/전역 상태 없음).
"""

from __future__ import annotations

from typing import Optional, Sequence

from src.core.config import settings
from src.core.logging import logger
from src.crawlers.extraction.candidate import (
    ExtractionContext,
    ExtractionStrategy,
    ProductCandidate,
)
from src.crawlers.extraction.dom_heuristics import (
    extract_from_aria,
    extract_from_data_attributes,
    extract_from_dom_structure,
    extract_from_image_alt,
    extract_from_links,
    extract_from_price_proximity,
    extract_from_siblings,
    extract_source_specific,
    extract_with_selector,
)
from src.crawlers.extraction.embedded_state import extract_embedded_state
from src.crawlers.extraction.learned import MIN_CONFIDENCE, SelectorMemory, candidate_confidence
from src.crawlers.extraction.names import clean_name, is_valid_name
from src.crawlers.extraction.quantity import enrich_with_quantity
from src.crawlers.extraction.structured import (
    extract_json_ld,
    extract_microdata,
    extract_open_graph,
)
from src.crawlers.extraction.text_pattern import extract_from_text_patterns
from src.schemas.product_schema import Product
from src.utils.url_utils import ensure_absolute_url, is_valid_product_url


MAX_PRODUCTS = 10
# 학습 셀렉터 결과가 이보다 적으면 캐스케이드도 실행
LEARNED_MIN_PRODUCTS = 5
# 이 티어 이상(카드 기반 휴리스틱)에서 성공했을 때만 셀렉터 학습
LEARNABLE_TIER = 4


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    ExtractionStrategy("source-specific", 1, extract_source_specific),
    ExtractionStrategy("json-ld", 2, extract_json_ld),
    ExtractionStrategy("microdata", 2, extract_microdata),
    ExtractionStrategy("open-graph", 2, extract_open_graph),
    ExtractionStrategy("embedded-state", 3, extract_embedded_state),
    ExtractionStrategy("data-attributes", 4, extract_from_data_attributes),
    ExtractionStrategy("aria", 4, extract_from_aria),
    ExtractionStrategy("image-alt", 4, extract_from_image_alt),
    ExtractionStrategy("link-patterns", 5, extract_from_links),
    ExtractionStrategy("price-proximity", 5, extract_from_price_proximity),
    ExtractionStrategy("dom-structure", 5, extract_from_dom_structure),
    ExtractionStrategy("sibling-walk", 5, extract_from_siblings),
    ExtractionStrategy("text-pattern", 6, extract_from_text_patterns),
)


class ResilientExtractor:
    """전략 캐스케이드 실행기

    Usage:
        extractor = ResilientExtractor()
        products = extractor.extract(html, "Zepto", "https://www.zeptonow.com")
    """

    def __init__(
        self,
        strategies: Optional[Sequence[ExtractionStrategy]] = None,
        selector_memory: Optional[SelectorMemory] = None,
    ):
        self.strategies: tuple[ExtractionStrategy, ...] = tuple(
            sorted(strategies or DEFAULT_STRATEGIES, key=lambda s: s.tier)
        )
        self.selector_memory = selector_memory

    def extract(self, markup: str, source_id: str, base_url: str) -> list[Product]:
        """마크업에서 상품 추출

        Args:
            markup: 렌더링된 HTML (또는 JSON이 섞인 마크업)
            source_id: 소스 ID (소스 전용 전략/배송 라벨 결정)
            base_url: 상대 URL 절대화 기준

        Returns:
            list[Product]: 최대 10개, 이름 기준(대소문자 무시) 중복 제거
        """
        if not markup or not markup.strip():
            return []

        ctx = ExtractionContext(markup=markup, source_id=source_id, base_url=base_url)

        products = self._extract_with_learned_selector(ctx)
        if products is None:
            products = self._run_cascade(ctx)
        if not products:
            logger.info(f"[EXTRACTOR] {source_id}: no strategy produced products ({len(markup)} chars)")
            return []
        return enrich_with_quantity(products, ctx.tree)

    def _run_cascade(self, ctx: ExtractionContext) -> list[Product]:
        source_id = ctx.source_id
        for strategy in self.strategies:
            try:
                candidates = strategy.run(ctx)
            except Exception as e:
                # 전략 하나의 실패는 격리하고 다음 전략으로 진행
                logger.debug(f"[EXTRACTOR] {source_id}: strategy '{strategy.name}' failed: {type(e).__name__}: {e}")
                continue

            products = self._finalize(candidates, ctx)
            if products:
                logger.info(
                    f"[EXTRACTOR] {source_id}: {len(products)} products via '{strategy.name}' (tier {strategy.tier})"
                )
                if self.selector_memory is not None and strategy.tier >= LEARNABLE_TIER:
                    self.selector_memory.learn_from(source_id, candidates, ctx.base_url)
                return products
        return []

    def _extract_with_learned_selector(self, ctx: ExtractionContext) -> Optional[list[Product]]:
        """학습 셀렉터로 충분히 찾으면 결과, 아니면 None (캐스케이드 진행)"""
        if self.selector_memory is None:
            return None
        learned = self.selector_memory.get(ctx.source_id)
        if learned is None:
            return None

        try:
            candidates = extract_with_selector(ctx, learned.selector)
        except Exception as e:
            logger.debug(f"[EXTRACTOR] {ctx.source_id}: learned selector failed: {type(e).__name__}: {e}")
            candidates = []

        confident = [c for c in candidates if candidate_confidence(c, ctx.base_url) >= MIN_CONFIDENCE]
        products = self._finalize(confident, ctx)
        self.selector_memory.record(ctx.source_id, success=bool(products))
        if len(products) < LEARNED_MIN_PRODUCTS:
            return None

        logger.info(f"[EXTRACTOR] {ctx.source_id}: {len(products)} products via learned selector '{learned.selector}'")
        return products

    def _finalize(self, candidates: list[ProductCandidate], ctx: ExtractionContext) -> list[Product]:
        seen: set[str] = set()
        products: list[Product] = []
        for cand in candidates or []:
            product = self._to_product(cand, ctx)
            if product is None:
                continue
            key = product.name.lower()
            if key in seen:
                continue
            seen.add(key)
            products.append(product)
            if len(products) >= MAX_PRODUCTS:
                break
        return products

    @staticmethod
    def _to_product(cand: ProductCandidate, ctx: ExtractionContext) -> Optional[Product]:
        if cand is None or not cand.name or cand.price is None or cand.price <= 0:
            return None
        if not is_valid_name(cand.name):
            return None

        source = ctx.source
        url = ensure_absolute_url(cand.url or "", ctx.base_url)
        if not is_valid_product_url(url):
            url = ctx.base_url

        image = ensure_absolute_url(cand.image_url, ctx.base_url) if cand.image_url else None

        return Product(
            name=clean_name(cand.name),
            price=cand.price,
            original_price=cand.original_price,
            source=source.id if source else ctx.source_id,
            url=url,
            image_url=image or None,
            delivery_time=source.delivery_time if source else "",
        )


_default_extractor: Optional[ResilientExtractor] = None


def get_extractor() -> ResilientExtractor:
    global _default_extractor
    if _default_extractor is None:
        memory = SelectorMemory() if settings.crawler_learn_selectors else None
        _default_extractor = ResilientExtractor(selector_memory=memory)
    return _default_extractor


def extract(markup: str, source_id: str, base_url: str) -> list[Product]:
    """기본 전략 구성으로 추출"""
    return get_extractor().extract(markup, source_id, base_url)
