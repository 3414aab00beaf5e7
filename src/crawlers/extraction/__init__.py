"""마크업 → 상품 추출 (전략 캐스케이드 + 가격/상품명 휴리스틱)."""

from .candidate import ExtractionContext, ExtractionStrategy, ProductCandidate
from .engine import DEFAULT_STRATEGIES, MAX_PRODUCTS, ResilientExtractor, extract, get_extractor
from .learned import LearnedSelector, SelectorMemory, candidate_confidence
from .names import is_valid_name
from .prices import PriceSelection, extract_smart_price, pick_selling_price, select_prices_from_text
from .quantity import enrich_with_quantity

__all__ = [
    "ExtractionContext",
    "ExtractionStrategy",
    "ProductCandidate",
    "DEFAULT_STRATEGIES",
    "MAX_PRODUCTS",
    "ResilientExtractor",
    "extract",
    "get_extractor",
    "LearnedSelector",
    "SelectorMemory",
    "candidate_confidence",
    "enrich_with_quantity",
    "is_valid_name",
    "PriceSelection",
    "extract_smart_price",
    "pick_selling_price",
    "select_prices_from_text",
]
