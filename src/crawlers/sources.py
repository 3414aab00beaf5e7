"""소스(리테일러) 레지스트리.

각 소스의 검색 URL, 배송 라벨, 상품 URL 패턴, 가격 셀렉터 힌트,
렌더링 필요 여부, 폴백 URL 변형을 한 곳에서 관리합니다.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import quote, quote_plus

from src.core.config import settings


AMAZON_FRESH = "Amazon Fresh"
FLIPKART_MINUTES = "Flipkart Minutes"
JIOMART_QUICK = "JioMart Quick"
BIGBASKET = "BigBasket"
ZEPTO = "Zepto"
AMAZON = "Amazon"
FLIPKART = "Flipkart"
JIOMART = "JioMart"
BLINKIT = "Blinkit"
INSTAMART = "Instamart"


@dataclass(frozen=True)
class SearchVariant:
    """소스의 검색 페이지 변형 (기본/대체 URL, 대기 조건)."""

    name: str
    url_template: str
    requires_render: bool
    wait_for: Optional[str] = None
    # 렌더 후 추가 대기(ms). None이면 설정 기본값
    settle_ms: Optional[int] = None
    # 경로형 쿼리(/search/<q>)는 quote, 쿼리스트링은 quote_plus
    path_query: bool = False

    def build_url(self, query: str) -> str:
        encoded = quote(query.strip()) if self.path_query else quote_plus(query.strip())
        return self.url_template.format(query=encoded)


@dataclass(frozen=True)
class SourceConfig:
    id: str
    base_url: str
    delivery_time: str
    quick_commerce: bool
    variants: tuple[SearchVariant, ...]
    url_patterns: tuple[str, ...] = ()
    price_selectors: tuple[str, ...] = ()
    has_direct_api: bool = True

    @property
    def primary(self) -> SearchVariant:
        return self.variants[0]

    @property
    def fallbacks(self) -> tuple[SearchVariant, ...]:
        return self.variants[1:]

    @property
    def cache_ttl_s(self) -> int:
        if self.quick_commerce:
            return settings.cache_quick_commerce_ttl_s
        return settings.cache_ecommerce_ttl_s


_BIGBASKET_WAIT = "img[src*='bbassets'], img[src*='bigbasket'], [data-qa*='product'], [data-testid*='product']"


SOURCES: dict[str, SourceConfig] = {
    ZEPTO: SourceConfig(
        id=ZEPTO,
        base_url="https://www.zeptonow.com",
        delivery_time="10-15 mins",
        quick_commerce=True,
        variants=(
            SearchVariant("render", "https://www.zeptonow.com/search?query={query}", True,
                          wait_for="a[href*='/pn/']"),
            SearchVariant("render-long-wait", "https://www.zeptonow.com/search?query={query}", True,
                          wait_for="img", settle_ms=4000),
        ),
        url_patterns=("/pn/", "/product/"),
        price_selectors=("[data-testid='product-card-price']", "[class*='sellingPrice']"),
    ),
    BLINKIT: SourceConfig(
        id=BLINKIT,
        base_url="https://blinkit.com",
        delivery_time="8-12 mins",
        quick_commerce=True,
        variants=(
            SearchVariant("render", "https://blinkit.com/s/?q={query}", True,
                          wait_for="a[href*='/prn/']"),
            SearchVariant("render-long-wait", "https://blinkit.com/s/?q={query}", True,
                          wait_for="img", settle_ms=4000),
        ),
        url_patterns=("/prn/", "/prid/"),
        price_selectors=("[class*='ProductPrice']", "[class*='product-price']"),
    ),
    BIGBASKET: SourceConfig(
        id=BIGBASKET,
        base_url="https://www.bigbasket.com",
        delivery_time="2-4 hours",
        quick_commerce=True,
        variants=(
            SearchVariant("render", "https://www.bigbasket.com/ps/?q={query}", True,
                          wait_for=_BIGBASKET_WAIT),
            SearchVariant("render-long-wait", "https://www.bigbasket.com/ps/?q={query}", True,
                          wait_for=_BIGBASKET_WAIT, settle_ms=5000),
        ),
        url_patterns=("/pd/",),
        price_selectors=("[class*='DiscountedPrice']", "[class*='discounted-price']"),
    ),
    INSTAMART: SourceConfig(
        id=INSTAMART,
        base_url="https://www.swiggy.com",
        delivery_time="15-30 mins",
        quick_commerce=True,
        variants=(
            SearchVariant("http", "https://www.swiggy.com/instamart/search?custom_back=true&query={query}", False),
            SearchVariant("render", "https://www.swiggy.com/instamart/search?custom_back=true&query={query}", True,
                          wait_for="[data-testid*='product'], img"),
        ),
        url_patterns=("/item/", "/product/"),
        price_selectors=("[data-testid='item-offer-price']", "[class*='offer-price']"),
    ),
    AMAZON_FRESH: SourceConfig(
        id=AMAZON_FRESH,
        base_url="https://www.amazon.in",
        delivery_time="2-4 hours",
        quick_commerce=True,
        variants=(
            SearchVariant("http", "https://www.amazon.in/s?k={query}&i=nowstore", False),
            SearchVariant("render", "https://www.amazon.in/s?k={query}&i=nowstore", True,
                          wait_for="[data-asin]"),
        ),
        url_patterns=("/dp/", "/gp/product/"),
        price_selectors=(".a-price .a-offscreen", ".a-price-whole"),
    ),
    AMAZON: SourceConfig(
        id=AMAZON,
        base_url="https://www.amazon.in",
        delivery_time="1-3 days",
        quick_commerce=False,
        variants=(
            SearchVariant("http", "https://www.amazon.in/s?k={query}", False),
            SearchVariant("render", "https://www.amazon.in/s?k={query}", True, wait_for="[data-asin]"),
        ),
        url_patterns=("/dp/", "/gp/product/"),
        price_selectors=(".a-price .a-offscreen", ".a-price-whole"),
    ),
    FLIPKART: SourceConfig(
        id=FLIPKART,
        base_url="https://www.flipkart.com",
        delivery_time="2-4 days",
        quick_commerce=False,
        variants=(
            SearchVariant("http", "https://www.flipkart.com/search?q={query}", False),
            SearchVariant("http-grocery-store", "https://www.flipkart.com/grocery-supermart-store?q={query}", False),
            SearchVariant("render", "https://www.flipkart.com/search?q={query}", True, wait_for="a[href*='pid=']"),
        ),
        url_patterns=("/p/", "pid="),
    ),
    FLIPKART_MINUTES: SourceConfig(
        id=FLIPKART_MINUTES,
        base_url="https://www.flipkart.com",
        delivery_time="10-45 mins",
        quick_commerce=True,
        variants=(
            SearchVariant("http", "https://www.flipkart.com/search?q={query}&marketplace=HYPERLOCAL", False),
            SearchVariant("render", "https://www.flipkart.com/search?q={query}&marketplace=HYPERLOCAL", True,
                          wait_for="a[href*='pid=']"),
        ),
        url_patterns=("/p/", "pid="),
    ),
    JIOMART: SourceConfig(
        id=JIOMART,
        base_url="https://www.jiomart.com",
        delivery_time="1-3 days",
        quick_commerce=False,
        variants=(
            SearchVariant("http", "https://www.jiomart.com/search/{query}", False, path_query=True),
            SearchVariant("http-catalog", "https://www.jiomart.com/catalogsearch/result/?q={query}", False),
            SearchVariant("render", "https://www.jiomart.com/search/{query}", True,
                          wait_for="a[href*='/p/']", path_query=True),
        ),
        url_patterns=("/p/", "/buy/"),
        price_selectors=("[class*='plp-card-details-price'] .jm-heading-xxs", "[class*='final-price']"),
    ),
    JIOMART_QUICK: SourceConfig(
        id=JIOMART_QUICK,
        base_url="https://www.jiomart.com",
        delivery_time="10-30 mins",
        quick_commerce=True,
        variants=(
            SearchVariant("http", "https://www.jiomart.com/search/{query}?deliveryType=express", False,
                          path_query=True),
            SearchVariant("render", "https://www.jiomart.com/search/{query}?deliveryType=express", True,
                          wait_for="a[href*='/p/']", path_query=True),
        ),
        url_patterns=("/p/", "/buy/"),
        price_selectors=("[class*='plp-card-details-price'] .jm-heading-xxs", "[class*='final-price']"),
    ),
}


QUICK_COMMERCE = frozenset(s.id for s in SOURCES.values() if s.quick_commerce)
ECOMMERCE = frozenset(s.id for s in SOURCES.values() if not s.quick_commerce)


def get_source(source_id: str) -> Optional[SourceConfig]:
    """소스 ID로 설정 조회 (대소문자 무시)."""
    if not source_id:
        return None
    found = SOURCES.get(source_id)
    if found is not None:
        return found
    lowered = source_id.strip().lower()
    for sid, cfg in SOURCES.items():
        if sid.lower() == lowered:
            return cfg
    return None


def enabled_sources() -> list[SourceConfig]:
    """설정된(활성) 소스 목록. 비어 있으면 전체."""
    if not settings.enabled_sources:
        return list(SOURCES.values())
    out: list[SourceConfig] = []
    for sid in settings.enabled_sources:
        cfg = get_source(sid)
        if cfg is not None and cfg not in out:
            out.append(cfg)
    return out
