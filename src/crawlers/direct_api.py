"""Direct API - 소스의 내부 검색 엔드포인트를 직접 호출하는 빠른 경로

모바일 앱/웹이 사용하는 내부 JSON(또는 가벼운 HTML) 검색 엔드포인트를 모바일 클라이언트
헤더와 위치 쿠키로 호출합니다. 렌더링이 필요 없어 가장 빠르지만, 엔드포인트와 응답 구조가
예고 없이 바뀌므로 실패는 정상 흐름으로 취급하고 렌더 경로로 넘깁니다.

결과:
    SUCCESS        상품 1개 이상
    FAILURE        HTTP 오류 / 빈 응답 / JSON 아님 / 전송 실패
    NO_PRODUCTS    응답은 정상이나 상품 없음
    NOT_SUPPORTED  직접 호출 경로가 없는 소스
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, quote_plus

from src.core.config import settings
from src.core.logging import logger, sanitize_for_log
from src.crawlers import sources as src_ids
from src.crawlers.boundary.page_checks import get_blocked_keyword, is_blocked_html
from src.crawlers.extraction.engine import ResilientExtractor, get_extractor
from src.crawlers.extraction.structured import image_from_value, to_price
from src.crawlers.http_client import SharedHttpClient, get_shared_http_client
from src.crawlers.sources import get_source
from src.schemas.product_schema import Product
from src.utils.search_intent import optimized_query


MAX_API_PRODUCTS = 15
MIN_HTML_LENGTH = 1000


class ApiScrapeStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NO_PRODUCTS = "no_products"
    NOT_SUPPORTED = "not_supported"


@dataclass
class ApiScrapeResult:
    """Direct API 호출 결과"""

    status: ApiScrapeStatus
    products: List[Product] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == ApiScrapeStatus.SUCCESS and bool(self.products)

    @classmethod
    def success(cls, products: List[Product]) -> "ApiScrapeResult":
        return cls(status=ApiScrapeStatus.SUCCESS, products=list(products))

    @classmethod
    def failure(cls, reason: str) -> "ApiScrapeResult":
        return cls(status=ApiScrapeStatus.FAILURE, reason=reason)

    @classmethod
    def no_products(cls) -> "ApiScrapeResult":
        return cls(status=ApiScrapeStatus.NO_PRODUCTS)

    @classmethod
    def not_supported(cls, source: str) -> "ApiScrapeResult":
        return cls(status=ApiScrapeStatus.NOT_SUPPORTED, reason=f"No direct API for {source}")


# ============================================================================
# 위치 (pincode 앞 3자리 → 좌표/도시)
# ============================================================================

@dataclass(frozen=True)
class GeoLocation:
    lat: str
    lng: str
    city: str


DEFAULT_GEO = GeoLocation("12.9716", "77.5946", "Bangalore")

PINCODE_PREFIX_LOCATIONS: Dict[str, GeoLocation] = {
    "560": DEFAULT_GEO,
    "110": GeoLocation("28.6139", "77.2090", "Delhi"),
    "400": GeoLocation("19.0760", "72.8777", "Mumbai"),
    "700": GeoLocation("22.5726", "88.3639", "Kolkata"),
    "600": GeoLocation("13.0827", "80.2707", "Chennai"),
    "500": GeoLocation("17.3850", "78.4867", "Hyderabad"),
}


def resolve_location(pincode: str) -> GeoLocation:
    """pincode → 좌표 (알 수 없으면 Bangalore)"""
    return PINCODE_PREFIX_LOCATIONS.get((pincode or "")[:3], DEFAULT_GEO)


def location_cookies(pincode: str) -> Dict[str, str]:
    geo = resolve_location(pincode)
    return {"pincode": pincode, "lat": geo.lat, "lng": geo.lng, "city": geo.city}


# ============================================================================
# JSON 응답 파서 (순수 함수)
# ============================================================================

def _dig(data: Any, *path: str) -> Any:
    current = data
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _first_list(data: Any, *paths: tuple[str, ...]) -> List[Any]:
    for path in paths:
        value = _dig(data, *path)
        if isinstance(value, list):
            return value
    return []


def _first_str(item: dict, *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _id_of(item: dict, *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
            return str(value).strip()
    return ""


def _first_amount(item: dict, *keys: str) -> Optional[float]:
    for key in keys:
        value = to_price(item.get(key))
        if value:
            return value
    return None


def _make_product(
    source_id: str,
    name: str,
    price: Optional[float],
    original: Optional[float],
    image: Optional[str],
    url: str,
    available: bool = True,
) -> Optional[Product]:
    if not name or not price or price <= 0:
        return None
    cfg = get_source(source_id)
    return Product(
        name=name,
        price=price,
        original_price=original,
        source=source_id,
        url=url or (cfg.base_url if cfg else ""),
        image_url=image or None,
        delivery_time=cfg.delivery_time if cfg else "",
        available=available,
    )


def parse_zepto_response(data: Any) -> List[Product]:
    items = _first_list(data, ("products",), ("data", "products"), ("items",), ("data", "items"))
    products: List[Product] = []
    for item in items[:MAX_API_PRODUCTS]:
        if not isinstance(item, dict):
            continue
        price = _first_amount(item, "sellingPrice", "price") or to_price(_dig(item, "pricing", "selling_price"))
        product_id = _id_of(item, "id", "productId")
        product = _make_product(
            src_ids.ZEPTO,
            _first_str(item, "name", "productName", "title"),
            price,
            to_price(item.get("mrp")),
            item.get("imageUrl") or image_from_value(item.get("images")),
            f"https://www.zeptonow.com/product/{product_id}" if product_id else "",
            available=bool(item.get("inStock", True)),
        )
        if product:
            products.append(product)
    return products


def parse_blinkit_response(data: Any) -> List[Product]:
    items = _first_list(
        data,
        ("products",),
        ("data", "products"),
        ("data", "searchProducts", "products"),
        ("objects",),
    )
    products: List[Product] = []
    for item in items[:MAX_API_PRODUCTS]:
        if not isinstance(item, dict):
            continue
        price = to_price(item.get("price")) or to_price(_dig(item, "pricing", "discounted_price"))
        product_id = _id_of(item, "id", "product_id")
        product = _make_product(
            src_ids.BLINKIT,
            _first_str(item, "name", "product_name"),
            price,
            to_price(item.get("mrp")),
            _first_str(item, "imageUrl", "image_url") or image_from_value(item.get("images")),
            f"https://blinkit.com/prn/{product_id}" if product_id else "",
            available=bool(item.get("inStock", item.get("in_stock", True))),
        )
        if product:
            products.append(product)
    return products


def parse_bigbasket_response(data: Any) -> List[Product]:
    tabs = _first_list(data, ("tabs",), ("response", "tabs"))
    if not tabs or not isinstance(tabs[0], dict):
        return []

    products: List[Product] = []
    for item in (tabs[0].get("product_info") or [])[:MAX_API_PRODUCTS]:
        if not isinstance(item, dict):
            continue
        children = item.get("children")
        entry = children[0] if isinstance(children, list) and children and isinstance(children[0], dict) else item

        pricing = entry.get("pricing")
        if not isinstance(pricing, dict):
            continue
        prim_price = _dig(pricing, "discount", "prim_price")
        price = to_price(prim_price.get("sp")) if isinstance(prim_price, dict) else to_price(prim_price)
        price = price or to_price(pricing.get("selling_price"))
        mrp = to_price(_dig(pricing, "discount", "mrp")) or to_price(pricing.get("mrp"))

        name = _first_str(entry, "prod_name", "desc")
        brand = _dig(entry, "brand", "name")
        if name and isinstance(brand, str) and brand and not name.lower().startswith(brand.lower()):
            name = f"{brand} {name}"

        product_id = _id_of(entry, "id", "sku")
        product = _make_product(
            src_ids.BIGBASKET,
            name,
            price,
            mrp,
            image_from_value(entry.get("images")) or _first_str(entry, "image_url"),
            f"https://www.bigbasket.com/pd/{product_id}/" if product_id else "",
            available=str(entry.get("availability_status", "1")) != "0",
        )
        if product:
            products.append(product)
    return products


def parse_instamart_response(data: Any) -> List[Product]:
    widgets = _first_list(data, ("data", "widgets"), ("data", "cards"))
    products: List[Product] = []
    for widget in widgets:
        if not isinstance(widget, dict):
            continue
        items = widget.get("data")
        if isinstance(items, dict):
            items = items.get("products")
        if not isinstance(items, list):
            continue

        for item in items:
            if len(products) >= MAX_API_PRODUCTS:
                return products
            if not isinstance(item, dict):
                continue
            price_info = item.get("price")
            if isinstance(price_info, dict):
                price = to_price(price_info.get("offer_price"))
                mrp = to_price(price_info.get("mrp"))
            else:
                price = to_price(price_info)
                mrp = to_price(item.get("mrp"))
            product_id = _id_of(item, "id", "product_id")
            product = _make_product(
                src_ids.INSTAMART,
                _first_str(item, "display_name", "name", "product_name"),
                price,
                mrp,
                image_from_value(item.get("images")) or _first_str(item, "image_url"),
                f"https://www.swiggy.com/instamart/item/{product_id}" if product_id else "",
                available=bool(item.get("in_stock", True)),
            )
            if product:
                products.append(product)
    return products


# ============================================================================
# 엔드포인트 정의
# ============================================================================

@dataclass(frozen=True)
class ApiRequest:
    url: str
    headers: Dict[str, str]
    cookies: Dict[str, str]


# HTML 엔드포인트 (추출 엔진으로 파싱). 앞의 URL이 실패하면 다음 URL 시도
HTML_ENDPOINTS: Dict[str, tuple[str, ...]] = {
    src_ids.AMAZON: ("https://www.amazon.in/s?k={q}&i=grocery",),
    src_ids.AMAZON_FRESH: ("https://www.amazon.in/s?k={q}&i=nowstore",),
    src_ids.FLIPKART: ("https://www.flipkart.com/search?q={q}&marketplace=GROCERY",),
    src_ids.FLIPKART_MINUTES: ("https://www.flipkart.com/search?q={q}&marketplace=HYPERLOCAL",),
    src_ids.JIOMART: (
        "https://www.jiomart.com/catalogsearch/result/?q={q}",
        "https://www.jiomart.com/search/{path_q}",
    ),
    src_ids.JIOMART_QUICK: (
        "https://www.jiomart.com/catalogsearch/result/?q={q}",
        "https://www.jiomart.com/search/{path_q}",
    ),
}

JSON_PARSERS: Dict[str, Callable[[Any], List[Product]]] = {
    src_ids.ZEPTO: parse_zepto_response,
    src_ids.BLINKIT: parse_blinkit_response,
    src_ids.BIGBASKET: parse_bigbasket_response,
    src_ids.INSTAMART: parse_instamart_response,
}


class DirectApiClient:
    """소스 내부 엔드포인트 직접 호출

    Usage:
        client = DirectApiClient()
        result = await client.scrape("Zepto", "milk", "560001")
        if result.is_success:
            ...
    """

    def __init__(
        self,
        http_client: Optional[SharedHttpClient] = None,
        extractor: Optional[ResilientExtractor] = None,
    ):
        self.http_client = http_client or get_shared_http_client()
        self.extractor = extractor or get_extractor()

    def supports(self, source_id: str) -> bool:
        cfg = get_source(source_id)
        if cfg is None or not cfg.has_direct_api:
            return False
        return cfg.id in JSON_PARSERS or cfg.id in HTML_ENDPOINTS

    async def scrape(
        self,
        source_id: str,
        query: str,
        location: str,
        timeout_s: Optional[float] = None,
    ) -> ApiScrapeResult:
        """내부 엔드포인트로 검색

        Args:
            source_id: 소스 ID
            query: 검색어
            location: pincode
            timeout_s: 요청 타임아웃 (기본: crawler_direct_api_timeout_s)

        Returns:
            ApiScrapeResult
        """
        cfg = get_source(source_id)
        if cfg is None or not self.supports(cfg.id):
            return ApiScrapeResult.not_supported(source_id)

        timeout = timeout_s if timeout_s is not None else settings.crawler_direct_api_timeout_s
        search_query = optimized_query(query, cfg.id)
        if search_query != query.strip():
            logger.debug(
                f"[DIRECT_API] {cfg.id}: query '{sanitize_for_log(query)}' → '{sanitize_for_log(search_query)}'"
            )
        logger.debug(f"[DIRECT_API] {cfg.id}: starting for '{sanitize_for_log(search_query)}'")

        try:
            if cfg.id in JSON_PARSERS:
                result = await self._scrape_json(cfg.id, search_query, location, timeout)
            else:
                result = await self._scrape_html(cfg.id, search_query, location, timeout)
        except Exception as e:
            logger.info(f"[DIRECT_API] {cfg.id}: error {type(e).__name__}: {e}")
            return ApiScrapeResult.failure(str(e) or type(e).__name__)

        if result.is_success:
            logger.info(f"[DIRECT_API] {cfg.id}: ✓ {len(result.products)} products")
        else:
            logger.debug(f"[DIRECT_API] {cfg.id}: {result.status.value} {result.reason or ''}".rstrip())
        return result

    # ------------------------------------------------------------------
    # JSON 엔드포인트
    # ------------------------------------------------------------------

    async def _scrape_json(self, source_id: str, query: str, location: str, timeout: float) -> ApiScrapeResult:
        request = await self._build_json_request(source_id, query, location, timeout)
        fetched = await self.http_client.get_text(
            request.url, timeout_s=timeout, headers=request.headers, cookies=request.cookies
        )
        return self._interpret_json(source_id, fetched)

    @staticmethod
    def _interpret_json(source_id: str, fetched: Optional[tuple[int, str]]) -> ApiScrapeResult:
        if fetched is None:
            return ApiScrapeResult.failure("Request failed")

        status, body = fetched
        if not (200 <= status < 300):
            return ApiScrapeResult.failure(f"HTTP {status}")
        if not body or not body.strip():
            return ApiScrapeResult.failure("Empty response")

        try:
            data = json.loads(body)
        except ValueError:
            return ApiScrapeResult.failure("Not JSON response")

        products = JSON_PARSERS[source_id](data)
        if not products:
            return ApiScrapeResult.no_products()
        return ApiScrapeResult.success(products)

    async def _build_json_request(self, source_id: str, query: str, location: str, timeout: float) -> ApiRequest:
        q = quote_plus(query.strip())
        geo = resolve_location(location)
        headers = self.http_client.mobile_headers(accept_json=True)
        cookies = location_cookies(location)

        if source_id == src_ids.ZEPTO:
            headers.update({"X-App-Version": "6.0.0", "X-Device-Type": "android"})
            url = f"https://api.zeptonow.com/api/v3/search/?query={q}&pageNumber=1&mode=AUTOSUGGEST"
        elif source_id == src_ids.BLINKIT:
            headers.update({"X-Device-Type": "android"})
            url = f"https://blinkit.com/v2/search?q={q}"
        elif source_id == src_ids.BIGBASKET:
            headers.update({
                "X-BB-Channel": "mobile",
                "X-Entry-Context-Id": "100",
                "X-Entry-Context": "bb-b2c",
                "Origin": "https://www.bigbasket.com",
                "Referer": f"https://www.bigbasket.com/ps/?q={q}",
            })
            cookies.update({"bb_pincode": location, "bb_home_pincode": location, "bb_locSrc": "manual"})
            url = f"https://www.bigbasket.com/listing-svc/v2/products?type=ps&slug={q}&page=1"
        else:
            headers["Referer"] = f"https://www.swiggy.com/instamart/search?query={q}"
            store_id = await self._fetch_instamart_store_id(geo, headers, timeout)
            store_part = f"&storeId={store_id}" if store_id else ""
            url = f"https://www.swiggy.com/dapi/instamart/search?query={q}{store_part}&lat={geo.lat}&lng={geo.lng}"

        return ApiRequest(url=url, headers=headers, cookies=cookies)

    async def _fetch_instamart_store_id(
        self, geo: GeoLocation, headers: Dict[str, str], timeout: float
    ) -> Optional[str]:
        """좌표로 Instamart 매장 ID 조회 (실패해도 검색은 storeId 없이 진행)"""
        fetched = await self.http_client.get_text(
            f"https://www.swiggy.com/dapi/instamart/home?lat={geo.lat}&lng={geo.lng}",
            timeout_s=timeout,
            headers=headers,
        )
        if fetched is None or not (200 <= fetched[0] < 300) or not fetched[1].strip():
            return None
        try:
            data = json.loads(fetched[1])
        except ValueError:
            return None

        payload = _dig(data, "data") or _dig(data, "response", "data")
        for path in (("storeId",), ("store_id",), ("instamart", "storeId"), ("store", "storeId")):
            value = _dig(payload, *path)
            if value:
                return str(value)
        logger.debug("[DIRECT_API] Instamart: storeId not found in home payload")
        return None

    # ------------------------------------------------------------------
    # HTML 엔드포인트 (추출 엔진 사용)
    # ------------------------------------------------------------------

    async def _scrape_html(self, source_id: str, query: str, location: str, timeout: float) -> ApiScrapeResult:
        cfg = get_source(source_id)
        headers = self.http_client.mobile_headers(accept_json=False)
        cookies = location_cookies(location)
        q = quote_plus(query.strip())
        path_q = quote(query.strip())

        result = ApiScrapeResult.no_products()
        for template in HTML_ENDPOINTS[source_id]:
            url = template.format(q=q, path_q=path_q)
            fetched = await self.http_client.get_text(url, timeout_s=timeout, headers=headers, cookies=cookies)
            result = self._interpret_html(source_id, cfg.base_url, fetched)
            if result.is_success:
                return result
        return result

    def _interpret_html(
        self, source_id: str, base_url: str, fetched: Optional[tuple[int, str]]
    ) -> ApiScrapeResult:
        if fetched is None:
            return ApiScrapeResult.failure("Request failed")

        status, html = fetched
        if not (200 <= status < 300):
            return ApiScrapeResult.failure(f"HTTP {status}")
        if not html or len(html) < MIN_HTML_LENGTH:
            return ApiScrapeResult.failure("Empty or too short HTML")

        if is_blocked_html(html):
            return ApiScrapeResult.failure(f"Blocked ({get_blocked_keyword(html)})")

        products = self.extractor.extract(html, source_id, base_url)
        if not products:
            return ApiScrapeResult.no_products()
        return ApiScrapeResult.success(products)


_direct_api_client: Optional[DirectApiClient] = None


def get_direct_api_client() -> DirectApiClient:
    global _direct_api_client
    if _direct_api_client is None:
        _direct_api_client = DirectApiClient()
    return _direct_api_client
