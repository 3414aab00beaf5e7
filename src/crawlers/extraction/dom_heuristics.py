"""DOM 휴리스틱 전략들 (소스 전용 / 접근성 / 구조).

마크업 클래스명은 자주 바뀌지만 다음 신호는 비교적 안정적입니다.
- 상품 상세 URL 경로 규칙 (/pn/, /dp/, pid= ...)
- 테스트/접근성 속성 (data-testid, role, aria-label, img alt)
- "이미지 + 가격" 카드가 반복되는 그리드 구조
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from selectolax.parser import Node

from src.core.logging import logger
from src.crawlers.extraction.candidate import ExtractionContext, ProductCandidate
from src.crawlers.extraction.names import clean_name, is_valid_name
from src.crawlers.extraction.prices import contains_price, extract_smart_price
from src.utils.url_utils import ensure_absolute_url, is_valid_product_url


CARD_NAME_MIN = 5
CARD_NAME_MAX = 120

MAX_CONTAINER_LEVELS = 6
MAX_CONTAINER_TEXT = 1000
MAX_PROXIMITY_TEXT = 800
MAX_SIBLING_OWN_TEXT = 30
MAX_SIBLING_LEVELS = 4

_GENERIC_URL_PATTERNS = ("/product/", "/p/", "/item/")

DATA_ATTRIBUTE_SELECTORS = (
    "[data-testid*='product']",
    "[data-testid*='item']",
    "[data-testid*='card']",
    "[data-test*='product']",
    "[data-qa*='product']",
    "[data-cy*='product']",
    "[data-product-id]",
    "[data-item-id]",
    "[data-sku]",
    "[data-product]",
    "[data-entity-type='PRODUCT']",
    "[data-component*='product']",
    "[data-widget-type*='product']",
    "[data-automation*='product']",
)

ARIA_SELECTORS = (
    "[role='listitem']",
    "[role='article']",
    "[role='gridcell']",
    "[role='option']",
    "article",
    "section[aria-label*='product']",
    "div[aria-label*='product']",
    "[aria-labelledby]",
)

LINK_PATTERNS = (
    "/prn/",
    "/pn/",
    "/pd/",
    "/p/",
    "/product/",
    "/item/",
    "/dp/",
    "pid=",
    "/buy/",
    "/grocery/",
    "productId=",
    "sku=",
)

# 빌드 도구가 만든 해시 클래스 (card_3fa9c, xYz3k9 등)는 배포마다 바뀜
_HASHED_CLASS_RES = (
    re.compile(r"[a-z]{1,3}[A-Z][a-z0-9]{4,}"),
    re.compile(r"[a-z]+_[a-f0-9]{4,}"),
)
_CSS_IDENT_RE = re.compile(r"[A-Za-z_][\w-]*")
_SAFE_ATTR_VALUE_RE = re.compile(r"[\w\- .:]+")

_NAME_HINT_SELECTORS = "[class*='name'], [class*='title'], [class*='Name'], [class*='Title'], h2, h3, h4"
_ALT_IMAGE_EXCLUDES = ("logo", "banner", "icon")


# ============================================================================
# 공통 헬퍼
# ============================================================================

def _attr(node: Optional[Node], key: str) -> str:
    if node is None:
        return ""
    return ((node.attributes or {}).get(key) or "").strip()


def _text(node: Node) -> str:
    return node.text(separator=" ", strip=True)


def _own_text(node: Node) -> str:
    return (node.text(deep=False) or "").strip()


def _card_name(raw: str, max_length: int = CARD_NAME_MAX) -> Optional[str]:
    """카드 안의 문구가 상품명으로 쓸 만하면 정리된 이름 반환"""
    if not raw:
        return None
    name = clean_name(raw)
    if not (CARD_NAME_MIN <= len(name) <= max_length):
        return None
    if not is_valid_name(name) or contains_price(name):
        return None
    return name


def image_url_of(img: Optional[Node]) -> Optional[str]:
    """src(플레이스홀더 제외) → data-src → srcset 첫 항목"""
    if img is None:
        return None
    src = _attr(img, "src")
    if src and "placeholder" not in src.lower() and not src.startswith("data:"):
        return src
    data_src = _attr(img, "data-src")
    if data_src:
        return data_src
    srcset = _attr(img, "srcset")
    if srcset:
        return srcset.split(",")[0].strip().split(" ")[0] or None
    return None


def build_selector(element: Node) -> Optional[str]:
    """카드 요소를 다시 찾을 수 있는 안정적인 CSS 셀렉터

    data-testid → data-id → itemprop → 해시가 아닌 클래스 순. 만들 수 없으면 None
    """
    tag = element.tag
    if not tag or not _CSS_IDENT_RE.fullmatch(tag):
        return None

    test_id = _attr(element, "data-testid")
    if test_id and _SAFE_ATTR_VALUE_RE.fullmatch(test_id):
        return f"{tag}[data-testid='{test_id}']"
    if _attr(element, "data-id"):
        return f"{tag}[data-id]"
    item_prop = _attr(element, "itemprop")
    if item_prop and _SAFE_ATTR_VALUE_RE.fullmatch(item_prop):
        return f"{tag}[itemprop='{item_prop}']"

    for cls in _attr(element, "class").split():
        if len(cls) <= 3 or not _CSS_IDENT_RE.fullmatch(cls):
            continue
        if any(pattern.fullmatch(cls) for pattern in _HASHED_CLASS_RES):
            continue
        return f"{tag}.{cls}"
    return None


def find_product_container(element: Node) -> Optional[Node]:
    """요소에서 위로 올라가며 이미지+가격을 함께 포함하는 첫 (너무 크지 않은) 컨테이너

    가장 가까운 조상을 고르므로 작은 카드 여러 개가 한 그리드에 있어도 섞이지 않습니다.
    """
    current = element
    for _ in range(MAX_CONTAINER_LEVELS):
        if current is None:
            break
        text = _text(current)
        if len(text) >= MAX_CONTAINER_TEXT:
            return None
        if current.css_first("img") is not None and contains_price(text):
            return current
        current = current.parent
    return None


def find_best_product_url(container: Node, patterns: Iterable[str] = ()) -> Optional[str]:
    """소스 URL 패턴 우선, 없으면 상품처럼 보이는 링크, 최후에는 첫 링크"""
    for pattern in tuple(patterns) or _GENERIC_URL_PATTERNS:
        link = container.css_first(f"a[href*='{pattern}']")
        href = _attr(link, "href")
        if href:
            return href

    links = container.css("a[href]")
    if container.tag == "a" and _attr(container, "href"):
        links = [container] + links
    for link in links:
        href = _attr(link, "href")
        if not is_valid_product_url(href) or href.endswith("/"):
            continue
        lowered = href.lower()
        if "/p" in lowered or "product" in lowered or "item" in lowered:
            return href

    first = links[0] if links else None
    return _attr(first, "href") or None


def extract_from_element(
    element: Node,
    url_patterns: Iterable[str] = (),
    price_selectors: Iterable[str] = (),
) -> Optional[ProductCandidate]:
    """임의의 카드 요소에서 상품 후보 추출

    이름 우선순위: img alt → aria-label → title → 헤딩 → 링크 텍스트 → data-name → 짧은 텍스트
    """
    img = element if element.tag == "img" else element.css_first("img")
    name: Optional[str] = _card_name(_attr(img, "alt"))

    if name is None:
        name = _card_name(_attr(element, "aria-label"))

    if name is None:
        name = _card_name(_attr(element, "title"))
        if name is None:
            name = _card_name(_attr(element.css_first("[title]"), "title"))

    if name is None:
        for heading in element.css("h1, h2, h3, h4, h5, h6"):
            name = _card_name(_text(heading))
            if name:
                break

    if name is None:
        for link in element.css("a"):
            name = _card_name(_text(link), max_length=100)
            if name:
                break

    if name is None:
        for node in element.css("[data-name], [data-title], [data-product-name]"):
            raw = _attr(node, "data-name") or _attr(node, "data-title") or _attr(node, "data-product-name")
            name = _card_name(raw)
            if name:
                break

    if name is None:
        for node in element.css("span, div, p"):
            name = _card_name(_own_text(node), max_length=100)
            if name:
                break

    if name is None:
        return None

    selection = extract_smart_price(element, price_selectors)
    if selection.price is None:
        return None

    return ProductCandidate(
        name=name,
        price=selection.price,
        original_price=selection.original_price,
        image_url=image_url_of(img),
        url=find_best_product_url(element, url_patterns),
    )


def _collect(
    elements: Iterable[Node],
    ctx: ExtractionContext,
    limit: int,
) -> list[ProductCandidate]:
    source = ctx.source
    patterns = source.url_patterns if source else ()
    selectors = source.price_selectors if source else ()
    out: list[ProductCandidate] = []
    for element in elements:
        cand = extract_from_element(element, patterns, selectors)
        if cand:
            cand.selector = build_selector(element)
            out.append(cand)
        if len(out) >= limit:
            break
    return out


# ============================================================================
# Tier 1: 소스 전용
# ============================================================================

def extract_source_specific(ctx: ExtractionContext) -> list[ProductCandidate]:
    """소스의 상품 URL 규칙으로 카드를 찾고 소스 가격 셀렉터 힌트로 가격 결정"""
    source = ctx.source
    if source is None or not source.url_patterns:
        return []

    out: list[ProductCandidate] = []
    seen_urls: set[str] = set()
    seen_names: set[str] = set()

    for pattern in source.url_patterns:
        links = ctx.tree.css(f"a[href*='{pattern}']")
        logger.debug(f"[EXTRACTOR] {source.id}: pattern '{pattern}' matched {len(links)} links")

        for link in links[:15]:
            href = ensure_absolute_url(_attr(link, "href"), source.base_url)
            if not href or not is_valid_product_url(href) or href in seen_urls:
                continue
            seen_urls.add(href)

            container = find_product_container(link) or link
            img = container.css_first("img")
            name = _card_name(_attr(img, "alt"))
            if name is None:
                hint = container.css_first(_NAME_HINT_SELECTORS)
                name = _card_name(_text(hint)) if hint is not None else None
            if name is None:
                name = _card_name(_attr(link, "aria-label") or _attr(link, "title"))
            if name is None or name.lower() in seen_names:
                continue

            selection = extract_smart_price(container, source.price_selectors)
            if selection.price is None:
                continue

            seen_names.add(name.lower())
            out.append(ProductCandidate(
                name=name,
                price=selection.price,
                original_price=selection.original_price,
                image_url=image_url_of(img),
                url=href,
            ))

        if out:
            break

    return out


# ============================================================================
# Tier 4: 접근성 기반
# ============================================================================

def extract_from_data_attributes(ctx: ExtractionContext) -> list[ProductCandidate]:
    for selector in DATA_ATTRIBUTE_SELECTORS:
        elements = ctx.tree.css(selector)
        if len(elements) < 2:
            continue
        logger.debug(f"[EXTRACTOR] {ctx.source_id}: data attr '{selector}' found {len(elements)} elements")
        out = _collect(elements[:12], ctx, limit=12)
        if out:
            return out
    return []


def extract_from_aria(ctx: ExtractionContext) -> list[ProductCandidate]:
    for selector in ARIA_SELECTORS:
        elements = ctx.tree.css(selector)
        # 3개 이상이어야 상품 카드 목록으로 신뢰
        if len(elements) < 3:
            continue
        logger.debug(f"[EXTRACTOR] {ctx.source_id}: ARIA '{selector}' found {len(elements)} elements")
        out = _collect(elements[:12], ctx, limit=12)
        if out:
            return out
    return []


def _is_product_alt(alt: str) -> bool:
    if not (5 <= len(alt) <= 150):
        return False
    lowered = alt.lower()
    if any(word in lowered for word in _ALT_IMAGE_EXCLUDES):
        return False
    return is_valid_name(alt)


def extract_from_image_alt(ctx: ExtractionContext) -> list[ProductCandidate]:
    source = ctx.source
    patterns = source.url_patterns if source else ()
    selectors = source.price_selectors if source else ()

    images = [img for img in ctx.tree.css("img[alt]") if _is_product_alt(_attr(img, "alt"))]
    out: list[ProductCandidate] = []
    for img in images[:15]:
        container = find_product_container(img)
        if container is None:
            continue
        selection = extract_smart_price(container, selectors)
        if selection.price is None:
            continue
        out.append(ProductCandidate(
            name=clean_name(_attr(img, "alt")),
            price=selection.price,
            original_price=selection.original_price,
            image_url=image_url_of(img),
            url=find_best_product_url(container, patterns),
        ))
    return out


# ============================================================================
# Tier 5: URL/구조 기반
# ============================================================================

def extract_from_links(ctx: ExtractionContext) -> list[ProductCandidate]:
    out: list[ProductCandidate] = []
    seen: set[str] = set()
    source = ctx.source
    selectors = source.price_selectors if source else ()

    for pattern in LINK_PATTERNS:
        for link in ctx.tree.css(f"a[href*='{pattern}']"):
            href = _attr(link, "href")
            if not href or href in seen or not is_valid_product_url(href):
                continue
            seen.add(href)

            element = find_product_container(link) or link
            cand = extract_from_element(element, (pattern,), selectors)
            if cand:
                cand.url = href
                out.append(cand)
            if len(out) >= 12:
                break
        if len(out) >= 3:
            break
    return out


def extract_from_price_proximity(ctx: ExtractionContext) -> list[ProductCandidate]:
    """이미지와 가격을 함께 가진 작은 컨테이너부터 (텍스트가 짧은 순)"""
    scored: list[tuple[int, Node]] = []
    for container in ctx.tree.css("div, li, article, section"):
        if container.css_first("img") is None:
            continue
        text = _text(container)
        if len(text) >= MAX_PROXIMITY_TEXT or not contains_price(text):
            continue
        scored.append((len(text), container))

    scored.sort(key=lambda pair: pair[0])
    logger.debug(f"[EXTRACTOR] {ctx.source_id}: price proximity found {len(scored)} candidates")
    return _collect((node for _, node in scored[:20]), ctx, limit=10)


def _element_children(node: Node) -> list[Node]:
    return list(node.iter(include_text=False))


def _is_card(node: Node) -> bool:
    return node.css_first("img") is not None and contains_price(_text(node))


def extract_from_dom_structure(ctx: ExtractionContext) -> list[ProductCandidate]:
    """같은 태그의 "이미지 + 가격" 자식이 3개 이상 반복되는 그리드"""
    grids: list[Node] = []
    for parent in ctx.tree.css("ul, ol, div, section"):
        children = _element_children(parent)
        if len(children) < 3:
            continue
        first_tag = children[0].tag
        similar = sum(1 for child in children if child.tag == first_tag and _is_card(child))
        if similar >= 3:
            grids.append(parent)

    logger.debug(f"[EXTRACTOR] {ctx.source_id}: DOM structure found {len(grids)} grids")

    out: list[ProductCandidate] = []
    for grid in grids[:3]:
        cards = [child for child in _element_children(grid)[:12] if _is_card(child)]
        out.extend(_collect(cards, ctx, limit=10 - len(out)))
        if len(out) >= 5:
            break
    return out


def extract_from_siblings(ctx: ExtractionContext) -> list[ProductCandidate]:
    """짧은 가격 텍스트 노드에서 위로 최대 4단계 올라가 이미지가 있는 컨테이너 찾기"""
    price_nodes = [
        el for el in ctx.tree.css("span, div, p")
        if len(_own_text(el)) < MAX_SIBLING_OWN_TEXT and contains_price(_own_text(el))
    ]

    containers: list[Node] = []
    seen: set[int] = set()
    for price_el in price_nodes[:30]:
        container = price_el.parent
        for _ in range(MAX_SIBLING_LEVELS):
            if container is None or container.css_first("img") is not None or container.parent is None:
                break
            container = container.parent
        if container is None or container.css_first("img") is None:
            continue
        if container.mem_id in seen:
            continue
        seen.add(container.mem_id)
        containers.append(container)

    return _collect(containers, ctx, limit=10)


# ============================================================================
# 학습된 카드 셀렉터
# ============================================================================

def extract_with_selector(ctx: ExtractionContext, selector: str, limit: int = 20) -> list[ProductCandidate]:
    """이전 추출에서 학습한 카드 셀렉터로 바로 카드 수집"""
    elements = ctx.tree.css(selector)
    logger.debug(f"[EXTRACTOR] {ctx.source_id}: learned selector '{selector}' matched {len(elements)} elements")
    return _collect(elements[:limit], ctx, limit=limit)
