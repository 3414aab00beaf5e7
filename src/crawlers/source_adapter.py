"""소스 어댑터 - 검색 URL 변형 하나를 "마크업 획득 → 차단 검사 → 추출"로 실행합니다."""

from __future__ import annotations

from typing import Callable, Optional

from src.core.config import settings
from src.core.exceptions import BlockedException, BrowserException, ScraperException
from src.core.logging import logger, sanitize_for_log
from src.crawlers.boundary.page_checks import (
    get_blocked_keyword,
    is_blocked_html,
    is_probably_invalid_html,
    structure_fingerprint,
)
from src.crawlers.direct_api import location_cookies
from src.crawlers.extraction.engine import ResilientExtractor
from src.crawlers.http_client import SharedHttpClient
from src.crawlers.renderer import Renderer
from src.crawlers.sources import SearchVariant, SourceConfig
from src.schemas.product_schema import Product


# 차단으로 간주하는 HTTP 상태
_BLOCK_STATUSES = {403, 429, 503}

StructureObserver = Callable[[str, str], None]


class SourceAdapter:
    """소스 + URL 변형 하나에 대한 검색 실행기

    Args:
        config: 소스 설정
        variant: 검색 URL 변형 (requires_render 여부 포함)
        renderer: 렌더 변형에서 사용
        http_client: HTTP 변형에서 사용
        extractor: 마크업 → 상품 추출기
        structure_observer: (source_id, fingerprint) 콜백 (페이지 구조 변경 감지용)
    """

    def __init__(
        self,
        config: SourceConfig,
        variant: SearchVariant,
        renderer: Renderer,
        http_client: SharedHttpClient,
        extractor: ResilientExtractor,
        structure_observer: Optional[StructureObserver] = None,
    ):
        self.config = config
        self.variant = variant
        self.renderer = renderer
        self.http_client = http_client
        self.extractor = extractor
        self.structure_observer = structure_observer

    @property
    def name(self) -> str:
        return f"{self.config.id}:{self.variant.name}"

    @property
    def requires_render(self) -> bool:
        return self.variant.requires_render

    async def search(self, query: str, location: str, timeout_s: Optional[float] = None) -> list[Product]:
        """검색 페이지 마크업을 얻어 상품 추출

        Raises:
            BlockedException: 차단/챌린지 페이지
            BrowserException: 렌더 실패
            ScraperException: HTTP 오류/전송 실패
        """
        timeout = timeout_s if timeout_s is not None else settings.crawler_source_timeout_s
        url = self.variant.build_url(query)

        if self.requires_render:
            markup = await self._render(url, timeout)
        else:
            markup = await self._fetch(url, location, timeout)

        if is_blocked_html(markup):
            raise BlockedException(self.config.id, {"keyword": get_blocked_keyword(markup), "variant": self.variant.name})
        if is_probably_invalid_html(markup):
            logger.debug(f"[EXTRACTOR] {self.name}: suspicious page ({len(markup)} chars), extracting anyway")

        if self.structure_observer is not None:
            self.structure_observer(self.config.id, structure_fingerprint(markup))

        return self.extractor.extract(markup, self.config.id, self.config.base_url)

    async def _render(self, url: str, timeout: float) -> str:
        html = await self.renderer.render(
            url,
            wait_for=self.variant.wait_for,
            timeout_s=timeout,
            settle_ms=self.variant.settle_ms,
        )
        if not html:
            raise BrowserException(f"Render returned no markup for {self.name}", {"url": sanitize_for_log(url)})
        return html

    async def _fetch(self, url: str, location: str, timeout: float) -> str:
        headers = self.http_client.default_headers()
        headers["Referer"] = self.config.base_url + "/"
        fetched = await self.http_client.get_text(
            url, timeout_s=timeout, headers=headers, cookies=location_cookies(location)
        )
        if fetched is None:
            raise ScraperException(f"Request failed for {self.name}", "REQUEST_FAILED")

        status, html = fetched
        if status in _BLOCK_STATUSES:
            raise BlockedException(self.config.id, {"status": status, "variant": self.variant.name})
        if not (200 <= status < 300):
            raise ScraperException(f"HTTP {status} for {self.name}", "HTTP_ERROR", {"status": status})
        return html
