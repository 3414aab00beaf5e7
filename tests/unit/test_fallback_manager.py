"""SourceAdapter / FallbackManager 유닛 테스트 (가짜 렌더러 + 가짜 HTTP)"""
import asyncio
from typing import Optional

import pytest

from src.core.exceptions import BlockedException, BrowserException, ScraperException
from src.crawlers.extraction.engine import ResilientExtractor
from src.crawlers.fallback_manager import FallbackManager
from src.crawlers.source_adapter import SourceAdapter
from src.crawlers.sources import get_source
from tests.conftest import FakeHttpClient, FakeRenderer
from tests.fixtures import HTML_PAGES


class SequenceRenderer:
    """호출 순서대로 준비된 HTML을 돌려주는 렌더러"""

    def __init__(self, *pages: Optional[str]):
        self.pages = list(pages)
        self.calls: list[str] = []

    async def render(self, url, wait_for=None, timeout_s=30.0, settle_ms=None):
        self.calls.append(url)
        return self.pages.pop(0) if self.pages else None


class CountingGate:
    """렌더 게이트 획득 횟수 기록"""

    def __init__(self):
        self.entered = 0
        self.active = 0

    async def __aenter__(self):
        self.entered += 1
        self.active += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.active -= 1
        return False


def _adapter(source_id: str, variant_index: int, renderer=None, http=None, observer=None) -> SourceAdapter:
    cfg = get_source(source_id)
    return SourceAdapter(
        cfg,
        cfg.variants[variant_index],
        renderer=renderer or FakeRenderer(),
        http_client=http or FakeHttpClient(),
        extractor=ResilientExtractor(),
        structure_observer=observer,
    )


@pytest.mark.asyncio
class TestSourceAdapter:
    """어댑터 하나: 마크업 획득 → 차단 검사 → 추출"""

    async def test_render_success(self):
        renderer = FakeRenderer(pages={"zeptonow.com/search": HTML_PAGES["zepto_cards"]})
        observed = []
        adapter = _adapter("Zepto", 0, renderer=renderer, observer=lambda s, f: observed.append((s, f)))

        products = await adapter.search("toned milk", "560001")

        assert len(products) == 3
        assert renderer.calls == ["https://www.zeptonow.com/search?query=toned+milk"]
        assert observed and observed[0][0] == "Zepto"
        assert adapter.name == "Zepto:render"

    async def test_render_failure_raises(self):
        adapter = _adapter("Zepto", 0, renderer=FakeRenderer(default=None))
        with pytest.raises(BrowserException):
            await adapter.search("milk", "560001")

    async def test_blocked_page_raises(self):
        adapter = _adapter("Zepto", 0, renderer=FakeRenderer(default=HTML_PAGES["blocked"]))
        with pytest.raises(BlockedException):
            await adapter.search("milk", "560001")

    async def test_http_variant(self):
        http = FakeHttpClient({"instamart/search": (200, HTML_PAGES["data_attribute_cards"])})
        adapter = _adapter("Instamart", 0, http=http)

        products = await adapter.search("salt", "560001")

        assert adapter.requires_render is False
        assert products[0].name == "Tata Salt Iodised 1kg"
        assert products[0].source == "Instamart"

    async def test_http_block_status(self):
        adapter = _adapter("Instamart", 0, http=FakeHttpClient({"instamart/search": (429, "slow down")}))
        with pytest.raises(BlockedException):
            await adapter.search("salt", "560001")

    async def test_http_error_status(self):
        adapter = _adapter("Instamart", 0, http=FakeHttpClient({"instamart/search": (500, "oops")}))
        with pytest.raises(ScraperException) as exc_info:
            await adapter.search("salt", "560001")
        assert exc_info.value.error_code == "HTTP_ERROR"

    async def test_transport_failure(self):
        adapter = _adapter("Instamart", 0, http=FakeHttpClient({}))
        with pytest.raises(ScraperException):
            await adapter.search("salt", "560001")


@pytest.mark.asyncio
class TestFallbackManager:
    """어댑터 체인 순차 실행"""

    async def test_first_adapter_wins(self):
        renderer = SequenceRenderer(HTML_PAGES["zepto_cards"], HTML_PAGES["zepto_cards"])
        manager = FallbackManager(renderer, http_client=FakeHttpClient(), extractor=ResilientExtractor())
        gate = CountingGate()

        products = await manager.scrape("Zepto", "milk", "560001", gate)

        assert len(products) == 3
        assert len(renderer.calls) == 1
        assert gate.entered == 1
        assert gate.active == 0

    async def test_falls_back_after_failure(self):
        """첫 변형이 실패하면 다음 변형 결과 사용"""
        renderer = SequenceRenderer(None, HTML_PAGES["zepto_cards"])
        manager = FallbackManager(renderer, http_client=FakeHttpClient(), extractor=ResilientExtractor())

        products = await manager.scrape("Zepto", "milk", "560001", asyncio.Semaphore(1))

        assert len(products) == 3
        assert len(renderer.calls) == 2

    async def test_falls_back_after_empty(self):
        renderer = SequenceRenderer(HTML_PAGES["empty_results"], HTML_PAGES["zepto_cards"])
        manager = FallbackManager(renderer, http_client=FakeHttpClient(), extractor=ResilientExtractor())

        products = await manager.scrape("Zepto", "milk", "560001", asyncio.Semaphore(1))

        assert len(products) == 3

    async def test_all_fail_returns_empty(self):
        renderer = FakeRenderer(default=HTML_PAGES["blocked"])
        manager = FallbackManager(renderer, http_client=FakeHttpClient(), extractor=ResilientExtractor())

        assert await manager.scrape("Zepto", "milk", "560001", asyncio.Semaphore(1)) == []
        assert len(renderer.calls) == 2

    async def test_http_variant_skips_render_gate(self):
        """HTTP 변형은 렌더 게이트를 잡지 않음"""
        http = FakeHttpClient({"instamart/search": (200, HTML_PAGES["data_attribute_cards"])})
        renderer = FakeRenderer()
        manager = FallbackManager(renderer, http_client=http, extractor=ResilientExtractor())
        gate = CountingGate()

        products = await manager.scrape("Instamart", "salt", "560001", gate)

        assert products
        assert gate.entered == 0
        assert renderer.calls == []

    async def test_http_blocked_then_render(self):
        http = FakeHttpClient({"instamart/search": (403, "denied")})
        renderer = FakeRenderer(pages={"instamart/search": HTML_PAGES["data_attribute_cards"]})
        manager = FallbackManager(renderer, http_client=http, extractor=ResilientExtractor())
        gate = CountingGate()

        products = await manager.scrape("Instamart", "salt", "560001", gate)

        assert products
        assert gate.entered == 1

    async def test_unknown_source(self):
        manager = FallbackManager(FakeRenderer(), http_client=FakeHttpClient(), extractor=ResilientExtractor())
        assert await manager.scrape("NoSuchMart", "milk", "560001", asyncio.Semaphore(1)) == []


class TestAdapterChain:
    def test_adapter_chain_cached(self):
        manager = FallbackManager(FakeRenderer(), http_client=FakeHttpClient(), extractor=ResilientExtractor())
        chain = manager.adapters_for("zepto")
        assert [a.variant.name for a in chain] == ["render", "render-long-wait"]
        assert manager.adapters_for("Zepto") is chain
