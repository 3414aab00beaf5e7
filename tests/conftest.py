"""전역 테스트 설정

역할:
- 테스트 환경 구성
- 공통 Fake 주입 (렌더러, 시계)
- 전역 상태 초기화

금지:
- 실제 네트워크/브라우저 호출
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pytest


# 프로젝트 루트를 경로에 추가
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    """테스트 환경 변수 설정 (세션 전역)"""
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "INFO"
    os.environ.setdefault("CACHE_BACKEND", "memory")


class FakeClock:
    """수동으로 진행시키는 시계 (캐시/회로차단기 시간 주입용)"""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class FakeRenderer:
    """미리 준비한 HTML을 돌려주는 렌더러

    - pages: URL에 포함된 문자열 → HTML
    - default: 매칭되는 항목이 없을 때 반환값 (None이면 렌더 실패)
    """

    pages: dict[str, str] = field(default_factory=dict)
    default: Optional[str] = None
    calls: list[str] = field(default_factory=list)

    async def render(
        self,
        url: str,
        wait_for: Optional[str] = None,
        timeout_s: float = 30.0,
        settle_ms: Optional[int] = None,
    ) -> Optional[str]:
        self.calls.append(url)
        for fragment, html in self.pages.items():
            if fragment in url:
                return html
        return self.default


class FakeHttpClient:
    """URL 조각 → (status, body) 응답을 돌려주는 HTTP 클라이언트

    - 매칭되는 항목이 없으면 None (전송 실패)
    """

    def __init__(self, responses: Optional[dict[str, Optional[tuple[int, str]]]] = None):
        self.responses = responses or {}
        self.calls: list[str] = []

    @staticmethod
    def mobile_headers(accept_json: bool = False) -> dict[str, str]:
        return {"User-Agent": "test-agent", "Accept": "application/json" if accept_json else "text/html"}

    def default_headers(self) -> dict[str, str]:
        return {"User-Agent": "test-agent"}

    async def get_text(self, url: str, *, timeout_s: float, headers=None, cookies=None, follow_redirects=True):
        self.calls.append(url)
        for fragment, response in self.responses.items():
            if fragment in url:
                return response
        return None


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def make_product():
    """Product 팩토리 (필수값 기본 채움)"""
    from src.schemas.product_schema import Product

    def _make(name: str = "Amul Taaza Toned Milk 500ml", price: float = 27.0, source: str = "Zepto", **kwargs):
        return Product(name=name, price=price, source=source, **kwargs)

    return _make
