"""Playwright page 설정/보조 함수.

Page 생성 후 라우팅(리소스 차단), 대기, 지연 로딩용 스크롤 등 공통 동작을 분리합니다.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from src.core.config import settings
from src.core.logging import logger


# 이미지 요소(alt/src)는 DOM에 남고 실제 바이트만 받지 않음
_BLOCKED_RESOURCE_TYPES = {"image", "media", "font"}
_BLOCKED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".avif", ".woff", ".woff2", ".ttf", ".mp4")


async def configure_page(page: Page) -> Page:
    page.set_default_timeout(settings.crawler_timeout)

    async def _route_handler(route, request):
        url = (request.url or "").lower().split("?")[0]
        if request.resource_type in _BLOCKED_RESOURCE_TYPES or url.endswith(_BLOCKED_EXTENSIONS):
            try:
                await route.abort()
            except Exception:
                return
            return

        try:
            await route.continue_()
        except Exception:
            return

    try:
        await page.route("**/*", _route_handler)
    except Exception as e:
        logger.debug(f"[Playwright] route setup skipped: {type(e).__name__}")

    return page


async def wait_for_selector_quietly(page: Page, selector: Optional[str], timeout_ms: int) -> bool:
    """셀렉터 대기. 시간 안에 안 나타나도 예외 없이 False (이미 로드된 마크업으로 추출 시도)"""
    if not selector:
        return False
    try:
        await page.wait_for_selector(selector, timeout=timeout_ms, state="attached")
        return True
    except PlaywrightTimeoutError:
        logger.debug(f"[Playwright] wait_for '{selector}' timed out after {timeout_ms}ms")
        return False


async def settle_and_scroll(page: Page, settle_ms: int, steps: int) -> None:
    """settle 대기 후 단계적으로 스크롤해 지연 로딩(lazy load) 카드를 불러옴"""
    if settle_ms > 0:
        await asyncio.sleep(settle_ms / 1000)

    for _ in range(max(0, steps)):
        try:
            await page.evaluate("window.scrollBy(0, Math.max(window.innerHeight, 800))")
        except Exception as e:
            logger.debug(f"[Playwright] scroll stopped: {type(e).__name__}")
            return
        await asyncio.sleep(0.3)
