"""렌더러 - "render(url) → HTML" 기능의 인터페이스와 Playwright 구현."""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol

from src.core.config import settings
from src.core.exceptions import BrowserException
from src.core.logging import logger, sanitize_for_log
from src.crawlers.playwright import configure_page, new_page, settle_and_scroll, wait_for_selector_quietly


class Renderer(Protocol):
    """헤드리스 브라우저 렌더러 인터페이스

    테스트에서는 미리 준비한 HTML을 돌려주는 가짜 구현으로 대체합니다.
    """

    async def render(
        self,
        url: str,
        wait_for: Optional[str] = None,
        timeout_s: float = 30.0,
        settle_ms: Optional[int] = None,
    ) -> Optional[str]:
        """URL을 렌더링한 최종 DOM HTML

        Returns:
            HTML 또는 실패 시 None
        """
        ...


class PlaywrightRenderer:
    """공유 Playwright 브라우저로 페이지를 렌더링

    - 이미지/폰트/미디어 요청 차단
    - wait_for 셀렉터 대기 (타임아웃이어도 현재 DOM으로 진행)
    - settle 지연 + 단계적 스크롤로 지연 로딩 카드 로드
    """

    async def render(
        self,
        url: str,
        wait_for: Optional[str] = None,
        timeout_s: float = 30.0,
        settle_ms: Optional[int] = None,
    ) -> Optional[str]:
        settle = settings.crawler_render_settle_ms if settle_ms is None else settle_ms
        timeout_ms = max(1000, int(timeout_s * 1000))

        try:
            page = await new_page()
        except BrowserException as e:
            logger.error(f"[Playwright] No browser available: {e}")
            return None

        try:
            await configure_page(page)
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            # 대기 셀렉터에는 전체 예산의 절반까지만 사용
            await wait_for_selector_quietly(page, wait_for, timeout_ms // 2)
            await settle_and_scroll(page, settle, settings.crawler_render_scroll_steps)
            html = await page.content()
            logger.debug(f"[Playwright] Rendered {sanitize_for_log(url)} ({len(html)} chars)")
            return html
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.info(f"[Playwright] Render failed for {sanitize_for_log(url)}: {type(e).__name__}: {e}")
            return None
        finally:
            try:
                await page.close()
            except Exception as e:
                logger.debug(f"[Playwright] page close ignored: {type(e).__name__}")


_default_renderer: Optional[PlaywrightRenderer] = None


def get_renderer() -> PlaywrightRenderer:
    global _default_renderer
    if _default_renderer is None:
        _default_renderer = PlaywrightRenderer()
    return _default_renderer
