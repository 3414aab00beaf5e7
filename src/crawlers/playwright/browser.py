"""Playwright 공용 브라우저/컨텍스트 관리.

모든 렌더 소스가 하나의 인도 지역(en-IN, Asia/Kolkata) 브라우저 컨텍스트를 공유합니다.
렌더 동시성은 오케스트레이터의 세마포어가 제한하고, 이 모듈은 기동/재기동/정리만 맡습니다.
"""

from __future__ import annotations

import asyncio
import platform
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from src.core.config import settings
from src.core.logging import logger
from src.core.exceptions import BrowserException


_LAUNCH_ARGS = (
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-background-networking",
    "--disable-renderer-backgrounding",
    "--disable-blink-features=AutomationControlled",
    "--disable-extensions",
    "--no-first-run",
    "--no-default-browser-check",
)

# 퀵커머스 사이트는 좁은 화면에서 카드 그리드를 다르게 그림
_VIEWPORT = {"width": 1366, "height": 900}

_lock = asyncio.Lock()
_playwright: Optional[Playwright] = None
_browser: Optional[Browser] = None
_context: Optional[BrowserContext] = None


def launch_args() -> list[str]:
    args = list(_LAUNCH_ARGS)
    if platform.system().lower() == "linux":
        args += ["--no-sandbox", "--disable-setuid-sandbox"]
    return args


async def _close_all() -> None:
    """컨텍스트 → 브라우저 → 드라이버 순으로 정리 (_lock 보유 상태에서 호출)"""
    global _playwright, _browser, _context

    closers = (
        ("context", _context.close if _context is not None else None),
        ("browser", _browser.close if _browser is not None else None),
        ("driver", _playwright.stop if _playwright is not None else None),
    )
    for label, close in closers:
        if close is None:
            continue
        try:
            await close()
        except Exception as e:
            logger.debug(f"[Playwright] {label} close ignored: {type(e).__name__}")

    _playwright = _browser = _context = None


async def _launch_once() -> BrowserContext:
    global _playwright, _browser, _context

    launch_timeout_s = settings.crawler_browser_launch_timeout_s
    _playwright = await asyncio.wait_for(async_playwright().start(), timeout=launch_timeout_s)
    _browser = await asyncio.wait_for(
        _playwright.chromium.launch(headless=True, args=launch_args(), timeout=settings.crawler_timeout),
        timeout=launch_timeout_s,
    )
    _context = await _browser.new_context(
        user_agent=settings.crawler_user_agent,
        locale="en-IN",
        timezone_id="Asia/Kolkata",
        viewport=_VIEWPORT,
        extra_http_headers={"Accept-Language": "en-IN,en;q=0.9"},
    )
    return _context


async def ensure_shared_context() -> BrowserContext:
    """연결된 공유 컨텍스트 반환. 끊겼거나 없으면 재시도하며 새로 띄움

    Raises:
        BrowserException: 재시도 후에도 기동 실패
    """
    async with _lock:
        if _context is not None and _browser is not None and _browser.is_connected():
            return _context

        await _close_all()

        attempts = max(1, settings.crawler_max_retries)
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                logger.info(f"[Playwright] Launching browser ({attempt}/{attempts})")
                context = await _launch_once()
                logger.info("[Playwright] Shared browser ready")
                return context
            except Exception as e:
                last_error = e
                logger.error(f"[Playwright] Launch failed ({attempt}/{attempts}): {type(e).__name__}: {e}")
                await _close_all()
                if attempt < attempts:
                    await asyncio.sleep(min(2.0 * attempt, 10.0))

        raise BrowserException(f"Browser launch failed after {attempts} attempts: {last_error}")


async def shutdown_shared_browser() -> None:
    async with _lock:
        await _close_all()


async def warmup() -> None:
    await ensure_shared_context()


async def new_page() -> Page:
    context = await ensure_shared_context()
    return await context.new_page()
