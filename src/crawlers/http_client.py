"""공유 HTTP 클라이언트 (curl_cffi)

- 소스마다/요청마다 AsyncSession을 만들면 TLS/커넥션 오버헤드가 커져서
  타임아웃/지연이 악화될 수 있어 프로세스 단위로 세션을 재사용합니다.
- 브라우저 TLS 지문(impersonate)으로 단순 봇 차단을 피합니다.
- 앱 종료 시 close()로 정리합니다.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

from curl_cffi.requests import AsyncSession

from src.core.config import settings
from src.core.logging import logger, sanitize_for_log


_HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
_ACCEPT_LANGUAGE = "en-IN,en;q=0.9"


class SharedHttpClient:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._session: Optional[AsyncSession] = None

    async def _ensure_session(self) -> AsyncSession:
        async with self._lock:
            if self._session is not None:
                return self._session
            self._session = AsyncSession(
                impersonate=settings.crawler_http_impersonate,
                headers=self.default_headers(),
                allow_redirects=True,
                max_clients=int(settings.crawler_http_max_clients),
                trust_env=False,
            )
            return self._session

    def default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": settings.crawler_user_agent,
            "Accept": _HTML_ACCEPT,
            "Accept-Language": _ACCEPT_LANGUAGE,
        }

    @staticmethod
    def mobile_headers(accept_json: bool = False) -> Dict[str, str]:
        """모바일 클라이언트로 보이는 헤더 (내부 JSON API 호출용)"""
        return {
            "User-Agent": settings.crawler_mobile_user_agent,
            "Accept": "application/json, text/plain, */*" if accept_json else _HTML_ACCEPT,
            "Accept-Language": _ACCEPT_LANGUAGE,
            "X-Requested-With": "XMLHttpRequest",
        }

    async def get_text(
        self,
        url: str,
        *,
        timeout_s: float,
        headers: Optional[Dict[str, str]] = None,
        cookies: Optional[Dict[str, str]] = None,
        follow_redirects: bool = True,
    ) -> Optional[tuple[int, str]]:
        """GET 요청

        Returns:
            (status, body) 또는 전송 단계 실패 시 None
        """
        sess = await self._ensure_session()
        try:
            resp = await sess.get(
                url,
                headers=headers,
                cookies=cookies,
                timeout=timeout_s,
                allow_redirects=follow_redirects,
            )
        except Exception as e:
            logger.info(f"[HTTP_CLIENT] GET failed: {sanitize_for_log(url)} {type(e).__name__}: {e}")
            return None

        status = int(getattr(resp, "status_code", 0) or 0)
        if status >= 400:
            logger.debug(f"[HTTP_CLIENT] {status} from {sanitize_for_log(url)}")
        return status, resp.text or ""

    async def close(self) -> None:
        async with self._lock:
            if self._session is None:
                return
            try:
                await self._session.close()
            except Exception as e:
                logger.debug(f"[HTTP_CLIENT] close error ignored: {type(e).__name__}")
            self._session = None


_shared_http_client = SharedHttpClient()


def get_shared_http_client() -> SharedHttpClient:
    return _shared_http_client


async def shutdown_shared_http_client() -> None:
    await _shared_http_client.close()
