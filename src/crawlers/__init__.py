"""Source crawler modules (direct API + HTTP/Playwright adapters).

공개 API는 이 파일에서만 export합니다.
"""

from .direct_api import ApiScrapeResult, ApiScrapeStatus, DirectApiClient, get_direct_api_client
from .fallback_manager import FallbackManager
from .renderer import PlaywrightRenderer, Renderer, get_renderer
from .source_adapter import SourceAdapter
from .sources import SOURCES, SourceConfig, enabled_sources, get_source

__all__ = [
        "ApiScrapeResult",
        "ApiScrapeStatus",
        "DirectApiClient",
        "get_direct_api_client",
        "FallbackManager",
        "PlaywrightRenderer",
        "Renderer",
        "get_renderer",
        "SourceAdapter",
        "SOURCES",
        "SourceConfig",
        "enabled_sources",
        "get_source",
]
