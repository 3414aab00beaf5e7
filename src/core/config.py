"""설정 관리 - 환경 변수 로드 및 검증"""
from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 캐시
    # - cache_backend: memory | redis (redis 선택 시 redis_url 필수)
    cache_backend: str = "memory"
    redis_url: str = ""
    cache_key_prefix: str = "prices"

    # 신선도 구간: 퀵커머스는 가격 변동이 잦아서 더 짧게 유지
    cache_quick_commerce_ttl_s: int = 300
    cache_ecommerce_ttl_s: int = 900
    # 신선도 이후 stale(폴백용) 구간. 이 구간까지 지나면 완전 만료
    cache_stale_window_s: int = 3600
    cache_purge_interval_s: int = 300

    # 크롤러
    crawler_timeout: int = 30000
    crawler_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    crawler_mobile_user_agent: str = (
        "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36"
    )
    crawler_max_retries: int = 3
    crawler_browser_launch_timeout_s: float = 25.0
    crawler_http_impersonate: str = "chrome110"
    crawler_http_max_clients: int = 20

    # 렌더링(Playwright) 동시성 제한 - 브라우저는 메모리/CPU를 많이 씀
    crawler_render_concurrency: int = 4
    # 렌더 후 비동기 로딩을 기다리는 시간
    crawler_render_settle_ms: int = 1500
    crawler_render_scroll_steps: int = 3

    # 앱 시작 시 Playwright 브라우저를 미리 띄울지 여부
    crawler_playwright_warmup: bool = False

    # 카드 셀렉터 학습: 신뢰도 높은 카드의 셀렉터를 소스별로 기억해 다음 추출에서 먼저 시도
    crawler_learn_selectors: bool = True

    # 타임아웃 (초)
    # - crawler_direct_api_timeout_s: Direct API(빠른 경로) 단일 시도
    # - crawler_source_timeout_s: 소스 하나의 렌더/폴백 체인 전체
    # - search_deadline_s: 검색 1회 전체 데드라인
    crawler_direct_api_timeout_s: float = 5.0
    crawler_source_timeout_s: float = 30.0
    search_deadline_s: float = 60.0
    search_poll_interval_s: float = 0.5

    # 소스 회로차단기(헬스 모니터)
    health_failure_threshold: int = 3
    health_min_samples: int = 3
    health_success_rate_threshold: float = 0.2
    health_window_size: int = 20
    health_initial_backoff_s: float = 60.0
    health_max_backoff_s: float = 3600.0
    health_backoff_multiplier: float = 2.0

    # 검색
    default_location: str = "560001"
    # 비어 있으면 등록된 전체 소스 사용
    enabled_sources: List[str] = []

    # API
    api_title: str = "Grocery Price Aggregator"
    api_version: str = "1.0.0"
    api_description: str = "여러 쇼핑/퀵커머스 소스의 가격을 모아 최적의 딜을 찾습니다."

    # 로깅
    log_level: str = "INFO"

    @field_validator("cache_backend")
    @classmethod
    def validate_cache_backend(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in ("memory", "redis"):
            raise ValueError("cache_backend must be 'memory' or 'redis'")
        return v

    @field_validator(
        "cache_quick_commerce_ttl_s",
        "cache_ecommerce_ttl_s",
        "cache_stale_window_s",
        "cache_purge_interval_s",
    )
    @classmethod
    def validate_cache_windows(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("cache windows must be positive")
        return v

    @field_validator("crawler_timeout")
    @classmethod
    def validate_crawler_timeout(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("crawler_timeout must be positive")
        return v

    @field_validator(
        "crawler_direct_api_timeout_s",
        "crawler_source_timeout_s",
        "search_deadline_s",
        "search_poll_interval_s",
        "crawler_browser_launch_timeout_s",
    )
    @classmethod
    def validate_timeouts(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("crawler_render_concurrency")
    @classmethod
    def validate_render_concurrency(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("crawler_render_concurrency must be positive")
        return v

    @field_validator("crawler_render_settle_ms", "crawler_render_scroll_steps")
    @classmethod
    def validate_render_tuning(cls, v: int) -> int:
        if v < 0:
            raise ValueError("render tuning values must be >= 0")
        return v

    @field_validator("health_failure_threshold", "health_min_samples", "health_window_size")
    @classmethod
    def validate_health_counts(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("health thresholds must be positive")
        return v

    @field_validator("health_success_rate_threshold")
    @classmethod
    def validate_success_rate(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("health_success_rate_threshold must be within [0, 1]")
        return v

    @field_validator("health_initial_backoff_s", "health_max_backoff_s")
    @classmethod
    def validate_backoff(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("backoff durations must be positive")
        return v

    @field_validator("health_backoff_multiplier")
    @classmethod
    def validate_backoff_multiplier(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError("health_backoff_multiplier must be >= 1")
        return v

    @field_validator("default_location")
    @classmethod
    def validate_default_location(cls, v: str) -> str:
        v = (v or "").strip()
        if not (len(v) == 6 and v.isdigit()):
            raise ValueError("default_location must be a 6-digit pincode")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
