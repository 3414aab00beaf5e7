"""커스텀 예외 정의 (Structured Exception Hierarchy)"""
from typing import Any, Optional


class PriceAggregatorException(Exception):
    """기본 예외 클래스 - 모든 커스텀 예외의 부모"""
    def __init__(self, message: str, error_code: str = "UNKNOWN_ERROR", details: Optional[dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"


# 스크래퍼 관련 예외 (소스 단위로 격리되어 "결과 없음"으로 변환됨)
class ScraperException(PriceAggregatorException):
    """스크래퍼 관련 예외의 기본 클래스"""
    def __init__(self, message: str, error_code: str = "SCRAPER_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "SCRAPER_ERROR", details)


class NetworkTimeoutException(ScraperException):
    """네트워크 타임아웃/연결 실패"""
    def __init__(self, operation: str, timeout_s: float, details: Optional[dict[str, Any]] = None):
        message = f"Network timeout during '{operation}' after {timeout_s}s"
        super().__init__(message, "NETWORK_TIMEOUT",
                        details or {"operation": operation, "timeout_s": timeout_s})


class ParsingException(ScraperException):
    """마크업/JSON 파싱 오류 (전략 단위로 격리)"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to parse response: {reason}"
        super().__init__(message, "PARSING_ERROR", details or {"reason": reason})


class BlockedException(ScraperException):
    """봇 감지/차단 예외"""
    def __init__(self, source: str, details: Optional[dict[str, Any]] = None):
        message = f"Request blocked by {source} (possible bot detection)"
        super().__init__(message, "BLOCKED", details or {"source": source})


class BrowserException(ScraperException):
    """브라우저(렌더러) 실행 오류"""
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, "BROWSER_ERROR", details)


class SourceUnavailableException(ScraperException):
    """회로차단기 OPEN 상태 - 시도 자체를 생략"""
    def __init__(self, source: str, cooldown_remaining_s: float = 0.0, details: Optional[dict[str, Any]] = None):
        message = f"Source '{source}' is temporarily disabled ({cooldown_remaining_s:.0f}s remaining)"
        super().__init__(message, "SOURCE_UNAVAILABLE",
                        details or {"source": source, "cooldown_remaining_s": cooldown_remaining_s})


# 캐시 관련 예외
class CacheException(PriceAggregatorException):
    """캐시 관련 예외"""
    def __init__(self, message: str, error_code: str = "CACHE_ERROR", details: Optional[dict[str, Any]] = None):
        super().__init__(message, error_code or "CACHE_ERROR", details)


class CacheConnectionException(CacheException):
    """캐시 저장소 연결 실패"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Failed to connect to cache: {reason}"
        super().__init__(message, "CACHE_CONNECTION_ERROR", details or {"reason": reason})


class CacheSerializationException(CacheException):
    """캐시 직렬화/역직렬화 오류"""
    def __init__(self, operation: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Cache {operation} failed: {reason}"
        super().__init__(message, "CACHE_SERIALIZATION_ERROR",
                        details or {"operation": operation, "reason": reason})


# 유효성 검증 관련 예외
class ValidationException(PriceAggregatorException):
    """유효성 검증 예외"""
    def __init__(self, field: str, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Validation failed for '{field}': {reason}"
        super().__init__(message, "VALIDATION_ERROR",
                        details or {"field": field, "reason": reason})


class InvalidQueryException(ValidationException):
    """유효하지 않은 검색어"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__("query", reason, details)


class InvalidLocationException(ValidationException):
    """유효하지 않은 위치(pincode)"""
    def __init__(self, location: str, reason: str, details: Optional[dict[str, Any]] = None):
        super().__init__("location", f"{reason} (value: {location})", details)


# 오케스트레이션 관련 예외 (Error 이벤트로 노출)
class OrchestrationException(PriceAggregatorException):
    """오케스트레이터 자체의 실패"""
    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        message = f"Search orchestration failed: {reason}"
        super().__init__(message, "ORCHESTRATION_ERROR", details or {"reason": reason})


class TimeoutException(PriceAggregatorException):
    """타임아웃 예외"""
    def __init__(self, operation: str, timeout_s: float, details: Optional[dict[str, Any]] = None):
        message = f"Operation '{operation}' timed out after {timeout_s}s"
        super().__init__(message, "TIMEOUT",
                        details or {"operation": operation, "timeout_s": timeout_s})
