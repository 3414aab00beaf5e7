"""로깅 설정"""
import logging
import os
import re
import sys

from src.core.config import settings


# Production 환경에서는 DEBUG 로그 비활성화
IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"

LOGGER_NAME = "price_aggregator"

# 외부 라이브러리 로거는 WARNING 이상만
_NOISY_LOGGERS = ("asyncio", "httpx", "httpcore", "urllib3", "curl_cffi")

_SENSITIVE_QUERY_RE = re.compile(r"(?i)\b(token|api_key|secret|password|session-id|sid)=([^&\s;]+)")


def setup_logging() -> logging.Logger:
    """로거 초기화 및 설정"""

    logger = logging.getLogger(LOGGER_NAME)

    log_level = settings.log_level.upper()
    if IS_PRODUCTION and log_level == "DEBUG":
        log_level = "INFO"
    level = getattr(logging, log_level, logging.INFO)

    logger.setLevel(level)
    logger.propagate = False

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)

    if IS_PRODUCTION:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
    else:
        # Development: 모듈/라인까지 출력
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(formatter)

    if not logger.handlers:
        logger.addHandler(console_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


logger = setup_logging()


def sanitize_for_log(value: str, max_length: int = 100) -> str:
    """사용자 입력/URL을 로그에 남기기 전에 정리

    - 개행 제거 (로그 위조 방지)
    - 쿼리스트링/쿠키의 민감 값 마스킹
    - 최대 길이 절단

    Args:
        value: 로깅할 문자열
        max_length: 최대 길이

    Returns:
        정리된 문자열
    """
    if not value:
        return "[empty]"

    result = value.replace("\r", " ").replace("\n", " ")
    result = _SENSITIVE_QUERY_RE.sub(lambda m: f"{m.group(1)}=***", result)

    if len(result) > max_length:
        result = result[:max_length] + "..."

    return result
