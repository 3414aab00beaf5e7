"""해싱 유틸리티"""
import hashlib


def hash_string(text: str) -> str:
    """
    문자열을 MD5 해시로 변환

    Args:
        text: 해시할 문자열

    Returns:
        MD5 해시 문자열
    """
    return hashlib.md5(text.encode()).hexdigest()


def generate_cache_key(query: str, source: str, location: str, prefix: str = "prices") -> str:
    """
    (검색어, 소스, 위치)로 캐시 키 생성

    검색어/위치는 소문자+공백 정리 후 사용하므로 "Milk " 와 "milk"는 같은 키가 됩니다.

    Args:
        query: 검색어
        source: 소스 ID
        location: pincode
        prefix: 키 prefix

    Returns:
        캐시 키 (예: "prices:zepto:560001:<md5>")
    """
    from src.utils.text_utils import normalize_query

    normalized = normalize_query(query)
    source_part = (source or "").strip().lower().replace(" ", "_")
    location_part = (location or "").strip().lower()
    return f"{prefix}:{source_part}:{location_part}:{hash_string(normalized)}"
