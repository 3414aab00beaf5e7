"""페이지 검증 (차단/챌린지 판별, 구조 지문)."""

from .page_checks import (
    get_blocked_keyword,
    is_blocked_html,
    is_no_results_html,
    is_probably_invalid_html,
    structure_fingerprint,
)

__all__ = [
    "get_blocked_keyword",
    "is_blocked_html",
    "is_no_results_html",
    "is_probably_invalid_html",
    "structure_fingerprint",
]
