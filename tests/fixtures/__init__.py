"""테스트 자산(데이터) 레이어

규칙:
- 로직 없음 (단순 dict/list/str)
- 엔진/네트워크 의존 없음
"""

from .api_payloads import API_PAYLOADS
from .html_pages import HTML_PAGES
from .products import PRODUCTS

__all__ = [
    "API_PAYLOADS",
    "HTML_PAGES",
    "PRODUCTS",
]
