"""Utilities package - Flat structure (no nested directories)"""

# Hash utilities
from .hash_utils import hash_string, generate_cache_key

# URL utilities
from .url_utils import (
    ensure_absolute_url,
    is_valid_product_url,
    matches_any_pattern,
    normalize_href,
    strip_tracking_params,
)

# Text utilities
from .text_utils import (
    ParsedQuantity,
    clean_display_text,
    has_quantity_pattern,
    normalize_query,
    parse_quantity,
    price_per_100_units,
    tokenize_name,
)

# Search intent
from .search_intent import SearchIntent, analyze_query, optimized_query

__all__ = [
    # hash
    "hash_string",
    "generate_cache_key",
    # url
    "ensure_absolute_url",
    "is_valid_product_url",
    "matches_any_pattern",
    "normalize_href",
    "strip_tracking_params",
    # text
    "ParsedQuantity",
    "clean_display_text",
    "has_quantity_pattern",
    "normalize_query",
    "parse_quantity",
    "price_per_100_units",
    "tokenize_name",
    # search intent
    "SearchIntent",
    "analyze_query",
    "optimized_query",
]
