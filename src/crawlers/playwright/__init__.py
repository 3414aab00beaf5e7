"""Playwright module (shared browser + page helpers)."""

from .browser import ensure_shared_context, shutdown_shared_browser, warmup, new_page
from .pages import configure_page, settle_and_scroll, wait_for_selector_quietly

__all__ = [
    "ensure_shared_context",
    "shutdown_shared_browser",
    "warmup",
    "new_page",
    "configure_page",
    "settle_and_scroll",
    "wait_for_selector_quietly",
]
