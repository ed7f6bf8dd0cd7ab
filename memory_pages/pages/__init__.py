"""
Page data model.

A Page is one slide (text plus optional image); a PageCollection keeps
pages in creation order.
"""

from .collection import PageCollection
from .types import Page, now_ms, parse_page_id

__all__ = [
    "Page",
    "PageCollection",
    "now_ms",
    "parse_page_id",
]
