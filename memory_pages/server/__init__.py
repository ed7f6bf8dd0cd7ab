"""
Reference page store service.

Serves the page store's CRUD endpoint with aiohttp so the client can run
against a real HTTP store during development and tests.

Example:
    >>> from aiohttp import web
    >>> from memory_pages.server import PageRepository, create_app
    >>> web.run_app(create_app(PageRepository()), port=3001)
"""

from .app import REPOSITORY_KEY, create_app, handle_pages
from .repository import DEFAULT_NAMESPACE, PageRepository

__all__ = [
    "DEFAULT_NAMESPACE",
    "PageRepository",
    "REPOSITORY_KEY",
    "create_app",
    "handle_pages",
]
