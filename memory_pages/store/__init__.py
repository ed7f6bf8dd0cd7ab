"""
Page store access.

Provides the remote page store interface with its HTTP client, and the
durable single-slot local cache used while the store is unreachable.

Example:
    >>> from memory_pages.store import HttpPageStore, LocalPageCache
    >>> store = HttpPageStore("http://localhost:3001", timeout=5.0)
    >>> cache = LocalPageCache(Path("~/.memory-pages").expanduser())
"""

from .base import PageStoreService
from .cache import CacheSnapshot, LocalPageCache
from .http import HttpPageStore

__all__ = [
    "CacheSnapshot",
    "HttpPageStore",
    "LocalPageCache",
    "PageStoreService",
]
