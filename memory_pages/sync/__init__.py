"""
Page synchronization.

The sync engine keeps the page collection consistent with the remote page
store and falls back to the local cache while the store is unreachable.
"""

from .engine import LoadResult, PageSyncEngine, SyncMode, WriteResult, WriteSource

__all__ = [
    "LoadResult",
    "PageSyncEngine",
    "SyncMode",
    "WriteResult",
    "WriteSource",
]
