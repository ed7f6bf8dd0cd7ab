"""
Memory Pages

A personal slideshow of "memory pages" (text plus an optional photo) kept
in a remote page store, with a durable local cache that takes over while
the store is unreachable.

Provides:
- Sync engine with explicit remote/degraded modes and local fallback
- Image ingestion with magic-byte sniffing and JPEG compression
- Navigation controller that grows the slideshow at its end
- Reference page store service on aiohttp

Usage:

    >>> from memory_pages import MemorySession, PagesConfig
    >>> async with MemorySession(PagesConfig.from_environment()) as session:
    ...     await session.start()
    ...     await session.edit_text("Remember the lake house?")
    ...     result = await session.attach_image(photo_bytes, "image/jpeg")
    ...     await session.next()
    ...     if session.banner:
    ...         print(session.banner)  # "Failed to load pages. Using offline mode."
"""

from .config import PagesConfig
from .exceptions import (
    CompressionFailedError,
    ImageIngestError,
    IngestErrorKind,
    MalformedResponseError,
    MemoryPagesError,
    PageNotFoundError,
    PersistFailureError,
    RemoteUnavailableError,
    SignatureMismatchError,
    TooLargeError,
    UnsupportedTypeError,
)
from .images import EncodedImage, ImageIngestor, IngestResult, ingest
from .navigation import Direction, NavigationController, NavigationState
from .pages import Page, PageCollection
from .session import MemorySession
from .store import CacheSnapshot, HttpPageStore, LocalPageCache, PageStoreService
from .sync import LoadResult, PageSyncEngine, SyncMode, WriteResult, WriteSource

__all__ = [
    # Configuration
    "PagesConfig",
    # Data model
    "Page",
    "PageCollection",
    # Images
    "EncodedImage",
    "ImageIngestor",
    "IngestResult",
    "ingest",
    # Store
    "PageStoreService",
    "HttpPageStore",
    "LocalPageCache",
    "CacheSnapshot",
    # Sync
    "PageSyncEngine",
    "SyncMode",
    "LoadResult",
    "WriteResult",
    "WriteSource",
    # Navigation
    "Direction",
    "NavigationController",
    "NavigationState",
    # Session
    "MemorySession",
    # Exceptions
    "MemoryPagesError",
    "ImageIngestError",
    "IngestErrorKind",
    "UnsupportedTypeError",
    "TooLargeError",
    "SignatureMismatchError",
    "CompressionFailedError",
    "RemoteUnavailableError",
    "MalformedResponseError",
    "PageNotFoundError",
    "PersistFailureError",
]

__version__ = "0.1.0"
