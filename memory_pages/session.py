"""
Memory pages session.

Wires the page store, local cache, sync engine, navigation controller and
image ingestor together for one slideshow session.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from .config import PagesConfig
from .exceptions import MemoryPagesError
from .images import ImageIngestor, IngestResult
from .navigation import NavigationController, NavigationState
from .pages import Page
from .store import HttpPageStore, LocalPageCache, PageStoreService
from .sync import LoadResult, PageSyncEngine, WriteResult

logger = logging.getLogger(__name__)

OFFLINE_BANNER = "Failed to load pages. Using offline mode."
PERSIST_BANNER = "Failed to save changes."


class MemorySession:
    """One slideshow session.

    Example:
        >>> async with MemorySession(PagesConfig.from_environment()) as session:
        ...     await session.start()
        ...     await session.edit_text("Happy birthday!")
        ...     result = await session.attach_image(data, "image/png")
        ...     if not result.ok:
        ...         print(result.error.message)
        ...     await session.next()
    """

    def __init__(
        self,
        config: PagesConfig | None = None,
        store: PageStoreService | None = None,
        cache: LocalPageCache | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            config: Session configuration (defaults to PagesConfig())
            store: Page store, defaults to an HttpPageStore for config.api_base_url
            cache: Local cache, defaults to the slot under config.cache_path
        """
        self.config = config or PagesConfig()
        self.store = store or HttpPageStore(
            self.config.api_base_url, timeout=self.config.request_timeout
        )
        self.cache = cache or LocalPageCache(Path(self.config.cache_path), self.config.cache_key)
        self.engine = PageSyncEngine(self.store, self.cache)
        self.navigation = NavigationController(self.engine)
        self.ingestor = ImageIngestor.from_config(self.config)
        self.started = False

    async def __aenter__(self) -> MemorySession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self.store.close()

    async def start(self) -> LoadResult | None:
        """Load the pages and create the welcome page for an empty slideshow."""
        result = await self.navigation.load()
        if not self.engine.pages:
            await self.engine.create(text=self.config.welcome_text, image=None)
        self.started = True
        return result

    # Navigation

    @property
    def state(self) -> NavigationState:
        return self.navigation.state

    @property
    def current_page(self) -> Page | None:
        return self.navigation.current_page

    @property
    def pages(self) -> tuple[Page, ...]:
        return self.engine.pages

    async def next(self) -> bool:
        return await self.navigation.next()

    async def previous(self) -> bool:
        return await self.navigation.previous()

    # Editing the current page

    async def edit_text(self, text: str) -> WriteResult:
        return await self.engine.update(self._require_current().id, text=text)

    async def attach_image(
        self,
        data: bytes,
        declared_mime_type: str,
        file_size_bytes: int | None = None,
    ) -> IngestResult:
        """Ingest an upload and store it on the current page.

        A rejected upload leaves the page untouched; the returned result
        carries the message to show next to the upload control.
        """
        page = self._require_current()
        result = await asyncio.to_thread(
            self.ingestor.ingest, data, declared_mime_type, file_size_bytes
        )
        if result.ok:
            await self.engine.update(page.id, image=result.unwrap().data_uri)
        return result

    async def remove_image(self) -> WriteResult:
        return await self.engine.update(self._require_current().id, image=None)

    @property
    def banner(self) -> str | None:
        """Non-blocking status message, or None when everything is in sync."""
        if self.engine.last_persist_error is not None:
            return PERSIST_BANNER
        if self.engine.degraded:
            return OFFLINE_BANNER
        return None

    def _require_current(self) -> Page:
        page = self.current_page
        if page is None:
            raise MemoryPagesError("Session has no pages; call start() first")
        return page
