"""
Shared test configuration and fixtures.

Provides an in-memory page store that can be switched offline, a local
cache in a temporary directory, and real image bytes generated with Pillow.
"""

from __future__ import annotations

import asyncio
import io
from collections.abc import AsyncIterator, Iterable
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest
from PIL import Image

from memory_pages.exceptions import PageNotFoundError, RemoteUnavailableError
from memory_pages.pages import Page, now_ms
from memory_pages.pages.types import utc_now
from memory_pages.store import LocalPageCache, PageStoreService
from memory_pages.sync import PageSyncEngine


class FakePageStore(PageStoreService):
    """In-memory page store for testing without a server.

    Set ``online = False`` to make every call fail, or add operation names
    ("list", "get", "create", "update", "delete") to ``failing`` to make only
    those fail. Every call is recorded in ``calls``, including failed ones.
    """

    def __init__(self, pages: Iterable[Page] = (), delay: float = 0.0) -> None:
        self.pages: dict[int, Page] = {page.id: page for page in pages}
        self.online = True
        self.failing: set[str] = set()
        self.calls: list[str] = []
        self.delay = delay
        self.create_gate: asyncio.Event | None = None
        self._last_id = max(self.pages, default=0)

    async def _enter(self, operation: str) -> None:
        self.calls.append(operation)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.online or operation in self.failing:
            raise RemoteUnavailableError(operation, cause=ConnectionError("store offline"))

    async def list_pages(self) -> list[Page]:
        await self._enter("list")
        # Any order; the engine is responsible for sorting.
        return sorted(self.pages.values(), key=lambda p: p.id, reverse=True)

    async def get_page(self, page_id: int) -> Page:
        await self._enter("get")
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        return self.pages[page_id]

    async def create_page(self, fields: dict[str, Any]) -> Page:
        if self.create_gate is not None:
            await self.create_gate.wait()
        await self._enter("create")
        self._last_id = max(now_ms(), self._last_id + 1)
        page = Page(
            id=self._last_id,
            text=fields.get("text") or "",
            image=fields.get("image"),
            created_at=utc_now(),
        )
        self.pages[page.id] = page
        return page

    async def update_page(self, page_id: int, fields: dict[str, Any]) -> Page:
        await self._enter("update")
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        page = replace(self.pages[page_id], **fields, updated_at=utc_now())
        self.pages[page_id] = page
        return page

    async def delete_page(self, page_id: int) -> None:
        await self._enter("delete")
        self.pages.pop(page_id, None)


def make_page(page_id: int, text: str = "") -> Page:
    return Page(id=page_id, text=text, created_at=utc_now())


def make_image_bytes(
    image_format: str,
    size: tuple[int, int] = (1600, 900),
    mode: str = "RGB",
    color: Any = (200, 100, 50),
) -> bytes:
    """Encode a solid-colour image in ``image_format``."""
    image = Image.new(mode, size, color)
    buffer = io.BytesIO()
    image.save(buffer, image_format)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    """Factory fixture: ``image_bytes("PNG", size=(w, h))`` returns encoded bytes."""
    return make_image_bytes


@pytest.fixture
def page_factory():
    """Factory fixture: ``page_factory(id, text)`` returns a stored-looking Page."""
    return make_page


@pytest.fixture
def store_factory():
    """Factory fixture: ``store_factory(pages, delay=...)`` returns a FakePageStore."""
    return FakePageStore


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def cache(cache_dir: Path) -> LocalPageCache:
    return LocalPageCache(cache_dir, "testPages")


@pytest.fixture
def store() -> FakePageStore:
    return FakePageStore([make_page(1, "first"), make_page(2, "second")])


@pytest.fixture
async def engine(store: FakePageStore, cache: LocalPageCache) -> AsyncIterator[PageSyncEngine]:
    yield PageSyncEngine(store, cache)
    await store.close()
