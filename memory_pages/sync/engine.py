"""
Page sync engine.

Keeps the in-memory page collection consistent with the remote page store
and mirrors it to the durable local cache after every operation.

Architecture:
- Every mutation is attempted on the REMOTE store first
- On store failure the mutation is applied LOCALLY and the engine enters
  DEGRADED mode; callers always get a page back, never a store error
- After every operation (remote or local) the full collection is written
  to the local cache before control returns to the caller
- The engine leaves DEGRADED mode only on a successful ``load_all``, which
  first pushes everything created, edited or deleted while degraded

Operations are serialized by a single asyncio lock, so overlapping calls
cannot interleave their store responses.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from ..exceptions import (
    MemoryPagesError,
    PageNotFoundError,
    PersistFailureError,
    RemoteUnavailableError,
)
from ..pages import Page, PageCollection, now_ms
from ..pages.types import utc_now
from ..store.base import PageStoreService
from ..store.cache import CacheSnapshot, LocalPageCache

logger = logging.getLogger(__name__)


class SyncMode(Enum):
    """Which source backs the page collection.

    REMOTE: The collection mirrors the page store (normal operation)
    DEGRADED: The store was unreachable; the local cache is the source of truth
    """

    REMOTE = "remote"
    DEGRADED = "degraded"


class WriteSource(Enum):
    """Where a mutation took effect."""

    REMOTE = "remote"  # Acknowledged by the page store
    LOCAL = "local"  # Applied locally only, pending a future load_all


@dataclass(frozen=True)
class LoadResult:
    """Outcome of ``load_all``.

    Attributes:
        pages: The adopted collection, sorted by id
        mode: Engine mode after the load
        from_cache: The collection came from the local cache snapshot
        reconciled: Number of pending local changes pushed to the store
        persist_error: Set if the snapshot could not be written
    """

    pages: tuple[Page, ...]
    mode: SyncMode
    from_cache: bool = False
    reconciled: int = 0
    persist_error: PersistFailureError | None = None

    @property
    def degraded(self) -> bool:
        return self.mode is SyncMode.DEGRADED


@dataclass(frozen=True)
class WriteResult:
    """Outcome of ``create``, ``update`` or ``delete``.

    Attributes:
        page: The page as stored in the collection (for delete, the removed page)
        source: Whether the store acknowledged the write
        mode: Engine mode after the write
        persist_error: Set if the snapshot could not be written
    """

    page: Page
    source: WriteSource
    mode: SyncMode
    persist_error: PersistFailureError | None = None

    @property
    def degraded(self) -> bool:
        return self.source is WriteSource.LOCAL


class PageSyncEngine:
    """Owns the page collection and mediates every read and write.

    Example:
        >>> engine = PageSyncEngine(HttpPageStore(url), LocalPageCache(cache_dir))
        >>> result = await engine.load_all()
        >>> if result.degraded:
        ...     show_banner("offline mode")
        >>> created = await engine.create()
        >>> await engine.update(created.page.id, text="Hello")
    """

    def __init__(
        self,
        store: PageStoreService,
        cache: LocalPageCache,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Remote page store
            cache: Durable local cache slot
            clock: Millisecond clock used for locally synthesized ids
        """
        self.store = store
        self.cache = cache
        self._clock = clock

        self._pages = PageCollection()
        self._pending_deletes: set[int] = set()
        self._mode = SyncMode.REMOTE
        self._lock = asyncio.Lock()
        # Set once the collection has been adopted from the store or the cache;
        # from then on memory is at least as fresh as the cache slot.
        self._loaded = False

        self.last_error: MemoryPagesError | None = None
        self.last_persist_error: PersistFailureError | None = None

        # Callbacks
        self.on_mode_change: Callable[[SyncMode], None] | None = None

    # Read access

    @property
    def mode(self) -> SyncMode:
        return self._mode

    @property
    def degraded(self) -> bool:
        return self._mode is SyncMode.DEGRADED

    @property
    def busy(self) -> bool:
        """True while an operation holds the engine."""
        return self._lock.locked()

    @property
    def pages(self) -> tuple[Page, ...]:
        return self._pages.snapshot()

    @property
    def pending_deletes(self) -> frozenset[int]:
        return frozenset(self._pending_deletes)

    def get(self, page_id: int) -> Page | None:
        return self._pages.get(page_id)

    def index_of(self, page_id: int) -> int:
        return self._pages.index_of(page_id)

    def __len__(self) -> int:
        return len(self._pages)

    # Operations

    async def load_all(self) -> LoadResult:
        """Replace the collection with the store's pages.

        On store failure the engine enters DEGRADED mode and adopts the last
        cache snapshot (or an empty collection); an engine that already holds a
        collection keeps it and rewrites the snapshot instead. Never raises for
        store failures.
        """
        async with self._lock:
            try:
                remote_pages = await self.store.list_pages()
            except RemoteUnavailableError as e:
                return await self._load_from_cache(e)

            pending_pages, pending_deletes = await self._pending_changes()
            pages, pending_deletes, reconciled, unresolved = await self._reconcile(
                remote_pages, pending_pages, pending_deletes
            )

            self._pages.replace_all(pages)
            self._pending_deletes = pending_deletes
            self._loaded = True
            if unresolved:
                self._set_mode(SyncMode.DEGRADED)
            else:
                self.last_error = None
                self._set_mode(SyncMode.REMOTE)

            persist_error = await self._persist()
            logger.info(
                f"Loaded {len(self._pages)} pages from store "
                f"({reconciled} local changes pushed, {unresolved} still pending)"
            )
            return LoadResult(
                pages=self._pages.snapshot(),
                mode=self._mode,
                reconciled=reconciled,
                persist_error=persist_error,
            )

    async def create(self, text: str = "", image: str | None = None) -> WriteResult:
        """Create a page at the end of the collection.

        If the store is unreachable the page gets a local id greater than any
        existing id and is flagged ``local_only`` until the next load_all.
        """
        async with self._lock:
            try:
                page = await self.store.create_page({"text": text, "image": image})
                source = WriteSource.REMOTE
            except RemoteUnavailableError as e:
                page = Page(
                    id=self._next_local_id(),
                    text=text,
                    image=image,
                    created_at=utc_now(),
                    local_only=True,
                )
                source = WriteSource.LOCAL
                self._enter_degraded(e, f"created page {page.id} locally")

            self._pages.upsert(page)
            persist_error = await self._persist()
            return WriteResult(page, source, self._mode, persist_error)

    async def update(self, page_id: int, **fields: str | None) -> WriteResult:
        """Merge ``fields`` (``text``, ``image``) over an existing page.

        Raises:
            PageNotFoundError: If the page is not in the collection (checked
                before any store call) or the store reports it missing
            ValueError: If a field is not editable
        """
        async with self._lock:
            existing = self._pages.get(page_id)
            if existing is None:
                raise PageNotFoundError(page_id)

            merged = existing.merge(fields, updated_at=utc_now())
            if existing.local_only:
                # The store has never seen this id.
                page = merged
                source = WriteSource.LOCAL
            else:
                try:
                    page = await self.store.update_page(
                        page_id, {"text": merged.text, "image": merged.image}
                    )
                    source = WriteSource.REMOTE
                except RemoteUnavailableError as e:
                    page = replace(merged, pending_sync=True)
                    source = WriteSource.LOCAL
                    self._enter_degraded(e, f"updated page {page_id} locally")

            self._pages.upsert(page)
            persist_error = await self._persist()
            return WriteResult(page, source, self._mode, persist_error)

    async def delete(self, page_id: int) -> WriteResult:
        """Remove a page from the collection and the store.

        Raises:
            PageNotFoundError: If the page is not in the collection
        """
        async with self._lock:
            existing = self._pages.get(page_id)
            if existing is None:
                raise PageNotFoundError(page_id)

            source = WriteSource.LOCAL
            if not existing.local_only:
                try:
                    await self.store.delete_page(page_id)
                    source = WriteSource.REMOTE
                except PageNotFoundError:
                    source = WriteSource.REMOTE  # Already deleted remotely
                except RemoteUnavailableError as e:
                    self._pending_deletes.add(page_id)
                    self._enter_degraded(e, f"deleted page {page_id} locally")

            self._pages.remove(page_id)
            persist_error = await self._persist()
            return WriteResult(existing, source, self._mode, persist_error)

    async def snapshot_to_local_cache(self) -> None:
        """Write the full collection to the cache slot.

        Raises:
            PersistFailureError: If the snapshot cannot be written
        """
        async with self._lock:
            await self._write_snapshot()

    async def read_local_cache(self) -> tuple[Page, ...] | None:
        """Read the pages held in the cache slot, or None if it is empty."""
        snapshot = await self.cache.read()
        if snapshot is None:
            return None
        return tuple(snapshot.pages)

    # Internals

    async def _load_from_cache(self, error: RemoteUnavailableError) -> LoadResult:
        self._enter_degraded(error, "loading pages from local cache")
        if self._loaded:
            # A failed snapshot write can leave the slot behind memory.
            logger.info("Keeping the in-memory collection while the store is unreachable")
            persist_error = await self._persist()
            return LoadResult(
                pages=self._pages.snapshot(), mode=self._mode, persist_error=persist_error
            )

        snapshot = await self.cache.read()
        self._loaded = True
        if snapshot is None:
            logger.warning("No local page cache available, starting with an empty collection")
            self._pages.replace_all([])
            self._pending_deletes = set()
            return LoadResult(pages=(), mode=self._mode, from_cache=False)

        self._pages.replace_all(snapshot.pages)
        self._pending_deletes = set(snapshot.pending_deletes)
        return LoadResult(pages=self._pages.snapshot(), mode=self._mode, from_cache=True)

    async def _pending_changes(self) -> tuple[list[Page], set[int]]:
        """Local changes the store has not seen yet.

        Once loaded, the in-memory collection is the record of what is
        pending. Before that, the snapshot left by an earlier session is
        used, with pages changed in memory since taking precedence per id.

        Returns:
            (local-only or pending-sync pages sorted by id, pending deletes)
        """
        pending = {page.id: page for page in self._pages if page.local_only or page.pending_sync}
        deletes = set(self._pending_deletes)
        if not self._loaded:
            snapshot = await self.cache.read()
            if snapshot is not None:
                for page in snapshot.pages:
                    if (page.local_only or page.pending_sync) and page.id not in pending:
                        pending[page.id] = page
                deletes |= set(snapshot.pending_deletes)
        return sorted(pending.values(), key=lambda p: p.id), deletes

    async def _reconcile(
        self,
        remote_pages: list[Page],
        pending_pages: list[Page],
        pending_deletes: set[int],
    ) -> tuple[list[Page], set[int], int, int]:
        """Push changes made while degraded, returning the merged pages.

        Local-only pages are created on the store and take the id it assigns.
        Pending edits are written over the store's version. Pending deletes are
        sent to the store. Changes the store still refuses stay pending.

        Returns:
            (pages, pending deletes, pushed count, still-pending count)
        """
        by_id = {page.id: page for page in remote_pages}
        pushed = 0
        kept: list[Page] = []
        still_deleting: set[int] = set()

        for page_id in sorted(pending_deletes):
            if page_id not in by_id:
                continue
            try:
                await self.store.delete_page(page_id)
            except PageNotFoundError:
                pass
            except RemoteUnavailableError as e:
                logger.warning(f"Could not push deletion of page {page_id}: {e}")
                still_deleting.add(page_id)
                continue
            del by_id[page_id]
            pushed += 1

        for page in pending_pages:
            if page.local_only:
                try:
                    created = await self.store.create_page({"text": page.text, "image": page.image})
                except RemoteUnavailableError as e:
                    logger.warning(f"Could not push local page {page.id}: {e}")
                    kept.append(page)
                    continue
                logger.info(f"Local page {page.id} stored remotely as {created.id}")
                by_id[created.id] = created
                pushed += 1
            else:
                if page.id not in by_id:
                    logger.warning(f"Dropping local edits to page {page.id}, deleted on the store")
                    continue
                try:
                    updated = await self.store.update_page(
                        page.id, {"text": page.text, "image": page.image}
                    )
                except PageNotFoundError:
                    logger.warning(f"Dropping local edits to page {page.id}, deleted on the store")
                    del by_id[page.id]
                    continue
                except RemoteUnavailableError as e:
                    logger.warning(f"Could not push edits to page {page.id}: {e}")
                    kept.append(page)
                    continue
                by_id[page.id] = updated
                pushed += 1

        unresolved = len(kept) + len(still_deleting)
        return list(by_id.values()) + kept, still_deleting, pushed, unresolved

    def _next_local_id(self) -> int:
        """An id greater than every id in the collection."""
        highest = self._pages.max_id()
        candidate = self._clock()
        if highest is not None and candidate <= highest:
            candidate = highest + 1
        return candidate

    def _enter_degraded(self, error: RemoteUnavailableError, action: str) -> None:
        logger.warning(f"Page store unavailable, {action}: {error}")
        self.last_error = error
        self._set_mode(SyncMode.DEGRADED)

    def _set_mode(self, mode: SyncMode) -> None:
        if mode is self._mode:
            return
        logger.info(f"Sync mode changed: {self._mode.value} -> {mode.value}")
        self._mode = mode
        if self.on_mode_change:
            self.on_mode_change(mode)

    async def _write_snapshot(self) -> None:
        snapshot = CacheSnapshot(
            pages=list(self._pages.snapshot()),
            pending_deletes=sorted(self._pending_deletes),
            saved_at=utc_now(),
        )
        await self.cache.write(snapshot)

    async def _persist(self) -> PersistFailureError | None:
        """Write the snapshot, reporting rather than raising a failure.

        The in-memory mutation stands even when the write fails.
        """
        try:
            await self._write_snapshot()
        except PersistFailureError as e:
            logger.warning(f"Keeping change in memory only: {e}")
            self.last_persist_error = e
            return e
        self.last_persist_error = None
        return None
