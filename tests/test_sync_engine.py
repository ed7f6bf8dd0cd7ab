"""Tests for the page sync engine.

Covers remote-first writes, the degraded-mode local fallback, the cache
mirroring after every operation and the reconciliation of changes made
while degraded.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from memory_pages.exceptions import PageNotFoundError, PersistFailureError
from memory_pages.store import LocalPageCache
from memory_pages.sync import PageSyncEngine, SyncMode, WriteSource


def ids(pages) -> list[int]:
    return [page.id for page in pages]


def texts(pages) -> list[str]:
    return [page.text for page in pages]


def assert_sorted(pages) -> None:
    page_ids = ids(pages)
    assert page_ids == sorted(page_ids)
    assert len(set(page_ids)) == len(page_ids)


def failing_write(cache: LocalPageCache) -> AsyncMock:
    return AsyncMock(side_effect=PersistFailureError(str(cache.path)))


class TestLoadAll:
    """Tests for load_all."""

    @pytest.mark.asyncio
    async def test_loads_and_sorts_remote_pages(self, engine: PageSyncEngine) -> None:
        result = await engine.load_all()

        assert ids(result.pages) == [1, 2]
        assert ids(engine.pages) == [1, 2]
        assert result.mode is SyncMode.REMOTE
        assert result.from_cache is False
        assert not engine.degraded

    @pytest.mark.asyncio
    async def test_persists_snapshot(self, engine: PageSyncEngine) -> None:
        result = await engine.load_all()

        cached = await engine.read_local_cache()

        assert ids(cached) == ids(result.pages)

    @pytest.mark.asyncio
    async def test_cache_survives_store_outage(self, engine, store, cache) -> None:
        """A load followed by an outage yields the same collection from the cache."""
        loaded = await engine.load_all()
        store.online = False

        fresh = PageSyncEngine(store, cache)
        result = await fresh.load_all()

        assert result.degraded
        assert result.from_cache is True
        assert ids(result.pages) == ids(loaded.pages)
        assert [p.text for p in result.pages] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_outage_without_cache_yields_empty(self, engine, store) -> None:
        store.online = False

        result = await engine.load_all()

        assert result.pages == ()
        assert result.degraded
        assert result.from_cache is False
        assert engine.mode is SyncMode.DEGRADED
        assert engine.last_error is not None

    @pytest.mark.parametrize(
        "content",
        ['{"version": 1, "pages": 5}', '{"version": 1, "pages": [], "pendingDeletes": 5}'],
    )
    @pytest.mark.asyncio
    async def test_outage_with_misshapen_cache_yields_empty(
        self, engine, store, cache, content: str
    ) -> None:
        cache.path.parent.mkdir(parents=True, exist_ok=True)
        cache.path.write_text(content, encoding="utf-8")
        store.online = False

        result = await engine.load_all()

        assert result.pages == ()
        assert result.degraded
        assert result.from_cache is False

    @pytest.mark.asyncio
    async def test_successful_load_clears_degraded_mode(self, engine, store) -> None:
        store.online = False
        await engine.load_all()
        store.online = True

        result = await engine.load_all()

        assert result.mode is SyncMode.REMOTE
        assert engine.last_error is None

    @pytest.mark.asyncio
    async def test_mode_change_callback(self, engine, store) -> None:
        changes: list[SyncMode] = []
        engine.on_mode_change = changes.append

        store.online = False
        await engine.load_all()
        await engine.load_all()
        store.online = True
        await engine.load_all()

        assert changes == [SyncMode.DEGRADED, SyncMode.REMOTE]


class TestCreate:
    """Tests for create."""

    @pytest.mark.asyncio
    async def test_remote_create_appends(self, engine, store) -> None:
        await engine.load_all()

        result = await engine.create(text="hello")

        assert result.source is WriteSource.REMOTE
        assert not result.degraded
        assert result.page.id in store.pages
        assert ids(engine.pages)[-1] == result.page.id
        assert result.page.created_at is not None
        assert ids(await engine.read_local_cache()) == ids(engine.pages)

    @pytest.mark.asyncio
    async def test_local_fallback_when_store_down(self, engine, store) -> None:
        await engine.load_all()
        store.online = False

        result = await engine.create(text="offline", image=None)

        assert result.source is WriteSource.LOCAL
        assert result.degraded
        assert result.page.local_only is True
        assert result.page.id > 2
        assert result.page.id not in store.pages
        assert engine.mode is SyncMode.DEGRADED
        cached = await engine.read_local_cache()
        assert ids(cached) == [1, 2, result.page.id]
        assert cached[-1].local_only is True

    @pytest.mark.asyncio
    async def test_local_id_exceeds_existing_even_with_slow_clock(
        self, store_factory, page_factory, cache
    ) -> None:
        store = store_factory([page_factory(5_000), page_factory(9_000)])
        engine = PageSyncEngine(store, cache, clock=lambda: 10)
        await engine.load_all()
        store.online = False

        first = await engine.create()
        second = await engine.create()

        assert first.page.id == 9_001
        assert second.page.id == 9_002

    @pytest.mark.asyncio
    async def test_success_while_degraded_keeps_degraded_mode(self, engine, store) -> None:
        store.online = False
        await engine.load_all()
        store.online = True

        result = await engine.create()

        assert result.source is WriteSource.REMOTE
        assert engine.mode is SyncMode.DEGRADED


class TestUpdate:
    """Tests for update."""

    @pytest.mark.asyncio
    async def test_unknown_id_fails_without_network_call(self, engine, store) -> None:
        await engine.load_all()
        store.calls.clear()

        with pytest.raises(PageNotFoundError):
            await engine.update(999, text="nope")

        assert store.calls == []

    @pytest.mark.asyncio
    async def test_remote_update_replaces_in_place(self, engine, store) -> None:
        await engine.load_all()

        result = await engine.update(1, text="edited")

        assert result.source is WriteSource.REMOTE
        assert result.page.updated_at is not None
        assert ids(engine.pages) == [1, 2]
        assert engine.pages[0].text == "edited"
        assert store.pages[1].text == "edited"
        assert (await engine.read_local_cache())[0].text == "edited"

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, engine) -> None:
        await engine.load_all()
        await engine.update(2, image="data:image/jpeg;base64,AA==")

        result = await engine.update(2, text="caption")

        assert result.page.image == "data:image/jpeg;base64,AA=="
        assert result.page.text == "caption"

    @pytest.mark.asyncio
    async def test_local_fallback_when_store_down(self, engine, store) -> None:
        await engine.load_all()
        store.online = False

        result = await engine.update(2, text="offline edit")

        assert result.source is WriteSource.LOCAL
        assert result.page.pending_sync is True
        assert result.page.updated_at is not None
        assert engine.pages[1].text == "offline edit"
        assert engine.degraded
        assert store.pages[2].text == "second"
        assert (await engine.read_local_cache())[1].text == "offline edit"

    @pytest.mark.asyncio
    async def test_store_not_found_propagates(self, engine, store) -> None:
        await engine.load_all()
        del store.pages[2]

        with pytest.raises(PageNotFoundError):
            await engine.update(2, text="gone")

        assert engine.pages[1].text == "second"
        assert not engine.degraded

    @pytest.mark.asyncio
    async def test_local_only_page_updated_without_store(self, engine, store) -> None:
        await engine.load_all()
        store.online = False
        created = await engine.create()
        store.online = True
        store.calls.clear()

        result = await engine.update(created.page.id, text="still local")

        assert store.calls == []
        assert result.source is WriteSource.LOCAL
        assert result.page.local_only is True

    @pytest.mark.asyncio
    async def test_rejects_non_editable_field(self, engine) -> None:
        await engine.load_all()

        with pytest.raises(ValueError):
            await engine.update(1, id=5)


class TestDelete:
    """Tests for delete."""

    @pytest.mark.asyncio
    async def test_remote_delete(self, engine, store) -> None:
        await engine.load_all()

        result = await engine.delete(1)

        assert result.source is WriteSource.REMOTE
        assert ids(engine.pages) == [2]
        assert 1 not in store.pages
        assert ids(await engine.read_local_cache()) == [2]

    @pytest.mark.asyncio
    async def test_unknown_id(self, engine) -> None:
        await engine.load_all()

        with pytest.raises(PageNotFoundError):
            await engine.delete(999)

    @pytest.mark.asyncio
    async def test_offline_delete_is_remembered(self, engine, store) -> None:
        await engine.load_all()
        store.online = False

        result = await engine.delete(1)

        assert result.source is WriteSource.LOCAL
        assert engine.pending_deletes == {1}
        assert engine.degraded
        assert 1 in store.pages


class TestReconciliation:
    """Tests for pushing degraded-mode changes on the next successful load."""

    @pytest.mark.asyncio
    async def test_pushes_all_pending_changes(self, engine, store, cache) -> None:
        await engine.load_all()
        store.online = False
        await engine.create(text="made offline")
        await engine.update(2, text="edited offline")
        await engine.delete(1)

        store.online = True
        result = await engine.load_all()

        assert result.mode is SyncMode.REMOTE
        assert result.reconciled == 3
        assert 1 not in store.pages
        assert store.pages[2].text == "edited offline"
        assert [p.text for p in engine.pages] == ["edited offline", "made offline"]
        assert all(not p.local_only and not p.pending_sync for p in engine.pages)
        assert engine.pending_deletes == frozenset()
        snapshot = await cache.read()
        assert snapshot.pending_deletes == []
        assert_sorted(engine.pages)

    @pytest.mark.asyncio
    async def test_reconciles_from_cache_after_restart(self, engine, store, cache) -> None:
        await engine.load_all()
        store.online = False
        await engine.create(text="before restart")

        store.online = True
        restarted = PageSyncEngine(store, cache)
        result = await restarted.load_all()

        assert result.reconciled == 1
        assert [p.text for p in store.pages.values()][-1] == "before restart"

    @pytest.mark.asyncio
    async def test_failed_push_stays_pending(self, engine, store) -> None:
        await engine.load_all()
        store.online = False
        created = await engine.create(text="stubborn")

        store.online = True
        store.failing.add("create")
        result = await engine.load_all()

        assert result.mode is SyncMode.DEGRADED
        assert created.page.id in ids(engine.pages)
        assert engine.get(created.page.id).local_only is True

    @pytest.mark.asyncio
    async def test_edit_of_page_deleted_remotely_is_dropped(self, engine, store) -> None:
        await engine.load_all()
        store.online = False
        await engine.update(2, text="orphan edit")
        store.online = True
        del store.pages[2]

        result = await engine.load_all()

        assert ids(result.pages) == [1]
        assert result.mode is SyncMode.REMOTE


class TestFailedSnapshotRecovery:
    """Changes kept only in memory after a failed snapshot write still reach the store."""

    @pytest.mark.asyncio
    async def test_offline_create_pushed_after_failed_snapshot(
        self, engine, store, cache, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await engine.load_all()
        store.online = False
        with monkeypatch.context() as patch:
            patch.setattr(cache, "write", failing_write(cache))
            created = await engine.create(text="written offline")
        assert created.persist_error is not None

        store.online = True
        result = await engine.load_all()

        assert result.mode is SyncMode.REMOTE
        assert texts(result.pages) == ["first", "second", "written offline"]
        assert "written offline" in texts(store.pages.values())
        assert texts(await engine.read_local_cache()) == texts(result.pages)

    @pytest.mark.asyncio
    async def test_offline_edit_pushed_after_failed_snapshot(
        self, engine, store, cache, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await engine.load_all()
        store.online = False
        with monkeypatch.context() as patch:
            patch.setattr(cache, "write", failing_write(cache))
            await engine.update(2, text="edited offline")

        store.online = True
        await engine.load_all()

        assert store.pages[2].text == "edited offline"
        assert engine.get(2).pending_sync is False

    @pytest.mark.asyncio
    async def test_pushed_page_not_created_twice(
        self, engine, store, cache, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await engine.load_all()
        store.online = False
        await engine.create(text="once")
        store.online = True

        with monkeypatch.context() as patch:
            patch.setattr(cache, "write", failing_write(cache))
            first = await engine.load_all()
        assert first.reconciled == 1
        assert first.persist_error is not None

        second = await engine.load_all()

        assert second.reconciled == 0
        assert texts(store.pages.values()).count("once") == 1
        assert texts(engine.pages).count("once") == 1

    @pytest.mark.asyncio
    async def test_offline_reload_keeps_unsaved_changes(
        self, engine, store, cache, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        await engine.load_all()
        store.online = False
        with monkeypatch.context() as patch:
            patch.setattr(cache, "write", failing_write(cache))
            await engine.create(text="unsaved")

        result = await engine.load_all()

        assert result.degraded
        assert "unsaved" in texts(result.pages)
        assert result.persist_error is None
        assert "unsaved" in texts(await engine.read_local_cache())


class TestInvariants:
    """Ordering, persistence and serialization guarantees."""

    @pytest.mark.asyncio
    async def test_sorted_after_every_operation(self, store_factory, page_factory, cache) -> None:
        store = store_factory([page_factory(100), page_factory(200)])
        engine = PageSyncEngine(store, cache, clock=lambda: 1)
        await engine.load_all()

        for step in range(12):
            store.online = step % 3 != 0
            if step % 2 == 0:
                await engine.create(text=f"page {step}")
            else:
                await engine.update(engine.pages[step % len(engine)].id, text=f"edit {step}")
            assert_sorted(engine.pages)
            assert ids(await engine.read_local_cache()) == ids(engine.pages)

    @pytest.mark.asyncio
    async def test_persist_failure_keeps_in_memory_change(
        self, store, tmp_path: Path
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        engine = PageSyncEngine(store, LocalPageCache(blocker / "cache"))

        loaded = await engine.load_all()
        result = await engine.update(1, text="kept")

        assert loaded.persist_error is not None
        assert result.persist_error is not None
        assert engine.last_persist_error is result.persist_error
        assert engine.pages[0].text == "kept"

    @pytest.mark.asyncio
    async def test_concurrent_operations_are_serialized(
        self, store_factory, page_factory, cache
    ) -> None:
        store = store_factory([page_factory(1)], delay=0.01)
        engine = PageSyncEngine(store, cache)
        await engine.load_all()

        results = await asyncio.gather(
            engine.create(text="a"),
            engine.update(1, text="b"),
            engine.create(text="c"),
        )

        assert [r.source for r in results] == [WriteSource.REMOTE] * 3
        assert len(engine) == 3
        assert_sorted(engine.pages)
        assert [p.text for p in engine.pages] == ["b", "a", "c"]
        assert ids(await engine.read_local_cache()) == ids(engine.pages)
