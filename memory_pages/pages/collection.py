"""
Ordered page collection.

Holds pages sorted by id ascending with exactly one page per id. The sync
engine is the only writer; everyone else reads through tuples.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable, Iterator

from ..exceptions import PageNotFoundError
from .types import Page


class PageCollection:
    """Pages kept sorted by id with one entry per id."""

    def __init__(self, pages: Iterable[Page] = ()) -> None:
        self._pages: list[Page] = []
        self.replace_all(pages)

    def replace_all(self, pages: Iterable[Page]) -> None:
        """Replace the contents; later duplicates of an id win."""
        by_id = {page.id: page for page in pages}
        self._pages = sorted(by_id.values(), key=lambda p: p.id)

    def upsert(self, page: Page) -> int:
        """Insert or replace ``page`` at its sorted position, returning the index."""
        index = self._position(page.id)
        if index < len(self._pages) and self._pages[index].id == page.id:
            self._pages[index] = page
        else:
            self._pages.insert(index, page)
        return index

    def remove(self, page_id: int) -> Page:
        index = self.index_of(page_id)
        return self._pages.pop(index)

    def get(self, page_id: int) -> Page | None:
        index = self._position(page_id)
        if index < len(self._pages) and self._pages[index].id == page_id:
            return self._pages[index]
        return None

    def index_of(self, page_id: int) -> int:
        """Position of ``page_id``; raises PageNotFoundError when absent."""
        index = self._position(page_id)
        if index < len(self._pages) and self._pages[index].id == page_id:
            return index
        raise PageNotFoundError(page_id)

    def max_id(self) -> int | None:
        return self._pages[-1].id if self._pages else None

    def snapshot(self) -> tuple[Page, ...]:
        return tuple(self._pages)

    def _position(self, page_id: int) -> int:
        return bisect.bisect_left([p.id for p in self._pages], page_id)

    def __len__(self) -> int:
        return len(self._pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(tuple(self._pages))

    def __getitem__(self, index: int) -> Page:
        return self._pages[index]

    def __contains__(self, page_id: object) -> bool:
        return isinstance(page_id, int) and self.get(page_id) is not None

    def __repr__(self) -> str:
        return f"PageCollection(ids={[p.id for p in self._pages]})"
