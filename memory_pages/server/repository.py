"""
Page repository for the reference page store.

Keeps one collection namespace as a hash of ``{str(id): page}``, the shape
the hosted key-value store uses, optionally persisted to a JSON file.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..file_ops import read_json, write_json_atomic
from ..pages import now_ms

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "birthday_pages"


class PageRepository:
    """Hash-per-namespace page storage.

    Ids are millisecond timestamps, bumped past the last assigned id so two
    pages created within the same millisecond still sort in creation order.
    """

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        data_file: Path | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the repository.

        Args:
            namespace: Name of the page hash
            data_file: Optional JSON file the hash is persisted to
            clock: Millisecond clock used for new ids
        """
        self.namespace = namespace
        self.data_file = data_file
        self._clock = clock
        self._pages: dict[str, dict[str, Any]] = {}
        self._last_id = 0

    async def load(self) -> None:
        """Load the namespace from the data file, if any."""
        if self.data_file is None:
            return
        data = await read_json(self.data_file)
        if not data:
            return
        self._pages = dict(data.get(self.namespace) or {})
        self._last_id = max((int(key) for key in self._pages), default=0)
        logger.info(f"Loaded {len(self._pages)} pages from {self.data_file}")

    def next_id(self) -> int:
        self._last_id = max(self._clock(), self._last_id + 1)
        return self._last_id

    async def hgetall(self) -> dict[str, dict[str, Any]]:
        return dict(self._pages)

    async def hget(self, page_id: str) -> dict[str, Any] | None:
        return self._pages.get(page_id)

    async def hset(self, page_id: str, page: dict[str, Any]) -> None:
        self._pages[page_id] = page
        await self._save()

    async def hdel(self, page_id: str) -> bool:
        removed = self._pages.pop(page_id, None) is not None
        if removed:
            await self._save()
        return removed

    async def _save(self) -> None:
        if self.data_file is not None:
            await write_json_atomic(self.data_file, {self.namespace: self._pages})
