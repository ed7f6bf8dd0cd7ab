"""
Durable local page cache.

A single string-keyed slot holding the full page collection as one JSON
document at ``{directory}/{key}.json``. Every write replaces the whole
snapshot atomically, so a reader never sees a partial snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from ..file_ops import read_json, remove_file, write_json_atomic
from ..pages import Page
from ..pages.types import format_timestamp, parse_page_id, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


@dataclass
class CacheSnapshot:
    """Contents of the cache slot.

    Attributes:
        pages: Pages in collection order
        pending_deletes: Ids deleted locally but not yet on the store
        saved_at: When the snapshot was written
    """

    pages: list[Page] = field(default_factory=list)
    pending_deletes: list[int] = field(default_factory=list)
    saved_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "savedAt": format_timestamp(self.saved_at or utc_now()),
            "pages": [page.to_cache_dict() for page in self.pages],
            "pendingDeletes": list(self.pending_deletes),
        }

    @classmethod
    def from_dict(cls, data: Any) -> CacheSnapshot:
        """Create from the stored document.

        A bare list of pages (the browser-era format) is accepted as well.
        Raises ValueError on malformed input.
        """
        if isinstance(data, list):
            return cls(pages=[Page.from_dict(item) for item in data])
        if not isinstance(data, dict):
            raise ValueError(f"Expected a snapshot object, got {type(data).__name__}")
        version = data.get("version", SNAPSHOT_VERSION)
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {version}")
        pages = data.get("pages") or []
        pending_deletes = data.get("pendingDeletes") or []
        if not isinstance(pages, list):
            raise ValueError(f"Snapshot pages must be a list, got {type(pages).__name__}")
        if not isinstance(pending_deletes, list):
            raise ValueError(
                f"Snapshot pendingDeletes must be a list, got {type(pending_deletes).__name__}"
            )
        return cls(
            pages=[Page.from_dict(item) for item in pages],
            pending_deletes=[parse_page_id(v) for v in pending_deletes],
            saved_at=parse_timestamp(data.get("savedAt")),
        )


class LocalPageCache:
    """File-backed single-slot cache for the page collection."""

    def __init__(self, directory: Path, key: str = "birthdayPages") -> None:
        """Initialize the cache.

        Args:
            directory: Directory holding the slot file
            key: Slot name; the file is {directory}/{key}.json
        """
        self.directory = Path(directory)
        self.key = key

    @property
    def path(self) -> Path:
        return self.directory / f"{self.key}.json"

    async def write(self, snapshot: CacheSnapshot) -> None:
        """Overwrite the slot with ``snapshot``.

        Raises:
            PersistFailureError: If the snapshot cannot be written
        """
        await write_json_atomic(self.path, snapshot.to_dict())
        logger.debug(f"Wrote {len(snapshot.pages)} pages to {self.path}")

    async def read(self) -> CacheSnapshot | None:
        """Read the slot.

        Returns:
            The stored snapshot, or None if the slot is empty, unreadable or corrupt
        """
        try:
            data = await read_json(self.path)
        except OSError as e:
            logger.warning(f"Could not read page cache {self.path}: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Ignoring corrupt page cache {self.path}: {e}")
            return None

        if data is None:
            return None

        try:
            return CacheSnapshot.from_dict(data)
        except ValueError as e:
            logger.warning(f"Ignoring corrupt page cache {self.path}: {e}")
            return None

    async def clear(self) -> None:
        await remove_file(self.path)
