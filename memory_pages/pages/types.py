"""
Page record and its wire format.

The page store speaks camelCase JSON (``id``, ``text``, ``image``,
``createdAt``, ``updatedAt``). The local cache stores the same shape plus
the two sync flags, which are never sent to the store.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

# Fields a caller may change on an existing page.
EDITABLE_FIELDS = frozenset({"text", "image"})


def now_ms() -> int:
    """Milliseconds since the epoch, the store's id clock."""
    return time.time_ns() // 1_000_000


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp, accepting the trailing ``Z`` form.

    Raises ValueError on malformed input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Malformed timestamp: {value!r}")
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_page_id(value: Any) -> int:
    """Coerce a page id from the wire (number or numeric string).

    Raises ValueError on malformed input.
    """
    if isinstance(value, bool):
        raise ValueError(f"Malformed page id: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValueError(f"Malformed page id: {value!r}")


@dataclass(frozen=True)
class Page:
    """One slide of the slideshow.

    Pages are immutable values; the sync engine replaces a record with a
    new Page on every mutation.

    Attributes:
        id: Store-assigned id (ms timestamp), sorts by creation order
        text: User-authored message, possibly empty
        image: Embeddable data-URI image or None
        created_at: When the page was created
        updated_at: When the page was last changed, None until first update
        local_only: Created while the store was unreachable, unknown to the store
        pending_sync: Carries local changes the store has not acknowledged
    """

    id: int
    text: str = ""
    image: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    local_only: bool = False
    pending_sync: bool = False

    def merge(self, fields: dict[str, Any], updated_at: datetime | None = None) -> Page:
        """Return a copy with ``fields`` applied over this page.

        Raises ValueError for fields that are not editable.
        """
        unknown = set(fields) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update page fields: {sorted(unknown)}")
        return replace(self, **fields, updated_at=updated_at or self.updated_at)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the page store wire format."""
        data: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "image": self.image,
            "createdAt": format_timestamp(self.created_at),
        }
        if self.updated_at is not None:
            data["updatedAt"] = format_timestamp(self.updated_at)
        return data

    def to_cache_dict(self) -> dict[str, Any]:
        """Serialize for the local cache snapshot, sync flags included."""
        data = self.to_dict()
        data["localOnly"] = self.local_only
        data["pendingSync"] = self.pending_sync
        return data

    @classmethod
    def from_dict(cls, data: Any) -> Page:
        """Create from the wire or cache format.

        Raises ValueError if ``data`` does not have the shape of a page.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a page object, got {type(data).__name__}")
        if "id" not in data:
            raise ValueError("Page object has no id")

        text = data.get("text") or ""
        image = data.get("image") or None
        if not isinstance(text, str):
            raise ValueError(f"Page text must be a string, got {type(text).__name__}")
        if image is not None and not isinstance(image, str):
            raise ValueError(f"Page image must be a string, got {type(image).__name__}")
        local_only = data.get("localOnly") or False
        pending_sync = data.get("pendingSync") or False
        if not isinstance(local_only, bool) or not isinstance(pending_sync, bool):
            raise ValueError("Page sync flags must be booleans")

        return cls(
            id=parse_page_id(data["id"]),
            text=text,
            image=image,
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
            local_only=local_only,
            pending_sync=pending_sync,
        )
