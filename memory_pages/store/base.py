"""
Abstract page store interface.

Defines the CRUD contract of the remote page store. Implementations raise
PageNotFoundError for unknown ids and RemoteUnavailableError (or its
MalformedResponseError subclass) for every other failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..pages import Page


class PageStoreService(ABC):
    """Abstract interface for the remote page store."""

    @abstractmethod
    async def list_pages(self) -> list[Page]:
        """List every page in the collection namespace, in any order.

        Raises:
            RemoteUnavailableError: If the store cannot be reached
        """
        ...

    @abstractmethod
    async def get_page(self, page_id: int) -> Page:
        """Get a single page.

        Raises:
            PageNotFoundError: If the page does not exist
            RemoteUnavailableError: If the store cannot be reached
        """
        ...

    @abstractmethod
    async def create_page(self, fields: dict[str, Any]) -> Page:
        """Create a page; the store assigns ``id`` and ``createdAt``.

        Args:
            fields: Partial page (``text``, ``image``)

        Returns:
            The full stored page
        """
        ...

    @abstractmethod
    async def update_page(self, page_id: int, fields: dict[str, Any]) -> Page:
        """Merge ``fields`` over an existing page.

        Returns:
            The full merged page with ``updatedAt`` set

        Raises:
            PageNotFoundError: If the page does not exist
            RemoteUnavailableError: If the store cannot be reached
        """
        ...

    @abstractmethod
    async def delete_page(self, page_id: int) -> None:
        """Delete a page.

        Raises:
            RemoteUnavailableError: If the store cannot be reached
        """
        ...

    async def close(self) -> None:
        """Release any held connections."""
        return None
