"""
HTTP page store client.

Talks to the page store's single CRUD endpoint ``{base_url}/pages`` using
aiohttp. Single-page operations pass the id as the ``id`` query parameter.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from ..exceptions import MalformedResponseError, PageNotFoundError, RemoteUnavailableError
from ..pages import Page
from ..pages.types import format_timestamp, utc_now
from .base import PageStoreService

logger = logging.getLogger(__name__)


class HttpPageStore(PageStoreService):
    """Page store client over HTTP.

    The aiohttp session is created lazily on first use and reused until
    ``close``. Every request carries a total timeout so a hung store
    resolves to RemoteUnavailableError instead of blocking the caller.

    Example:
        >>> async with HttpPageStore("http://localhost:3001") as store:
        ...     pages = await store.list_pages()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Store base URL; pages live under {base_url}/pages
            timeout: Total seconds allowed per request
            session: Optional shared aiohttp session (not closed by this client)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def pages_url(self) -> str:
        return f"{self.base_url}/pages"

    async def __aenter__(self) -> HttpPageStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        operation: str,
        page_id: int | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            PageNotFoundError: On HTTP 404 for a single-page request
            RemoteUnavailableError: On connection errors, timeouts and other non-2xx
            MalformedResponseError: When a 2xx body is not JSON
        """
        params = {"id": str(page_id)} if page_id is not None else None
        session = self._get_session()
        try:
            async with session.request(
                method, self.pages_url, params=params, json=body, timeout=self.timeout
            ) as response:
                if response.status == 404 and page_id is not None:
                    raise PageNotFoundError(page_id)
                if response.status >= 400:
                    detail = await response.text()
                    logger.warning(
                        f"Page store {operation} failed with HTTP {response.status}: {detail[:200]}"
                    )
                    raise RemoteUnavailableError(operation, status=response.status)
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise MalformedResponseError(operation, f"invalid JSON: {e}") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Page store {operation} failed: {e!r}")
            raise RemoteUnavailableError(operation, cause=e) from e

    async def list_pages(self) -> list[Page]:
        data = await self._request("GET", "list")
        if not isinstance(data, list):
            raise MalformedResponseError("list", f"expected an array, got {type(data).__name__}")
        return [self._parse_page(item, "list") for item in data]

    async def get_page(self, page_id: int) -> Page:
        data = await self._request("GET", "get", page_id=page_id)
        return self._parse_page(data, "get")

    async def create_page(self, fields: dict[str, Any]) -> Page:
        body = {**fields, "createdAt": format_timestamp(utc_now())}
        data = await self._request("POST", "create", body=body)
        return self._parse_page(data, "create")

    async def update_page(self, page_id: int, fields: dict[str, Any]) -> Page:
        body = {**fields, "updatedAt": format_timestamp(utc_now())}
        data = await self._request("PUT", "update", page_id=page_id, body=body)
        page = self._parse_page(data, "update")
        if page.id != page_id:
            raise MalformedResponseError("update", f"expected page {page_id}, got {page.id}")
        return page

    async def delete_page(self, page_id: int) -> None:
        await self._request("DELETE", "delete", page_id=page_id)

    @staticmethod
    def _parse_page(data: Any, operation: str) -> Page:
        # Sync flags are local bookkeeping and never come from the store.
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if k not in ("localOnly", "pendingSync")}
        try:
            return Page.from_dict(data)
        except ValueError as e:
            raise MalformedResponseError(operation, str(e)) from e
