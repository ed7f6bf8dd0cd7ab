"""
Reference page store service.

A single routing-free CRUD endpoint over one page namespace:

    GET     /api/pages          list all pages, sorted by id
    GET     /api/pages?id=N     get one page (404 if missing)
    POST    /api/pages          create a page (201)
    PUT     /api/pages?id=N     merge the body over a page (400 without id, 404 if missing)
    DELETE  /api/pages?id=N     delete a page (400 without id)
    OPTIONS /api/pages          CORS preflight

Any other method answers 405; unexpected failures answer 500.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from aiohttp import web

from ..logging_utils import PageLoggerAdapter
from ..pages.types import format_timestamp, utc_now
from .repository import PageRepository

logger = logging.getLogger(__name__)

REPOSITORY_KEY: web.AppKey[PageRepository] = web.AppKey("repository", PageRepository)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _json(data: Any, status: int = 200) -> web.Response:
    return web.json_response(data, status=status, headers=CORS_HEADERS)


def _error(message: str, status: int) -> web.Response:
    return _json({"error": message}, status=status)


class InvalidBodyError(Exception):
    """Raised when a request body is not a JSON object."""


async def _read_body(request: web.Request) -> dict[str, Any]:
    """Decode a JSON object body; an empty body is an empty object."""
    if not request.can_read_body:
        return {}
    raw = await request.text()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise InvalidBodyError(f"invalid JSON: {e}") from e
    if not isinstance(body, dict):
        raise InvalidBodyError("body must be a JSON object")
    return body


async def handle_pages(request: web.Request) -> web.Response:
    """Dispatch a pages request by method."""
    if request.method == "OPTIONS":
        return web.Response(status=200, headers=CORS_HEADERS)

    repository = request.app[REPOSITORY_KEY]
    log = PageLoggerAdapter(logger, {"method": request.method, "path": request.path})
    page_id = request.query.get("id") or None

    try:
        if request.method == "GET":
            if page_id:
                page = await repository.hget(page_id)
                if page is None:
                    return _error("Page not found", 404)
                return _json(page)
            pages = await repository.hgetall()
            return _json(sorted(pages.values(), key=lambda p: int(p["id"])))

        if request.method == "POST":
            body = await _read_body(request)
            new_id = repository.next_id()
            page = {
                "id": new_id,
                "text": body.get("text") or "",
                "image": body.get("image") or None,
                "createdAt": format_timestamp(utc_now()),
            }
            await repository.hset(str(new_id), page)
            log.info("Created page", extra={"page_id": new_id})
            return _json(page, status=201)

        if request.method == "PUT":
            if not page_id:
                return _error("Page ID required", 400)
            existing = await repository.hget(page_id)
            if existing is None:
                return _error("Page not found", 404)
            body = await _read_body(request)
            updated = {
                **existing,
                **body,
                "id": existing["id"],
                "updatedAt": format_timestamp(utc_now()),
            }
            await repository.hset(page_id, updated)
            log.info("Updated page", extra={"page_id": existing["id"]})
            return _json(updated)

        if request.method == "DELETE":
            if not page_id:
                return _error("Page ID required", 400)
            await repository.hdel(page_id)
            log.info("Deleted page", extra={"page_id": page_id})
            return _json({"message": "Page deleted"})

        return _error("Method not allowed", 405)

    except InvalidBodyError as e:
        return _error(f"Invalid request body: {e}", 400)
    except Exception:
        log.exception("Page store request failed")
        return _error("Internal server error", 500)


def create_app(repository: PageRepository | None = None) -> web.Application:
    """Build the page store application.

    The endpoint is served at both /api/pages and /pages.
    """
    app = web.Application()
    app[REPOSITORY_KEY] = repository or PageRepository()
    for path in ("/api/pages", "/pages"):
        app.router.add_route("*", path, handle_pages)
    return app
