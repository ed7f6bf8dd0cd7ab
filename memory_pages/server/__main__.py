"""Run the reference page store.

Usage:
    python -m memory_pages.server --port 3001 --data-file pages.json
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from aiohttp import web

from ..logging_utils import configure_structured_logging
from .app import create_app
from .repository import DEFAULT_NAMESPACE, PageRepository


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m memory_pages.server",
        description="Serve the memory pages CRUD endpoint",
    )
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind")
    parser.add_argument("--port", type=int, default=3001, help="Port to listen on")
    parser.add_argument(
        "--data-file",
        type=Path,
        default=None,
        help="JSON file to persist pages to (in-memory only if omitted)",
    )
    parser.add_argument("--namespace", default=DEFAULT_NAMESPACE, help="Page collection name")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit structured JSON logs on stdout"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    level = getattr(logging, args.log_level)
    if args.json_logs:
        configure_structured_logging(level)
    else:
        logging.basicConfig(level=level, format="%(levelname)s  %(name)s  %(message)s")

    repository = PageRepository(namespace=args.namespace, data_file=args.data_file)

    async def load_repository(app: web.Application) -> None:
        await repository.load()

    app = create_app(repository)
    app.on_startup.append(load_repository)
    web.run_app(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
