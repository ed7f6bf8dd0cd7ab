"""
Structured JSON logging for the page store service.

The reference server runs as a small standalone process; with
``--json-logs`` every record is written to stdout as one JSON line carrying
the request context (method, path, page id) next to the message.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import datetime, timezone
from typing import Any, TextIO

# Attributes every LogRecord has; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "taskName"}

# Context fields written right after the message, in this order.
_CONTEXT_FIELDS = ("method", "path", "page_id", "status")


class StructuredJsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Fields: ``timestamp`` (record time, ISO 8601 UTC), ``level``, ``logger``,
    ``message``, then the request context fields when present, then any other
    ``extra`` values. Values that are not JSON serializable are stringified.
    """

    def __init__(self, service: str | None = None) -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.service:
            entry["service"] = self.service

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        for key in _CONTEXT_FIELDS:
            if key in extras:
                entry[key] = _jsonable(extras.pop(key))
        for key, value in extras.items():
            entry[key] = _jsonable(value)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def configure_structured_logging(
    level: int = logging.INFO,
    logger_name: str | None = None,
    stream: TextIO | None = None,
    service: str | None = "memory-pages",
) -> logging.Logger:
    """
    Route a logger's records through StructuredJsonFormatter.

    Args:
        level: Logging level (default: INFO)
        logger_name: Logger to configure (default: root logger)
        stream: Output stream (default: stdout)
        service: Value of the ``service`` field, None to omit it

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    # Replace rather than stack handlers when called twice.
    logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(StructuredJsonFormatter(service))
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger


class PageLoggerAdapter(logging.LoggerAdapter):
    """Attaches fixed request context to every record.

    Per-call ``extra`` values are merged over the adapter's context.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **(kwargs.get("extra") or {})}
        return msg, kwargs
