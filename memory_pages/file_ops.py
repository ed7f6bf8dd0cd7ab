"""
On-disk JSON documents for the page cache and the reference server.

Documents are replaced wholesale: the new content goes to a temporary file
in the same directory, is fsynced, then renamed over the old one, so a
reader sees either the previous document or the new one.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from .exceptions import PersistFailureError


async def read_json(path: Path) -> Any | None:
    """Load a JSON document.

    Returns:
        The decoded document, or None when the file is absent or blank

    Raises:
        OSError: If the file exists but cannot be read
        ValueError: If the content is not JSON
    """
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            content = await f.read()
    except FileNotFoundError:
        return None
    if not content.strip():
        return None
    return json.loads(content)


async def write_json_atomic(path: Path, data: Any) -> None:
    """Replace the document at ``path`` with ``data``.

    The parent directory is created when missing. A failed write leaves the
    previous document in place and no temporary file behind.

    Raises:
        PersistFailureError: If the document cannot be written
    """
    try:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
    except OSError as e:
        raise PersistFailureError(str(path), e) from e

    os.close(fd)
    try:
        payload = json.dumps(data, ensure_ascii=False)
        async with aiofiles.open(tmp_name, "w", encoding="utf-8") as f:
            await f.write(payload)
            await f.flush()
            os.fsync(f.fileno())
        await aiofiles.os.replace(tmp_name, path)
    except (OSError, TypeError, ValueError) as e:
        try:
            await aiofiles.os.remove(tmp_name)
        except OSError:
            pass
        raise PersistFailureError(str(path), e) from e


async def remove_file(path: Path) -> bool:
    """Delete the document at ``path``.

    Returns:
        False if there was nothing to delete

    Raises:
        PersistFailureError: If the file exists but cannot be deleted
    """
    try:
        await aiofiles.os.remove(path)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise PersistFailureError(str(path), e) from e
    return True
