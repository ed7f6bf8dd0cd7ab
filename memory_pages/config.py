"""
Configuration for memory pages.

Configuration can be provided directly, via environment variables or via
a YAML settings file:

```yaml
memory_pages:
  api_base_url: "https://example.vercel.app/api"
  request_timeout: 5
  cache_dir: "~/.memory-pages"
  cache_key: "birthdayPages"
  max_image_bytes: 2097152
  max_image_width: 800
  image_quality: 80
```
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:3001"
DEFAULT_CACHE_KEY = "birthdayPages"
DEFAULT_SETTINGS_PATH = Path.home() / ".memory-pages" / "settings.yaml"

# Encoded images are stored inline in the page record.
MAX_IMAGE_BYTES = 2 * 1024 * 1024
MAX_IMAGE_WIDTH = 800
IMAGE_QUALITY = 80

WELCOME_TEXT = (
    "Welcome to your birthday surprise! \U0001f495\n\n"
    "This is where your special messages will appear...\n\n"
    "Use arrow keys to navigate through all the love I have for you! \U0001f382"
)


@dataclass
class PagesConfig:
    """Configuration for a memory pages session.

    Environment Variables:
        MEMORY_PAGES_API_URL: Base URL of the page store (default: http://localhost:3001)
        MEMORY_PAGES_REQUEST_TIMEOUT: Seconds before a store request is abandoned
        MEMORY_PAGES_CACHE_DIR: Directory holding the local cache snapshot
        MEMORY_PAGES_CACHE_KEY: Name of the cache slot (default: birthdayPages)

    Attributes:
        api_base_url: Base URL of the page store; pages live under {api_base_url}/pages
        request_timeout: Total timeout per store request, in seconds
        cache_dir: Directory for the local cache (defaults to ~/.memory-pages)
        cache_key: Name of the single cache slot
        max_image_bytes: Largest accepted upload
        max_image_width: Uploads are scaled down to this width
        image_quality: JPEG quality for re-encoded uploads (1-95)
        welcome_text: Text of the first page of a new session
    """

    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 10.0
    cache_dir: str | None = None
    cache_key: str = DEFAULT_CACHE_KEY
    max_image_bytes: int = MAX_IMAGE_BYTES
    max_image_width: int = MAX_IMAGE_WIDTH
    image_quality: int = IMAGE_QUALITY
    welcome_text: str = WELCOME_TEXT

    @property
    def cache_path(self) -> Path:
        """Directory holding the cache slot."""
        if self.cache_dir:
            return Path(self.cache_dir).expanduser()
        return Path.home() / ".memory-pages"

    @classmethod
    def from_environment(cls) -> PagesConfig:
        """Create configuration from environment variables."""
        timeout_str = os.environ.get("MEMORY_PAGES_REQUEST_TIMEOUT")
        try:
            timeout = float(timeout_str) if timeout_str else 10.0
        except ValueError:
            logger.warning(f"Ignoring invalid MEMORY_PAGES_REQUEST_TIMEOUT: {timeout_str!r}")
            timeout = 10.0

        return cls(
            api_base_url=os.environ.get("MEMORY_PAGES_API_URL", DEFAULT_API_BASE_URL),
            request_timeout=timeout,
            cache_dir=os.environ.get("MEMORY_PAGES_CACHE_DIR"),
            cache_key=os.environ.get("MEMORY_PAGES_CACHE_KEY", DEFAULT_CACHE_KEY),
        )

    @classmethod
    def from_file(cls, path: Path | None = None) -> PagesConfig:
        """Create configuration from the ``memory_pages`` section of a YAML file.

        A missing file or section yields the defaults. Unknown keys are ignored.

        Args:
            path: Settings file. Defaults to ~/.memory-pages/settings.yaml
        """
        settings_path = path or DEFAULT_SETTINGS_PATH
        if not settings_path.exists():
            return cls()

        with open(settings_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        section: dict[str, Any] = data.get("memory_pages") or {}
        known = {f.name for f in fields(cls)}
        unknown = set(section) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings in {settings_path}: {sorted(unknown)}")

        return cls(**{key: value for key, value in section.items() if key in known})
