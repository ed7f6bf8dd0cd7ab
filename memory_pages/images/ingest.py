"""
Image ingestion pipeline.

Turns an untrusted upload into a size-bounded JPEG data URI that can be
stored inline in a page record. Every stage is a hard gate:

1. declared MIME type is a supported image type
2. declared size is within the inline storage bound
3. leading bytes carry a known image signature
4. the image decodes, is scaled to the maximum width and re-encoded as JPEG
5. the JPEG is wrapped in a base64 data URI

Rejections are returned as values inside an IngestResult; ``ingest``
never raises for bad input.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path

import aiofiles
from PIL import Image, ImageOps

from ..config import IMAGE_QUALITY, MAX_IMAGE_BYTES, MAX_IMAGE_WIDTH, PagesConfig
from ..exceptions import (
    CompressionFailedError,
    ImageIngestError,
    MemoryPagesError,
    SignatureMismatchError,
    TooLargeError,
    UnsupportedTypeError,
)
from .signatures import SUPPORTED_MIME_TYPES, header_hex, sniff_format

logger = logging.getLogger(__name__)

OUTPUT_MIME_TYPE = "image/jpeg"
_DATA_URI_PREFIX = "data:"
_BASE64_MARKER = ";base64,"


@dataclass(frozen=True)
class EncodedImage:
    """An image ready to be stored in ``Page.image``.

    Attributes:
        data_uri: ``data:image/jpeg;base64,...`` payload
        mime_type: MIME type carried by the data URI
        width: Width in pixels after scaling
        height: Height in pixels after scaling
        source_format: Format detected from the upload's signature
        byte_size: Size of the encoded (pre-base64) image
    """

    data_uri: str
    mime_type: str
    width: int
    height: int
    source_format: str
    byte_size: int

    def __str__(self) -> str:
        return self.data_uri


@dataclass(frozen=True)
class IngestResult:
    """Outcome of an ingest: exactly one of ``image`` or ``error`` is set."""

    image: EncodedImage | None = None
    error: ImageIngestError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> EncodedImage:
        """Return the image or raise the rejection."""
        if self.error is not None:
            raise self.error
        if self.image is None:
            raise MemoryPagesError("Ingest result holds neither an image nor an error")
        return self.image


class ImageIngestor:
    """Validates and compresses uploaded images.

    Example:
        >>> ingestor = ImageIngestor()
        >>> result = ingestor.ingest(data, "image/png")
        >>> if result.ok:
        ...     await engine.update(page.id, image=result.image.data_uri)
        ... else:
        ...     show_inline_error(result.error.message)
    """

    def __init__(
        self,
        max_bytes: int = MAX_IMAGE_BYTES,
        max_width: int = MAX_IMAGE_WIDTH,
        quality: int = IMAGE_QUALITY,
    ) -> None:
        """Initialize the ingestor.

        Args:
            max_bytes: Largest accepted upload, inclusive
            max_width: Images wider than this are scaled down
            quality: JPEG quality of the re-encoded image (1-95)
        """
        self.max_bytes = max_bytes
        self.max_width = max_width
        self.quality = quality

    @classmethod
    def from_config(cls, config: PagesConfig) -> ImageIngestor:
        return cls(
            max_bytes=config.max_image_bytes,
            max_width=config.max_image_width,
            quality=config.image_quality,
        )

    def ingest(
        self,
        file_bytes: bytes,
        declared_mime_type: str,
        file_size_bytes: int | None = None,
    ) -> IngestResult:
        """Run the full pipeline over an upload.

        Args:
            file_bytes: Raw upload contents
            declared_mime_type: MIME type claimed by the client
            file_size_bytes: Size claimed by the client, defaults to len(file_bytes)

        Returns:
            IngestResult with the encoded image or the first rejection
        """
        size = len(file_bytes) if file_size_bytes is None else file_size_bytes
        try:
            self._check_declared_type(declared_mime_type)
            self._check_size(size)
            source_format = self._check_signature(file_bytes)
            jpeg, width, height = self._compress(file_bytes)
        except ImageIngestError as e:
            logger.info(f"Rejected image upload ({e.kind.value}): {e.details}")
            return IngestResult(error=e)

        image = EncodedImage(
            data_uri=encode_data_uri(jpeg, OUTPUT_MIME_TYPE),
            mime_type=OUTPUT_MIME_TYPE,
            width=width,
            height=height,
            source_format=source_format,
            byte_size=len(jpeg),
        )
        logger.debug(
            f"Ingested {source_format} upload: {size} bytes -> "
            f"{image.byte_size} bytes at {width}x{height}"
        )
        return IngestResult(image=image)

    async def ingest_file(self, path: Path, declared_mime_type: str) -> IngestResult:
        """Read an upload from disk and ingest it off the event loop.

        A file that cannot be read is reported as a compression failure.
        """
        try:
            async with aiofiles.open(path, "rb") as f:
                data = await f.read()
        except OSError as e:
            return IngestResult(error=CompressionFailedError("unreadable upload", e))
        return await asyncio.to_thread(self.ingest, data, declared_mime_type, len(data))

    def _check_declared_type(self, declared_mime_type: str) -> None:
        normalized = (declared_mime_type or "").strip().lower()
        if normalized not in SUPPORTED_MIME_TYPES:
            raise UnsupportedTypeError(declared_mime_type)

    def _check_size(self, size: int) -> None:
        if size > self.max_bytes:
            raise TooLargeError(size, self.max_bytes)

    def _check_signature(self, file_bytes: bytes) -> str:
        source_format = sniff_format(file_bytes)
        if source_format is None:
            raise SignatureMismatchError(header_hex(file_bytes))
        return source_format

    def _compress(self, file_bytes: bytes) -> tuple[bytes, int, int]:
        """Decode, scale down to max_width and re-encode as JPEG."""
        try:
            with Image.open(io.BytesIO(file_bytes)) as source:
                # Animated images keep their first frame.
                source.seek(0)
                image = ImageOps.exif_transpose(source)
                image = _flatten(image)

                if image.width > self.max_width:
                    height = max(1, round(image.height * self.max_width / image.width))
                    image = image.resize((self.max_width, height), Image.LANCZOS)

                buffer = io.BytesIO()
                image.save(buffer, "JPEG", quality=self.quality, optimize=True)
                return buffer.getvalue(), image.width, image.height
        except Exception as e:
            raise CompressionFailedError("could not decode or re-encode image", e) from e


def _flatten(image: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any transparency onto white."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def encode_data_uri(data: bytes, mime_type: str) -> str:
    """Wrap bytes in a base64 data URI."""
    return f"{_DATA_URI_PREFIX}{mime_type}{_BASE64_MARKER}{base64.b64encode(data).decode('ascii')}"


def decode_data_uri(data_uri: str) -> tuple[bytes, str]:
    """Split a base64 data URI into its bytes and MIME type.

    Raises ValueError on malformed input.
    """
    if not data_uri.startswith(_DATA_URI_PREFIX) or _BASE64_MARKER not in data_uri:
        raise ValueError("Not a base64 data URI")
    header, payload = data_uri[len(_DATA_URI_PREFIX):].split(_BASE64_MARKER, 1)
    try:
        return base64.b64decode(payload, validate=True), header
    except binascii.Error as e:
        raise ValueError(f"Malformed base64 payload: {e}") from None


_default_ingestor = ImageIngestor()


def ingest(
    file_bytes: bytes,
    declared_mime_type: str,
    file_size_bytes: int | None = None,
) -> IngestResult:
    """Ingest an upload with the default limits (2 MiB, 800 px, quality 80)."""
    return _default_ingestor.ingest(file_bytes, declared_mime_type, file_size_bytes)
