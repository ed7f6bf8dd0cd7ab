"""Magic-byte sniffing for the supported upload formats."""

from __future__ import annotations

SIGNATURE_LENGTH = 4

# Lower-case hex of the first four bytes, prefix matched.
SIGNATURES: dict[str, tuple[str, ...]] = {
    "jpeg": ("ffd8ffe0", "ffd8ffe1", "ffd8ffe2", "ffd8ffe3", "ffd8ffe8"),
    "png": ("89504e47",),
    "gif": ("47494638",),
    "webp": ("52494646",),
}

SUPPORTED_MIME_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}
)


def header_hex(data: bytes) -> str:
    """Lower-case hex of the leading signature bytes."""
    return bytes(data[:SIGNATURE_LENGTH]).hex()


def sniff_format(data: bytes) -> str | None:
    """Identify the image format from its leading bytes.

    Returns "jpeg", "png", "gif" or "webp", or None if nothing matches
    (including empty or truncated input).
    """
    header = header_hex(data)
    if not header:
        return None
    for image_format, prefixes in SIGNATURES.items():
        if any(header.startswith(prefix) for prefix in prefixes):
            return image_format
    return None
