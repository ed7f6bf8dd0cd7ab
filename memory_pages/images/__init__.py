"""
Image ingestion.

Validates untrusted uploads by declared type, size and magic bytes, then
compresses them into an inline JPEG data URI.
"""

from .ingest import (
    EncodedImage,
    ImageIngestor,
    IngestResult,
    decode_data_uri,
    encode_data_uri,
    ingest,
)
from .signatures import SIGNATURES, SUPPORTED_MIME_TYPES, sniff_format

__all__ = [
    "EncodedImage",
    "ImageIngestor",
    "IngestResult",
    "SIGNATURES",
    "SUPPORTED_MIME_TYPES",
    "decode_data_uri",
    "encode_data_uri",
    "ingest",
    "sniff_format",
]
