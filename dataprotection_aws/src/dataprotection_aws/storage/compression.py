
from __future__ import annotations

import gzip
import io
from typing import BinaryIO, Final

CONTENT_ENCODING_GZIP: Final[str] = "gzip"


def is_gzip_encoded(content_encoding: str | None) -> bool:
    """Whether a stored object declares itself gzip-compressed.

    Reads are driven by this marker rather than the current compression setting,
    so objects written before the setting changed stay readable.
    """
    return content_encoding == CONTENT_ENCODING_GZIP


def compress(data: bytes) -> bytes:
    buffer = io.BytesIO()
    with gzip.GzipFile(fileobj=buffer, mode="wb") as sink:
        sink.write(data)
    return buffer.getvalue()


def decompress(data: bytes) -> bytes:
    return gzip.decompress(data)


def open_decompressed(stream: BinaryIO) -> BinaryIO:
    """Wrap a raw response stream in a streaming gzip reader"""
    return gzip.GzipFile(fileobj=stream, mode="rb")  # type: ignore[return-value]


__all__ = ["CONTENT_ENCODING_GZIP", "compress", "decompress", "is_gzip_encoded", "open_decompressed"]
