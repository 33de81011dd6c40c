# MD5 bookkeeping for stored key documents.
from __future__ import annotations

import base64
import hashlib
import io
from dataclasses import dataclass
from typing import Any, BinaryIO, Final, Mapping, Optional

from ..core.exceptions import CorruptionError
from ..utils.errors import constant_time_compare

FRIENDLY_NAME_METADATA: Final[str] = "xml-friendly-name"
MD5_METADATA: Final[str] = "md5-hash"

# Quoted hex MD5 of a single-part upload, e.g. "\"9e107d9d372bb6826bd81d3542a419d6\""
_SINGLE_PART_ETAG_LENGTH: Final[int] = 34
_MULTIPART_SEPARATOR: Final[str] = "-"
_KMS_ENCRYPTION: Final[frozenset[str]] = frozenset({"aws:kms", "aws:kms:dsse"})

# RFC 2047 encoded-word; S3 user metadata only carries printable ASCII
_ENCODED_WORD_PREFIX: Final[str] = "=?UTF-8?B?"
_ENCODED_WORD_SUFFIX: Final[str] = "?="


@dataclass(frozen=True, slots=True)
class ContentDigest:
    raw: bytes

    @classmethod
    def of(cls, data: bytes) -> "ContentDigest":
        return cls(hashlib.md5(data, usedforsecurity=False).digest())

    @property
    def hex(self) -> str:
        return self.raw.hex()

    @property
    def base64(self) -> str:
        return base64.b64encode(self.raw).decode("ascii")


class HashingReader(io.RawIOBase):
    """Read-only pass-through that MD5-hashes every byte handed to the caller"""

    def __init__(self, source: BinaryIO) -> None:
        super().__init__()
        self._source = source
        self._md5 = hashlib.md5(usedforsecurity=False)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: Any) -> int:
        view = memoryview(buffer).cast("B")
        chunk = self._source.read(len(view))
        if not chunk:
            return 0
        size = len(chunk)
        view[:size] = chunk
        self._md5.update(chunk)
        return size

    def drain(self) -> None:
        """Consume whatever the parser left unread so the digest covers the whole body"""
        while self.read(64 * 1024):
            pass

    def hexdigest(self) -> str:
        return self._md5.hexdigest()


def encode_metadata_value(value: str) -> str:
    """Return ``value`` unchanged when it is printable ASCII, else as a base64 encoded-word"""
    if all(" " <= char <= "~" for char in value) and not value.startswith(_ENCODED_WORD_PREFIX):
        return value
    encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
    return f"{_ENCODED_WORD_PREFIX}{encoded}{_ENCODED_WORD_SUFFIX}"


def decode_metadata_value(value: str) -> str:
    if not (value.startswith(_ENCODED_WORD_PREFIX) and value.endswith(_ENCODED_WORD_SUFFIX)):
        return value
    payload = value[len(_ENCODED_WORD_PREFIX) : -len(_ENCODED_WORD_SUFFIX)]
    try:
        return base64.b64decode(payload, validate=True).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return value


def etag_checksum(response: Mapping[str, Any]) -> Optional[str]:
    """Return the ETag as an MD5 hex digest when it can be trusted as one.

    The ETag is not the content MD5 for KMS or customer-key encrypted objects,
    nor for multi-part uploads (``<md5>-<parts>``).
    """
    if response.get("ServerSideEncryption") in _KMS_ENCRYPTION:
        return None
    if response.get("SSECustomerAlgorithm"):
        return None
    etag = response.get("ETag") or ""
    if len(etag) != _SINGLE_PART_ETAG_LENGTH or _MULTIPART_SEPARATOR in etag:
        return None
    return etag[1:33].lower()


def metadata_checksum(response: Mapping[str, Any]) -> Optional[str]:
    value = (response.get("Metadata") or {}).get(MD5_METADATA)
    if not value:
        return None
    return value.lower()


def select_checksum(
    response: Mapping[str, Any], *, validate_etag: bool, validate_md5_metadata: bool
) -> Optional[str]:
    """ETag first (the store computes it after upload), then the md5-hash metadata"""
    checksum = etag_checksum(response) if validate_etag else None
    if checksum is None and validate_md5_metadata:
        checksum = metadata_checksum(response)
    return checksum


def verify_streamed(reader: HashingReader, expected: str, *, key: str) -> None:
    actual = reader.hexdigest()
    if not constant_time_compare(actual, expected):
        raise CorruptionError(
            f"Streamed S3 data at {key} has MD5 of {actual} which does not match "
            f"provided MD5 metadata {expected} - corruption in transit"
        )


def verify_head_metadata(response: Mapping[str, Any], expected: str, *, key: str) -> None:
    actual = (response.get("Metadata") or {}).get(MD5_METADATA)
    if actual is None or not constant_time_compare(actual, expected):
        raise CorruptionError(
            f"Metadata returned by HEAD for {key} is not as expected from PUT; potential corruption in transit"
        )


__all__ = [
    "ContentDigest",
    "FRIENDLY_NAME_METADATA",
    "HashingReader",
    "MD5_METADATA",
    "decode_metadata_value",
    "encode_metadata_value",
    "etag_checksum",
    "metadata_checksum",
    "select_checksum",
    "verify_head_metadata",
    "verify_streamed",
]
