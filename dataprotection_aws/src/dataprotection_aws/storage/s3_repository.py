"""Key document repository backed by an S3-compatible object store."""
from __future__ import annotations

import asyncio
import uuid
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

import structlog

from ..models import StoredObject
from ..utils.config import S3RepositoryConfig
from ..utils.sync import run_sync
from ..utils.validation import is_safe_key
from ..utils.xml import parse_element, serialize_element
from .compression import CONTENT_ENCODING_GZIP, compress, is_gzip_encoded, open_decompressed
from .integrity import (
    FRIENDLY_NAME_METADATA,
    MD5_METADATA,
    ContentDigest,
    HashingReader,
    decode_metadata_value,
    encode_metadata_value,
    select_checksum,
    verify_head_metadata,
    verify_streamed,
)
from .throttle import ConcurrencyThrottle, gather_settled

CONTENT_TYPE = "text/xml"
KEY_SUFFIX = ".xml"

logger = structlog.get_logger(__name__)


def _content_disposition(friendly_name: str) -> str:
    filename = friendly_name + KEY_SUFFIX
    # filename= must be printable ASCII; filename* carries the exact UTF-8 name
    ascii_name = "".join(char if " " <= char <= "~" else "_" for char in filename)
    fallback = ascii_name.replace("\\", "\\\\").replace('"', '\\"')
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


class S3XmlRepository:
    """Stores and retrieves XML key documents under a bucket prefix.

    The caller (a key ring manager) is expected to cache the full result of
    :meth:`get_all_elements` and only re-query periodically, so nothing is cached
    here. Every call is self-contained and may be retried by the caller.
    """

    def __init__(
        self,
        s3_client: Any,
        config: S3RepositoryConfig,
        *,
        key_factory: Callable[[], uuid.UUID | str] = uuid.uuid4,
    ) -> None:
        if s3_client is None:
            raise TypeError("s3_client is required")
        if config is None:
            raise TypeError("config is required")
        self._client = s3_client
        self._config = config
        self._key_factory = key_factory

    @property
    def config(self) -> S3RepositoryConfig:
        return self._config

    def validate_config(self) -> None:
        self._config.validate()

    # ----- Retrieval -----
    async def get_all_elements(self) -> List[ET.Element]:
        """Fetch every stored document under the configured prefix.

        Listing is paged sequentially; the per-object fetches then run
        concurrently, never more than ``max_concurrency`` at a time. Any fetch or
        parse failure fails the whole call once the remaining fetches settle.
        """
        self.validate_config()

        listed = await self._list_objects()
        objects = []
        for item in listed:
            if item.is_folder_placeholder():
                logger.debug("s3.fetch.skip_folder", key=item.key)
                continue
            objects.append(item)

        throttle = ConcurrencyThrottle(self._config.max_concurrency)
        elements = await gather_settled(self._fetch_element(item, throttle) for item in objects)
        logger.debug("s3.get_all.done", bucket=self._config.bucket, listed=len(listed), returned=len(elements))
        return elements

    def get_all_elements_sync(self) -> List[ET.Element]:
        return run_sync(self.get_all_elements())

    async def _list_objects(self) -> List[StoredObject]:
        items: List[StoredObject] = []
        token: Optional[str] = None
        while True:
            params: Dict[str, Any] = {"Bucket": self._config.bucket, "Prefix": self._config.key_prefix}
            if token:
                params["ContinuationToken"] = token
            response = await asyncio.to_thread(self._client.list_objects_v2, **params)
            page = [StoredObject.from_listing(entry) for entry in response.get("Contents", [])]
            items.extend(page)
            logger.debug("s3.list.page", bucket=self._config.bucket, prefix=self._config.key_prefix, count=len(page))

            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                return items

    async def _fetch_element(self, item: StoredObject, throttle: ConcurrencyThrottle) -> ET.Element:
        async with throttle.slot():
            logger.debug("s3.fetch", bucket=self._config.bucket, key=item.key)
            return await asyncio.to_thread(self._read_element, item)

    def _read_element(self, item: StoredObject) -> ET.Element:
        request: Dict[str, Any] = {"Bucket": self._config.bucket, "Key": item.key}
        request.update(self._config.encryption.read_params())
        response = self._client.get_object(**request)
        body = response["Body"]
        friendly_name = (response.get("Metadata") or {}).get(FRIENDLY_NAME_METADATA)
        if friendly_name:
            logger.debug("s3.fetch.friendly_name", key=item.key, friendly_name=decode_metadata_value(friendly_name))
        try:
            checksum = select_checksum(
                response,
                validate_etag=self._config.validate_etag,
                validate_md5_metadata=self._config.validate_md5_metadata,
            )
            reader = HashingReader(body) if checksum else None
            stream = reader or body

            # The store hands back the bytes exactly as uploaded; decompression
            # follows the object's own marker so either compression setting can
            # read what the other wrote.
            if is_gzip_encoded(response.get("ContentEncoding")):
                with open_decompressed(stream) as decompressed:
                    element = parse_element(decompressed)
            else:
                element = parse_element(stream)

            if reader is not None and checksum is not None:
                reader.drain()
                verify_streamed(reader, checksum, key=item.key)
            return element
        finally:
            body.close()

    # ----- Storage -----
    async def store_element(self, element: ET.Element, friendly_name: str) -> None:
        """Upload ``element`` under a freshly generated key and verify it landed intact.

        ``friendly_name`` is recorded as metadata only; it is not an index and the
        generated key is not returned.
        """
        self.validate_config()

        key = self._new_key(friendly_name)
        request, expected_md5 = self._build_put_request(key, element, friendly_name)
        logger.debug(
            "s3.store",
            bucket=self._config.bucket,
            key=key,
            friendly_name=friendly_name,
            compressed=self._config.client_side_compression,
        )
        await asyncio.to_thread(self._client.put_object, **request)
        await self._check_element(key, expected_md5)

    def store_element_sync(self, element: ET.Element, friendly_name: str) -> None:
        run_sync(self.store_element(element, friendly_name))

    def _new_key(self, friendly_name: str) -> str:
        prefix = self._config.key_prefix
        if self._config.friendly_name_keys:
            if is_safe_key(friendly_name):
                return f"{prefix}{friendly_name}{KEY_SUFFIX}"
            key = f"{prefix}{self._key_factory()}{KEY_SUFFIX}"
            logger.warning("s3.store.unsafe_friendly_name", friendly_name=friendly_name, key=key)
            return key
        return f"{prefix}{self._key_factory()}{KEY_SUFFIX}"

    def _build_put_request(
        self, key: str, element: ET.Element, friendly_name: str
    ) -> Tuple[Dict[str, Any], str]:
        payload = serialize_element(element)
        request: Dict[str, Any] = {
            "Bucket": self._config.bucket,
            "Key": key,
            "ContentType": CONTENT_TYPE,
            "ContentDisposition": _content_disposition(friendly_name),
            "StorageClass": self._config.storage_class.value,
            "Metadata": {FRIENDLY_NAME_METADATA: encode_metadata_value(friendly_name)},
        }
        request.update(self._config.encryption.put_params())

        if self._config.client_side_compression:
            # Also lets browsers downloading the object inflate it transparently.
            request["ContentEncoding"] = CONTENT_ENCODING_GZIP
            payload = compress(payload)

        digest = ContentDigest.of(payload)
        request["ContentMD5"] = digest.base64
        request["Metadata"][MD5_METADATA] = digest.hex
        request["Body"] = payload
        return request, digest.hex

    async def _check_element(self, key: str, expected_md5: str) -> None:
        request: Dict[str, Any] = {"Bucket": self._config.bucket, "Key": key}
        request.update(self._config.encryption.read_params())
        response = await asyncio.to_thread(self._client.head_object, **request)
        verify_head_metadata(response, expected_md5, key=key)
        logger.debug("s3.store.verified", bucket=self._config.bucket, key=key)


__all__ = ["CONTENT_TYPE", "KEY_SUFFIX", "S3XmlRepository"]
