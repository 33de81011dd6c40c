from __future__ import annotations

import base64
import hashlib
import io
import json
import os
import threading
import time
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError, ParamValidationError
from botocore.response import StreamingBody
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from dataprotection_aws.utils.config import KmsConfig, S3RepositoryConfig

BUCKET = "keys-bucket"
KEY_ID = "alias/data-protection"


def _client_error(code: str, operation: str, message: str = "") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message or code}}, operation)


@dataclass
class FakeObject:
    body: bytes
    metadata: Dict[str, str] = field(default_factory=dict)
    content_encoding: Optional[str] = None
    server_side_encryption: Optional[str] = None
    sse_customer_algorithm: Optional[str] = None
    sse_customer_key: Optional[str] = None
    etag: str = ""

    def __post_init__(self) -> None:
        if not self.etag:
            self.etag = f'"{hashlib.md5(self.body, usedforsecurity=False).hexdigest()}"'


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client.

    Pages listings ``page_size`` keys at a time, returns bodies as botocore
    ``StreamingBody`` objects and records every request it sees.
    """

    def __init__(self, *, page_size: int = 1000, fetch_delay: float = 0.0) -> None:
        self.page_size = page_size
        self.fetch_delay = fetch_delay
        self.objects: Dict[str, FakeObject] = {}
        self.put_requests: List[Dict[str, Any]] = []
        self.get_requests: List[Dict[str, Any]] = []
        self.head_requests: List[Dict[str, Any]] = []
        self.list_requests: List[Dict[str, Any]] = []
        self.failing_keys: set[str] = set()
        self.head_metadata_override: Optional[Dict[str, str]] = None
        self.on_get: Optional[Callable[[str], None]] = None
        self._lock = threading.Lock()
        self.in_flight = 0
        self.peak = 0

    # ----- helpers -----
    def put_raw(
        self,
        key: str,
        body: bytes,
        *,
        metadata: Optional[Dict[str, str]] = None,
        content_encoding: Optional[str] = None,
    ) -> None:
        self.objects[key] = FakeObject(body=body, metadata=dict(metadata or {}), content_encoding=content_encoding)

    def corrupt(self, key: str, body: bytes) -> None:
        self.objects[key].body = body

    # ----- boto3 surface -----
    def list_objects_v2(self, *, Bucket: str, Prefix: str = "", ContinuationToken: Optional[str] = None, **_: Any):
        self.list_requests.append({"Bucket": Bucket, "Prefix": Prefix, "ContinuationToken": ContinuationToken})
        keys = sorted(key for key in self.objects if key.startswith(Prefix))
        start = int(ContinuationToken) if ContinuationToken else 0
        end = start + self.page_size
        page = keys[start:end]
        response: Dict[str, Any] = {"KeyCount": len(page), "IsTruncated": end < len(keys), "Prefix": Prefix}
        if page:
            response["Contents"] = [
                {"Key": key, "Size": len(self.objects[key].body), "ETag": self.objects[key].etag} for key in page
            ]
        if end < len(keys):
            response["NextContinuationToken"] = str(end)
        return response

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, **kwargs: Any):
        for name, value in (kwargs.get("Metadata") or {}).items():
            if not (name.isascii() and value.isascii()):
                raise ParamValidationError(
                    report=f"Non ascii characters found in S3 metadata for key \"{name}\", value: \"{value}\""
                )
        self.put_requests.append({"Bucket": Bucket, "Key": Key, "Body": Body, **kwargs})
        digest = hashlib.md5(Body, usedforsecurity=False).digest()
        content_md5 = kwargs.get("ContentMD5")
        if content_md5 is not None:
            if base64.b64decode(content_md5) != digest:
                raise _client_error("BadDigest", "PutObject")
        self.objects[Key] = FakeObject(
            body=Body,
            metadata=dict(kwargs.get("Metadata") or {}),
            content_encoding=kwargs.get("ContentEncoding"),
            server_side_encryption=kwargs.get("ServerSideEncryption"),
            sse_customer_algorithm=kwargs.get("SSECustomerAlgorithm"),
            sse_customer_key=kwargs.get("SSECustomerKey"),
        )
        return {"ETag": self.objects[Key].etag}

    def _lookup(self, key: str, operation: str, kwargs: Dict[str, Any]) -> FakeObject:
        stored = self.objects.get(key)
        if stored is None or key in self.failing_keys:
            raise _client_error("NoSuchKey", operation)
        if stored.sse_customer_key is not None and kwargs.get("SSECustomerKey") != stored.sse_customer_key:
            raise _client_error("InvalidRequest", operation, "customer key required")
        return stored

    def get_object(self, *, Bucket: str, Key: str, **kwargs: Any):
        self.get_requests.append({"Bucket": Bucket, "Key": Key, **kwargs})
        with self._lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            if self.on_get is not None:
                self.on_get(Key)
            if self.fetch_delay:
                time.sleep(self.fetch_delay)
            stored = self._lookup(Key, "GetObject", kwargs)
        finally:
            with self._lock:
                self.in_flight -= 1

        response: Dict[str, Any] = {
            "Body": StreamingBody(io.BytesIO(stored.body), len(stored.body)),
            "ContentLength": len(stored.body),
            "ETag": stored.etag,
            "Metadata": dict(stored.metadata),
        }
        if stored.content_encoding:
            response["ContentEncoding"] = stored.content_encoding
        if stored.server_side_encryption:
            response["ServerSideEncryption"] = stored.server_side_encryption
        if stored.sse_customer_algorithm:
            response["SSECustomerAlgorithm"] = stored.sse_customer_algorithm
        return response

    def head_object(self, *, Bucket: str, Key: str, **kwargs: Any):
        self.head_requests.append({"Bucket": Bucket, "Key": Key, **kwargs})
        stored = self._lookup(Key, "HeadObject", kwargs)
        metadata = self.head_metadata_override if self.head_metadata_override is not None else stored.metadata
        return {"ContentLength": len(stored.body), "ETag": stored.etag, "Metadata": dict(metadata)}


def _aad(context: Optional[Dict[str, str]]) -> bytes:
    return json.dumps(context or {}, sort_keys=True, separators=(",", ":")).encode("utf-8")


class FakeKmsClient:
    """KMS stand-in: AES-GCM under a per-key secret, with the encryption context as AAD"""

    def __init__(self, key_ids: tuple[str, ...] = (KEY_ID,)) -> None:
        self._keys = {key_id: AESGCM.generate_key(bit_length=256) for key_id in key_ids}
        self.encrypt_requests: List[Dict[str, Any]] = []
        self.decrypt_requests: List[Dict[str, Any]] = []
        self.unavailable = False

    def encrypt(self, *, KeyId: str, Plaintext: bytes, EncryptionContext=None, GrantTokens=None):
        self.encrypt_requests.append(
            {"KeyId": KeyId, "Plaintext": Plaintext, "EncryptionContext": EncryptionContext, "GrantTokens": GrantTokens}
        )
        if self.unavailable:
            raise _client_error("KMSInternalException", "Encrypt")
        if KeyId not in self._keys:
            raise _client_error("NotFoundException", "Encrypt")
        nonce = os.urandom(12)
        header = KeyId.encode("utf-8")
        sealed = AESGCM(self._keys[KeyId]).encrypt(nonce, Plaintext, _aad(EncryptionContext))
        blob = len(header).to_bytes(2, "big") + header + nonce + sealed
        return {"CiphertextBlob": blob, "KeyId": KeyId}

    def decrypt(self, *, CiphertextBlob: bytes, EncryptionContext=None, GrantTokens=None, **kwargs: Any):
        self.decrypt_requests.append(
            {"CiphertextBlob": CiphertextBlob, "EncryptionContext": EncryptionContext, "GrantTokens": GrantTokens, **kwargs}
        )
        if self.unavailable:
            raise _client_error("KMSInternalException", "Decrypt")
        size = int.from_bytes(CiphertextBlob[:2], "big")
        key_id = CiphertextBlob[2 : 2 + size].decode("utf-8", errors="replace")
        nonce = CiphertextBlob[2 + size : 14 + size]
        sealed = CiphertextBlob[14 + size :]
        key = self._keys.get(key_id)
        if key is None or len(nonce) != 12:
            raise _client_error("InvalidCiphertextException", "Decrypt")
        try:
            plaintext = AESGCM(key).decrypt(nonce, sealed, _aad(EncryptionContext))
        except InvalidTag:
            raise _client_error("InvalidCiphertextException", "Decrypt") from None
        return {"Plaintext": plaintext, "KeyId": key_id}


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def kms_client() -> FakeKmsClient:
    return FakeKmsClient()


@pytest.fixture
def repository_config() -> S3RepositoryConfig:
    return S3RepositoryConfig(bucket=BUCKET)


@pytest.fixture
def kms_config() -> KmsConfig:
    return KmsConfig(key_id=KEY_ID)


@pytest.fixture
def make_key() -> Callable[..., ET.Element]:
    """Build a key document shaped like the ones a key ring manager writes"""

    def _make(key_id: Optional[str] = None, secret: str = "c2VjcmV0LW1hc3Rlci1rZXk=") -> ET.Element:
        key = ET.Element("key", {"id": key_id or str(uuid.uuid4()), "version": "1"})
        ET.SubElement(key, "creationDate").text = "2024-03-01T10:00:00Z"
        ET.SubElement(key, "activationDate").text = "2024-03-01T10:00:00Z"
        ET.SubElement(key, "expirationDate").text = "2024-05-30T10:00:00Z"
        outer = ET.SubElement(key, "descriptor", {"deserializerType": "AuthenticatedEncryptorDescriptorDeserializer"})
        inner = ET.SubElement(outer, "descriptor")
        ET.SubElement(inner, "encryption", {"algorithm": "AES_256_CBC"})
        ET.SubElement(inner, "validation", {"algorithm": "HMACSHA256"})
        master = ET.SubElement(inner, "masterKey")
        ET.SubElement(master, "value").text = secret
        return key

    return _make


@pytest.fixture
def make_s3() -> Callable[..., FakeS3Client]:
    return FakeS3Client


@pytest.fixture
def make_kms() -> Callable[..., FakeKmsClient]:
    return FakeKmsClient
