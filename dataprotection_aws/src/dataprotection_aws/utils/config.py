
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple, Union

from ..core.exceptions import ConfigurationError
from .validation import ensure_safe_key

DEFAULT_KEY_PREFIX = "DataProtection-Keys/"
DEFAULT_MAX_CONCURRENCY = 10

DEFAULT_CONTEXT_KEY = "dataprotection_aws.kms.xml"
DEFAULT_CONTEXT_VALUE = "b7b7f5af-d3c3-436d-8792-87dfd65e1cd4"
APPLICATION_CONTEXT_KEY = "dataprotection_aws.kms.xml.application"


class StorageClass(str, Enum):
    STANDARD = "STANDARD"
    REDUCED_REDUNDANCY = "REDUCED_REDUNDANCY"
    STANDARD_IA = "STANDARD_IA"
    ONEZONE_IA = "ONEZONE_IA"
    INTELLIGENT_TIERING = "INTELLIGENT_TIERING"
    GLACIER = "GLACIER"
    GLACIER_IR = "GLACIER_IR"
    DEEP_ARCHIVE = "DEEP_ARCHIVE"


@dataclass(frozen=True, slots=True)
class NoEncryption:
    """Objects are written without requesting any server-side encryption"""

    def put_params(self) -> Dict[str, str]:
        return {}

    def read_params(self) -> Dict[str, str]:
        return {}


@dataclass(frozen=True, slots=True)
class ServerManaged:
    """SSE-S3: the store encrypts with keys it manages (AES256)"""

    def put_params(self) -> Dict[str, str]:
        return {"ServerSideEncryption": "AES256"}

    def read_params(self) -> Dict[str, str]:
        return {}


@dataclass(frozen=True, slots=True)
class ServerManagedKms:
    """SSE-KMS: the store encrypts with the given KMS key"""

    key_id: str

    def __post_init__(self) -> None:
        if not self.key_id or not self.key_id.strip():
            raise ConfigurationError("A KMS key id is required for aws:kms server-side encryption")

    def put_params(self) -> Dict[str, str]:
        return {"ServerSideEncryption": "aws:kms", "SSEKMSKeyId": self.key_id}

    def read_params(self) -> Dict[str, str]:
        return {}


@dataclass(frozen=True, slots=True)
class CustomerProvided:
    """SSE-C: a base64 key (and its base64 MD5) sent with every request"""

    key: str = field(repr=False)
    key_md5: str
    algorithm: str = "AES256"

    def __post_init__(self) -> None:
        if not self.key or not self.key_md5:
            raise ConfigurationError("Customer-provided encryption requires both a key and its MD5")
        if not self.algorithm:
            raise ConfigurationError("Customer-provided encryption requires an algorithm")

    def put_params(self) -> Dict[str, str]:
        return self.read_params()

    def read_params(self) -> Dict[str, str]:
        return {
            "SSECustomerAlgorithm": self.algorithm,
            "SSECustomerKey": self.key,
            "SSECustomerKeyMD5": self.key_md5,
        }


EncryptionMode = Union[NoEncryption, ServerManaged, ServerManagedKms, CustomerProvided]


@dataclass(frozen=True, slots=True)
class S3RepositoryConfig:
    """Where and how key documents are written to the object store"""

    bucket: str
    key_prefix: str = DEFAULT_KEY_PREFIX
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    storage_class: StorageClass = StorageClass.STANDARD
    encryption: EncryptionMode = field(default_factory=ServerManaged)
    client_side_compression: bool = True
    validate_md5_metadata: bool = True
    validate_etag: bool = False
    friendly_name_keys: bool = False

    def __post_init__(self) -> None:
        ensure_safe_key(self.key_prefix)
        if self.max_concurrency < 1:
            raise ConfigurationError("max_concurrency must be at least 1")
        if not isinstance(self.storage_class, StorageClass):
            object.__setattr__(self, "storage_class", StorageClass(self.storage_class))

    def validate(self) -> None:
        if not self.bucket or not self.bucket.strip():
            raise ConfigurationError("A bucket name is required in S3RepositoryConfig for S3 access")


def _default_context() -> Dict[str, str]:
    return {DEFAULT_CONTEXT_KEY: DEFAULT_CONTEXT_VALUE}


@dataclass(frozen=True, slots=True)
class KmsConfig:
    """Master key and encryption context used to wrap key documents"""

    key_id: str = ""
    encryption_context: Mapping[str, str] = field(default_factory=_default_context, hash=False)
    grant_tokens: Tuple[str, ...] = ()
    discriminator_as_context: bool = True
    hash_discriminator_context: bool = True

    def __post_init__(self) -> None:
        context = _default_context()
        context.update(self.encryption_context)
        # read-only private copy
        object.__setattr__(self, "encryption_context", MappingProxyType(context))
        object.__setattr__(self, "grant_tokens", tuple(self.grant_tokens))

    def validate(self) -> None:
        if not self.key_id or not self.key_id.strip():
            raise ConfigurationError("A key id is required in KmsConfig for KMS operation")


__all__ = [
    "APPLICATION_CONTEXT_KEY",
    "CustomerProvided",
    "DEFAULT_CONTEXT_KEY",
    "DEFAULT_CONTEXT_VALUE",
    "DEFAULT_KEY_PREFIX",
    "DEFAULT_MAX_CONCURRENCY",
    "EncryptionMode",
    "KmsConfig",
    "NoEncryption",
    "S3RepositoryConfig",
    "ServerManaged",
    "ServerManagedKms",
    "StorageClass",
]
