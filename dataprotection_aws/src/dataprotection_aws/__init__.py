"""Persist key documents to S3 and protect them with AWS KMS."""
from .core.exceptions import (
    ConfigurationError,
    ContextMismatchError,
    CorruptionError,
    DataProtectionError,
    MalformedEnvelopeError,
)
from .kms import KmsXmlDecryptor, KmsXmlEncryptor
from .models import EncryptedXmlInfo
from .storage import S3XmlRepository
from .utils.config import (
    CustomerProvided,
    KmsConfig,
    NoEncryption,
    S3RepositoryConfig,
    ServerManaged,
    ServerManagedKms,
    StorageClass,
)
from .version import __version__

__all__ = [
    "ConfigurationError",
    "ContextMismatchError",
    "CorruptionError",
    "CustomerProvided",
    "DataProtectionError",
    "EncryptedXmlInfo",
    "KmsConfig",
    "KmsXmlDecryptor",
    "KmsXmlEncryptor",
    "MalformedEnvelopeError",
    "NoEncryption",
    "S3RepositoryConfig",
    "S3XmlRepository",
    "ServerManaged",
    "ServerManagedKms",
    "StorageClass",
    "__version__",
]
