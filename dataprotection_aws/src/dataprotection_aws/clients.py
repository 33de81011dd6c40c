"""boto3 client construction and component wiring."""
from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig

from .kms.decryptor import KmsXmlDecryptor
from .kms.encryptor import KmsXmlEncryptor
from .storage.s3_repository import S3XmlRepository
from .utils.config import KmsConfig, S3RepositoryConfig

# Retries stay with botocore; this layer never retries on its own.
_DEFAULT_BOTO_CONFIG = BotoConfig(retries={"mode": "standard", "max_attempts": 3})


def _session(profile: Optional[str], region: Optional[str]) -> boto3.Session:
    return boto3.Session(profile_name=profile, region_name=region)


def create_s3_client(
    *, region: Optional[str] = None, endpoint_url: Optional[str] = None, profile: Optional[str] = None
) -> Any:
    return _session(profile, region).client("s3", endpoint_url=endpoint_url, config=_DEFAULT_BOTO_CONFIG)


def create_kms_client(
    *, region: Optional[str] = None, endpoint_url: Optional[str] = None, profile: Optional[str] = None
) -> Any:
    return _session(profile, region).client("kms", endpoint_url=endpoint_url, config=_DEFAULT_BOTO_CONFIG)


def persist_keys_to_s3(config: S3RepositoryConfig, s3_client: Any = None) -> S3XmlRepository:
    """Repository for ``config``, using a default-credential S3 client unless one is given"""
    return S3XmlRepository(s3_client or create_s3_client(), config)


def protect_keys_with_kms(
    config: KmsConfig, kms_client: Any = None
) -> tuple[KmsXmlEncryptor, KmsXmlDecryptor]:
    """Encryptor/decryptor pair sharing one KMS client"""
    client = kms_client or create_kms_client()
    return KmsXmlEncryptor(client, config), KmsXmlDecryptor(client, config)


__all__ = [
    "create_kms_client",
    "create_s3_client",
    "persist_keys_to_s3",
    "protect_keys_with_kms",
]
