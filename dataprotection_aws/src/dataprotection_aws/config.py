"""Configuration loading utilities."""
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .core.exceptions import ConfigurationError
from .paths import runtime_config_dir
from .utils.config import (
    APPLICATION_CONTEXT_KEY,
    DEFAULT_CONTEXT_KEY,
    DEFAULT_CONTEXT_VALUE,
    DEFAULT_KEY_PREFIX,
    DEFAULT_MAX_CONCURRENCY,
    CustomerProvided,
    EncryptionMode,
    KmsConfig,
    NoEncryption,
    S3RepositoryConfig,
    ServerManaged,
    ServerManagedKms,
    StorageClass,
)


class NoEncryptionSection(BaseModel):
    mode: Literal["none"] = "none"


class ServerManagedSection(BaseModel):
    mode: Literal["aes256"] = "aes256"


class KmsEncryptionSection(BaseModel):
    mode: Literal["kms"] = "kms"
    key_id: str


class CustomerKeySection(BaseModel):
    mode: Literal["customer"] = "customer"
    key: str
    key_md5: str
    algorithm: str = "AES256"


EncryptionSection = Union[NoEncryptionSection, ServerManagedSection, KmsEncryptionSection, CustomerKeySection]


class S3Section(BaseModel):
    model_config = ConfigDict(extra="forbid")

    bucket: str
    key_prefix: str = DEFAULT_KEY_PREFIX
    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    storage_class: StorageClass = StorageClass.STANDARD
    encryption: EncryptionSection = Field(default_factory=ServerManagedSection, discriminator="mode")
    client_side_compression: bool = True
    validate_md5_metadata: bool = True
    validate_etag: bool = False
    friendly_name_keys: bool = False
    region: Optional[str] = None
    endpoint_url: Optional[str] = None

    def to_runtime(self) -> S3RepositoryConfig:
        return S3RepositoryConfig(
            bucket=self.bucket,
            key_prefix=self.key_prefix,
            max_concurrency=self.max_concurrency,
            storage_class=self.storage_class,
            encryption=_encryption_from_section(self.encryption),
            client_side_compression=self.client_side_compression,
            validate_md5_metadata=self.validate_md5_metadata,
            validate_etag=self.validate_etag,
            friendly_name_keys=self.friendly_name_keys,
        )


class KmsSection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key_id: str = ""
    encryption_context: Dict[str, str] = Field(
        default_factory=lambda: {DEFAULT_CONTEXT_KEY: DEFAULT_CONTEXT_VALUE}
    )
    grant_tokens: List[str] = Field(default_factory=list)
    discriminator_as_context: bool = True
    hash_discriminator_context: bool = True
    discriminator: Optional[str] = Field(
        default=None,
        description=f"Application discriminator bound under {APPLICATION_CONTEXT_KEY}",
    )
    region: Optional[str] = None
    endpoint_url: Optional[str] = None

    def to_runtime(self) -> KmsConfig:
        return KmsConfig(
            key_id=self.key_id,
            encryption_context=dict(self.encryption_context),
            grant_tokens=tuple(self.grant_tokens),
            discriminator_as_context=self.discriminator_as_context,
            hash_discriminator_context=self.hash_discriminator_context,
        )


class LoggingSection(BaseModel):
    level: str = Field(default="INFO", description="Logging verbosity level")

    def normalized_level(self) -> str:
        return self.level.upper()


class AppConfig(BaseModel):
    s3: Optional[S3Section] = None
    kms: Optional[KmsSection] = None
    logging: LoggingSection = Field(default_factory=LoggingSection)


DEFAULT_CONFIG = AppConfig()


def _encryption_from_section(section: EncryptionSection) -> EncryptionMode:
    if isinstance(section, KmsEncryptionSection):
        return ServerManagedKms(key_id=section.key_id)
    if isinstance(section, CustomerKeySection):
        return CustomerProvided(key=section.key, key_md5=section.key_md5, algorithm=section.algorithm)
    if isinstance(section, NoEncryptionSection):
        return NoEncryption()
    return ServerManaged()


def config_search_paths(explicit: Optional[Path] = None) -> Iterable[Path]:
    if explicit:
        yield explicit
    yield Path.cwd() / ".dpaws" / "config.yaml"
    yield runtime_config_dir() / "config.yaml"


def load_config(path: Optional[Path] = None) -> AppConfig:
    if path is not None and not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    for candidate in config_search_paths(path):
        if candidate.is_file():
            with candidate.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
            try:
                config = AppConfig.model_validate(data)
            except ValidationError as exc:
                raise ConfigurationError(f"Invalid configuration in {candidate}: {exc}") from exc
            if config.s3 is not None:
                # surfaces unsafe prefixes and incomplete encryption settings at load time
                config.s3.to_runtime()
            return config
    return DEFAULT_CONFIG.model_copy(deep=True)


def dump_default_config(target: Path, *, bucket: str, key_id: str = "") -> None:
    config = AppConfig(s3=S3Section(bucket=bucket), kms=KmsSection(key_id=key_id))
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config.model_dump(mode="json"), handle, sort_keys=False)


__all__ = [
    "AppConfig",
    "DEFAULT_CONFIG",
    "KmsSection",
    "LoggingSection",
    "S3Section",
    "config_search_paths",
    "dump_default_config",
    "load_config",
]
