"""KMS envelope encryption for stored key documents."""
from .context import build_encryption_context, hash_discriminator
from .decryptor import KmsXmlDecryptor
from .encryptor import KmsXmlEncryptor

__all__ = ["KmsXmlDecryptor", "KmsXmlEncryptor", "build_encryption_context", "hash_discriminator"]
