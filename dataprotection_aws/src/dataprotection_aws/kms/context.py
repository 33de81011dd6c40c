
from __future__ import annotations

import base64
import hashlib
from typing import Dict, Final, Optional

from ..utils.config import APPLICATION_CONTEXT_KEY, KmsConfig

ENVELOPE_ELEMENT: Final[str] = "encryptedKey"
VALUE_ELEMENT: Final[str] = "value"
ENVELOPE_COMMENT: Final[str] = " This key is encrypted with AWS Key Management Service. "


def hash_discriminator(discriminator: str) -> str:
    """Base64 SHA-256 of the discriminator; default discriminators can embed file paths"""
    return base64.b64encode(hashlib.sha256(discriminator.encode("utf-8")).digest()).decode("ascii")


def build_encryption_context(config: KmsConfig, discriminator: Optional[str] = None) -> Dict[str, str]:
    """Authenticated context for an encrypt or decrypt call.

    Starts from a copy of the configured static context. With
    ``discriminator_as_context`` on and a non-empty discriminator, the
    discriminator (hashed unless ``hash_discriminator_context`` is off) is bound
    under :data:`APPLICATION_CONTEXT_KEY`, so envelopes written for one
    application cannot be opened under another.
    """
    context = dict(config.encryption_context)
    if config.discriminator_as_context and discriminator:
        value = hash_discriminator(discriminator) if config.hash_discriminator_context else discriminator
        context[APPLICATION_CONTEXT_KEY] = value
    return context


__all__ = [
    "ENVELOPE_COMMENT",
    "ENVELOPE_ELEMENT",
    "VALUE_ELEMENT",
    "build_encryption_context",
    "hash_discriminator",
]
