"""Wraps key documents with a KMS master key."""
from __future__ import annotations

import asyncio
import base64
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

import structlog

from ..models import EncryptedXmlInfo
from ..utils.config import KmsConfig
from ..utils.sync import run_sync
from ..utils.xml import serialize_element
from .context import ENVELOPE_COMMENT, ENVELOPE_ELEMENT, VALUE_ELEMENT, build_encryption_context
from .decryptor import KmsXmlDecryptor

logger = structlog.get_logger(__name__)


class KmsXmlEncryptor:
    """Envelope-encrypts a document so the master key never leaves KMS"""

    def __init__(self, kms_client: Any, config: KmsConfig) -> None:
        if kms_client is None:
            raise TypeError("kms_client is required")
        if config is None:
            raise TypeError("config is required")
        self._client = kms_client
        self._config = config

    @property
    def config(self) -> KmsConfig:
        return self._config

    def validate_config(self) -> None:
        self._config.validate()

    async def encrypt(self, plaintext_element: ET.Element, *, discriminator: Optional[str] = None) -> EncryptedXmlInfo:
        """Return an ``<encryptedKey>`` envelope holding the KMS ciphertext of the document.

        The same ``discriminator`` must be supplied to
        :meth:`KmsXmlDecryptor.decrypt` for the envelope to open.
        """
        self.validate_config()
        logger.debug("kms.encrypt", key_id=self._config.key_id)

        request: Dict[str, Any] = {
            "KeyId": self._config.key_id,
            "Plaintext": serialize_element(plaintext_element),
            "EncryptionContext": build_encryption_context(self._config, discriminator),
        }
        if self._config.grant_tokens:
            request["GrantTokens"] = list(self._config.grant_tokens)

        response = await asyncio.to_thread(self._client.encrypt, **request)

        element = ET.Element(ENVELOPE_ELEMENT)
        element.append(ET.Comment(ENVELOPE_COMMENT))
        value = ET.SubElement(element, VALUE_ELEMENT)
        value.text = base64.b64encode(response["CiphertextBlob"]).decode("ascii")
        return EncryptedXmlInfo(element=element, decryptor_type=KmsXmlDecryptor)

    def encrypt_sync(self, plaintext_element: ET.Element, *, discriminator: Optional[str] = None) -> EncryptedXmlInfo:
        return run_sync(self.encrypt(plaintext_element, discriminator=discriminator))


__all__ = ["KmsXmlEncryptor"]
