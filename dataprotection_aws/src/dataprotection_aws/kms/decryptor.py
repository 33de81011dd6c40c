# Reverses KmsXmlEncryptor envelopes.
from __future__ import annotations

import asyncio
import base64
import binascii
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

import structlog
from botocore.exceptions import ClientError

from ..core.exceptions import ContextMismatchError, MalformedEnvelopeError
from ..utils.config import KmsConfig
from ..utils.sync import run_sync
from ..utils.xml import parse_element
from .context import VALUE_ELEMENT, build_encryption_context

INVALID_CIPHERTEXT_CODE = "InvalidCiphertextException"

logger = structlog.get_logger(__name__)


def _ciphertext_from(encrypted_element: ET.Element) -> bytes:
    value = encrypted_element.find(VALUE_ELEMENT)
    if value is None or not (value.text or "").strip():
        raise MalformedEnvelopeError(f"Envelope <{encrypted_element.tag}> has no <{VALUE_ELEMENT}> ciphertext")
    try:
        return base64.b64decode(value.text.strip(), validate=True)  # type: ignore[union-attr]
    except (binascii.Error, ValueError) as exc:
        raise MalformedEnvelopeError("Envelope ciphertext is not valid base64") from exc


class KmsXmlDecryptor:
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

    async def decrypt(self, encrypted_element: ET.Element, *, discriminator: Optional[str] = None) -> ET.Element:
        """Recover the plaintext document from an ``<encryptedKey>`` envelope.

        The encryption context is rebuilt from the current configuration and
        ``discriminator``; KMS identifies the key from the ciphertext itself.
        """
        ciphertext = _ciphertext_from(encrypted_element)
        request: Dict[str, Any] = {
            "CiphertextBlob": ciphertext,
            "EncryptionContext": build_encryption_context(self._config, discriminator),
        }
        if self._config.grant_tokens:
            request["GrantTokens"] = list(self._config.grant_tokens)

        logger.debug("kms.decrypt", size=len(ciphertext))
        try:
            response = await asyncio.to_thread(self._client.decrypt, **request)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == INVALID_CIPHERTEXT_CODE:
                raise ContextMismatchError(
                    "KMS rejected the ciphertext; the encryption context or discriminator does not match"
                ) from exc
            raise

        return parse_element(response["Plaintext"])

    def decrypt_sync(self, encrypted_element: ET.Element, *, discriminator: Optional[str] = None) -> ET.Element:
        return run_sync(self.decrypt(encrypted_element, discriminator=discriminator))


__all__ = ["INVALID_CIPHERTEXT_CODE", "KmsXmlDecryptor"]
