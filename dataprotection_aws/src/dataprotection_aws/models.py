# Value types passed between the repository, the KMS adapter and callers.

from __future__ import annotations
from dataclasses import dataclass

import xml.etree.ElementTree as ET
from typing import Any


@dataclass(frozen=True, slots=True)
class EncryptedXmlInfo:
    """An encrypted envelope plus the decryptor type able to reverse it"""
    element: ET.Element
    decryptor_type: type


@dataclass(frozen=True, slots=True)
class StoredObject:
    """A listed object key under the repository prefix"""
    key: str
    size: int = 0

    @classmethod
    def from_listing(cls, entry: dict[str, Any]) -> "StoredObject":
        return cls(key=entry["Key"], size=int(entry.get("Size") or 0))

    def is_folder_placeholder(self) -> bool:
        """Zero-length trailing-slash keys some consoles create to show folders"""
        return self.key.endswith("/") and self.size == 0


__all__ = ["EncryptedXmlInfo", "StoredObject"]
