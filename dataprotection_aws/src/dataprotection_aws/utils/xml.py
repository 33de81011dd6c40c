# XML document helpers shared by the repository and the KMS envelope.
from __future__ import annotations

import io
import xml.etree.ElementTree as ET
from typing import BinaryIO


def serialize_element(element: ET.Element) -> bytes:
    """Serialize a document to UTF-8 bytes including the XML declaration"""
    buffer = io.BytesIO()
    ET.ElementTree(element).write(buffer, encoding="utf-8", xml_declaration=True)
    return buffer.getvalue()


def parse_element(source: bytes | BinaryIO) -> ET.Element:
    """Parse a document from bytes or a readable binary stream"""
    if isinstance(source, (bytes, bytearray)):
        return ET.fromstring(bytes(source))
    return ET.parse(source).getroot()


def _normalise_text(value: str | None) -> str:
    return (value or "").strip()


def elements_equal(lhs: ET.Element, rhs: ET.Element) -> bool:
    """Structural equality: tag, attributes, stripped text/tail, ordered children"""
    if lhs.tag != rhs.tag or lhs.attrib != rhs.attrib:
        return False
    if _normalise_text(lhs.text) != _normalise_text(rhs.text):
        return False
    if _normalise_text(lhs.tail) != _normalise_text(rhs.tail):
        return False
    if len(lhs) != len(rhs):
        return False
    return all(elements_equal(left, right) for left, right in zip(lhs, rhs))


__all__ = ["elements_equal", "parse_element", "serialize_element"]
