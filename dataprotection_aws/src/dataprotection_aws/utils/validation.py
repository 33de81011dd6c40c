"""Validation helpers for object store key names."""
from __future__ import annotations

import string

from ..core.exceptions import ConfigurationError

_SAFE_PUNCTUATION = frozenset("!-_.*'()/")
_SAFE_CHARACTERS = frozenset(string.ascii_letters + string.digits) | _SAFE_PUNCTUATION
_FOLDER_DELIMITER = "/"


def is_safe_key(candidate: str | None) -> bool:
    """Return whether ``candidate`` only uses characters safe in S3 keys.

    Parameters
    ----------
    candidate:
        Key name or key prefix to check.

    Returns
    -------
    bool
        ``True`` when the value is non-empty, consists of ASCII letters, digits
        and ``! - _ . * ' ( ) /`` only, and does not start with the folder
        delimiter. These characters survive URL, header and metadata encoding
        on every S3-compatible store without escaping.
    """

    if not candidate:
        return False
    if candidate.startswith(_FOLDER_DELIMITER):
        return False
    return all(char in _SAFE_CHARACTERS for char in candidate)


def ensure_safe_key(candidate: str | None, *, field: str = "key prefix") -> str:
    """Return ``candidate`` unchanged or raise :class:`ConfigurationError`."""

    if not is_safe_key(candidate):
        raise ConfigurationError(f"Specified {field} {candidate!r} is not considered a safe S3 name")
    return candidate  # type: ignore[return-value]


__all__ = ["ensure_safe_key", "is_safe_key"]
