
from __future__ import annotations

from .errors import constant_time_compare
from .sync import run_sync
from .validation import ensure_safe_key, is_safe_key
from .xml import elements_equal, parse_element, serialize_element

__all__ = [
    "constant_time_compare",
    "elements_equal",
    "ensure_safe_key",
    "is_safe_key",
    "parse_element",
    "run_sync",
    "serialize_element",
]
