from __future__ import annotations

import secrets


def constant_time_compare(lhs: bytes | str, rhs: bytes | str) -> bool:
    """Compare two digests without leaking timing information"""
    if isinstance(lhs, str):
        lhs = lhs.encode("utf-8")
    if isinstance(rhs, str):
        rhs = rhs.encode("utf-8")

    return secrets.compare_digest(lhs, rhs)


__all__ = ["constant_time_compare"]
