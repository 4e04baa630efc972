"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Helpers shared by cache backend bindings.
"""

from __future__ import annotations

import math

from ..types import WireValue

DELTA_SUFFIX = ":delta"


def delta_key(key: str, suffix: str = DELTA_SUFFIX) -> str:
    """Return the key storing the recompute delta paired with ``key``."""
    return f"{key}{suffix}"


def ttl_ms(ttl_s: float) -> int:
    """
    Convert a positive TTL in seconds to whole milliseconds, rounding up.

    Raises:
        ValueError: When ``ttl_s`` is not positive.
    """
    if not ttl_s > 0:
        raise ValueError("ttl_s must be > 0")
    return max(1, math.ceil(ttl_s * 1000))


def encode_wire(value: WireValue) -> bytes:
    """Encode one wire primitive the way Redis clients put it on the wire."""
    if isinstance(value, bytes):
        return value
    if isinstance(value, bool):
        raise TypeError("booleans are not wire primitives; encode them as int")
    if isinstance(value, float):
        return repr(value).encode("utf-8")
    if isinstance(value, (int, str)):
        return str(value).encode("utf-8")
    raise TypeError(f"unsupported wire value type {type(value).__name__}")
