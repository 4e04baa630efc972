"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache backend bindings implementing the ``Cache`` contract.
"""

from .base import DELTA_SUFFIX, delta_key
from .factory import create_cache_from_env
from .inmemory import InMemoryCache
from .redis import RedisCache

__all__ = [
    "DELTA_SUFFIX",
    "delta_key",
    "InMemoryCache",
    "RedisCache",
    "create_cache_from_env",
]
