"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Redis-backed cache binding for multi-process deployments.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from ..errors import CacheBackendError
from ..types import MISS, CacheRead, Fetchable
from .base import DELTA_SUFFIX, delta_key, ttl_ms

logger = logging.getLogger("xfetch.cache.redis")

# PTTL replies for a missing key and for a key without expiry.
_PTTL_MISSING = -2
_PTTL_PERSISTENT = -1


class RedisCache:
    """
    Cache binding over a ``redis.asyncio`` client.

    Uses:
    - ``{key}`` for the value, written with the fetchable's ``write_cmd``
      (``HSET`` for records, ``SET`` for blobs)
    - ``{key}:delta`` for the recompute delta in seconds

    Both keys carry the same TTL. Writes run as one ``MULTI``/``EXEC``
    transaction and reads as one transactional pipeline, so a reader never
    pairs a value with a delta from another write.

    Args:
        redis: An ``redis.asyncio.Redis`` client instance.
        prefix: Optional key prefix for namespacing.
        delta_suffix: Suffix of the paired delta key.
    """

    backend_id = "redis"

    def __init__(
        self,
        redis: Any,
        *,
        prefix: str = "",
        delta_suffix: str = DELTA_SUFFIX,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self._delta_suffix = delta_suffix

    def _key(self, key: str) -> str:
        """Redis key storing the value for logical ``key``."""
        if not self._prefix:
            return key
        return f"{self._prefix}:{key}"

    def _delta_key(self, key: str) -> str:
        """Redis key storing the delta for logical ``key``."""
        return delta_key(self._key(key), self._delta_suffix)

    async def read(self, key: str, fetchable: Fetchable) -> CacheRead:
        """
        Read value, remaining TTL and delta for ``key``.

        A missing key is a miss. A value without an expiry reports an
        infinite TTL. A value whose delta key is missing reads as ``delta=0``.
        """
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.pttl(self._key(key))
            pipe.get(self._delta_key(key))
            pipe.execute_command(fetchable.read_cmd, self._key(key))
            pttl, raw_delta, reply = await pipe.execute()

        if pttl is None or int(pttl) == _PTTL_MISSING:
            return MISS
        pttl = int(pttl)
        if pttl == _PTTL_PERSISTENT:
            ttl_s = math.inf
        else:
            ttl_s = pttl / 1000.0
        if ttl_s <= 0:
            return MISS

        if raw_delta is None:
            logger.debug("No delta stored for key=%s; assuming 0", key)
            delta_s = 0.0
        else:
            delta_s = max(0.0, float(raw_delta))

        fetchable.deserialize(reply)
        return CacheRead(delta_s, ttl_s)

    async def update(
        self,
        key: str,
        *,
        ttl_s: float,
        delta_s: float,
        fetchable: Fetchable,
    ) -> None:
        """
        Replace value and delta for ``key`` in one transaction.

        The previous value is deleted first so stale record fields from an
        older write never survive.
        """
        expire_ms = ttl_ms(ttl_s)
        args = fetchable.serialize()
        if not args:
            raise CacheBackendError(f"nothing to store for key {key!r}")

        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.delete(self._key(key))
            pipe.execute_command(fetchable.write_cmd, self._key(key), *args)
            pipe.pexpire(self._key(key), expire_ms)
            pipe.set(self._delta_key(key), max(0.0, float(delta_s)), px=expire_ms)
            await pipe.execute()
