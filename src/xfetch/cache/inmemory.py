"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Process-local cache backend suitable for development/test workloads.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import Any

from ..errors import CacheBackendError
from ..fetchables import BLOB_READ_CMD, RECORD_READ_CMD
from ..types import MISS, CacheRead, Fetchable
from .base import encode_wire, ttl_ms


@dataclass(frozen=True, slots=True)
class CacheRow:
    """One stored value with its paired delta and absolute expiry."""

    read_cmd: str
    payload: tuple[bytes, ...]
    delta_s: float
    expires_at_s: float


class InMemoryCache:
    """
    In-process cache keeping value, delta and expiry in one row.

    Rows are replaced whole under a lock, so a read always observes a value
    together with the delta written alongside it. Payloads are kept in their
    encoded wire form and decoded on every read, like a remote backend would.
    Expired rows are dropped lazily on read; there is no eviction.
    """

    backend_id = "inmemory"

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._rows: dict[str, CacheRow] = {}
        self._lock = Lock()
        self._clock = clock

    async def read(self, key: str, fetchable: Fetchable) -> CacheRead:
        with self._lock:
            row = self._rows.get(key)
            if row is None:
                return MISS
            ttl_s = row.expires_at_s - self._clock()
            if ttl_s <= 0:
                self._rows.pop(key, None)
                return MISS

        if row.read_cmd != fetchable.read_cmd:
            raise CacheBackendError(
                f"key {key!r} holds a value for {row.read_cmd}, "
                f"cannot read it with {fetchable.read_cmd}"
            )
        fetchable.deserialize(_reply(row))
        return CacheRead(row.delta_s, ttl_s)

    async def update(
        self,
        key: str,
        *,
        ttl_s: float,
        delta_s: float,
        fetchable: Fetchable,
    ) -> None:
        expires_at_s = self._clock() + ttl_ms(ttl_s) / 1000.0
        payload = tuple(encode_wire(value) for value in fetchable.serialize())
        if not payload:
            raise CacheBackendError(f"nothing to store for key {key!r}")
        row = CacheRow(
            read_cmd=fetchable.read_cmd,
            payload=payload,
            delta_s=max(0.0, float(delta_s)),
            expires_at_s=expires_at_s,
        )
        with self._lock:
            self._rows[key] = row

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


def _reply(row: CacheRow) -> Any:
    """Shape a stored payload like the matching Redis reply."""
    if row.read_cmd == RECORD_READ_CMD:
        return dict(zip(row.payload[0::2], row.payload[1::2]))
    if row.read_cmd == BLOB_READ_CMD and len(row.payload) == 1:
        return row.payload[0]
    raise CacheBackendError(
        f"cannot shape {len(row.payload)} stored item(s) for {row.read_cmd}"
    )
