"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Value and cache contracts consumed by the fetcher.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, NamedTuple, Protocol, Union, runtime_checkable

from .errors import XFetchError

# One primitive argument of a backend write command.
WireValue = Union[str, bytes, int, float]


@runtime_checkable
class Fetchable(Protocol):
    """
    Wrapper around a caller-owned holder that knows its own wire form.

    ``write_cmd`` / ``read_cmd`` hint at the physical storage shape:
    ``HSET`` / ``HGETALL`` for field-wise records, ``SET`` / ``GET`` for
    single blobs.
    """

    write_cmd: str
    read_cmd: str

    def serialize(self) -> list[WireValue]:
        """Return the value as an ordered list of wire primitives."""
        ...

    def deserialize(self, reply: Any) -> None:
        """Populate the wrapped holder from one backend reply."""
        ...

    def unwrap(self) -> Any:
        """Return the wrapped holder."""
        ...


class CacheRead(NamedTuple):
    """Delta and remaining TTL reported by one cache read, in seconds."""

    delta_s: float
    ttl_s: float


# Logical miss; not an error.
MISS = CacheRead(0.0, 0.0)


@runtime_checkable
class Cache(Protocol):
    """
    Key-value store exposing paired value + delta reads and writes.

    Implementations raise on transport or decoding faults and return
    ``MISS`` when the key does not exist. ``update`` must make the value,
    its TTL and its delta visible together; a partial write is a failure.
    """

    async def read(self, key: str, fetchable: Fetchable) -> CacheRead: ...

    async def update(
        self,
        key: str,
        *,
        ttl_s: float,
        delta_s: float,
        fetchable: Fetchable,
    ) -> None: ...


class Recomputed(NamedTuple):
    """Result of one recompute callback: the new value and its TTL."""

    fetchable: Fetchable | None
    ttl_s: float | timedelta


# Recompute callback; may be a plain function or a coroutine function.
Recomputer = Callable[[], Union[Awaitable[Recomputed], Recomputed]]

# Returns a float in (0, 1].
Randomizer = Callable[[], float]


class FetchResult(NamedTuple):
    """
    Outcome of one fetch.

    ``retrieved`` tells whether the holder is usable, independently of
    ``error``: a failed write-back still leaves a valid recomputed value.
    Unpacks as ``retrieved, error = await fetcher.fetch(...)``.
    """

    retrieved: bool
    error: XFetchError | None = None

    @property
    def ok(self) -> bool:
        return self.retrieved and self.error is None

    def raise_for_error(self, *, strict: bool = False) -> None:
        """
        Raise the recorded error when the holder is not usable.

        With ``strict=True`` non-fatal errors (failed write-back, degraded
        read) are raised as well.
        """
        if self.error is None:
            return
        if strict or not self.retrieved:
            raise self.error
