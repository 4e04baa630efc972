"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Probabilistic early cache expiration (XFetch) for stampede prevention.

Quick start::

    from xfetch import Fetcher, JSONText, Recomputed, Ref
    from xfetch.cache import InMemoryCache

    cache = InMemoryCache()
    fetcher = Fetcher(beta=1.0)

    async def recompute() -> Recomputed:
        return Recomputed(JSONText(Ref(str, await load_title())), 3600.0)

    title = Ref(str)
    retrieved, error = await fetcher.fetch(cache, "title:42", JSONText(title), recompute)
    if retrieved:
        print(title.value)
"""

from .assign import Ref, assign, ensure_writable
from .errors import (
    AssignError,
    CacheBackendError,
    CacheReadError,
    CacheWriteError,
    DegradedFetchError,
    InvalidReferenceError,
    RecomputeError,
    RecomputeInvariantError,
    SerializationError,
    TypeMismatchError,
    XFetchError,
)
from .fetchables import BinaryPack, JSONText, StructRecord, ValueCodec
from .fetcher import Fetcher, refresh_threshold
from .metrics import FetcherMetrics, NoOpFetcherMetrics, PrometheusFetcherMetrics
from .settings import FetcherSettings
from .types import (
    MISS,
    Cache,
    CacheRead,
    Fetchable,
    FetchResult,
    Randomizer,
    Recomputed,
    Recomputer,
    WireValue,
)

__all__ = [
    "Fetcher",
    "FetcherSettings",
    "refresh_threshold",
    "Fetchable",
    "Cache",
    "CacheRead",
    "MISS",
    "FetchResult",
    "Recomputed",
    "Recomputer",
    "Randomizer",
    "WireValue",
    "Ref",
    "assign",
    "ensure_writable",
    "StructRecord",
    "JSONText",
    "BinaryPack",
    "ValueCodec",
    "FetcherMetrics",
    "NoOpFetcherMetrics",
    "PrometheusFetcherMetrics",
    "XFetchError",
    "CacheReadError",
    "CacheWriteError",
    "CacheBackendError",
    "RecomputeError",
    "RecomputeInvariantError",
    "AssignError",
    "TypeMismatchError",
    "InvalidReferenceError",
    "SerializationError",
    "DegradedFetchError",
]
