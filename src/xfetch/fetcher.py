"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

XFetch decision engine: probabilistic early recomputation of cached values.

On every read the fetcher compares the remaining TTL of an entry against
``-delta * beta * ln(random())``. Entries whose last recomputation was
expensive, or that are close to hard expiry, are refreshed early with a
probability that grows as expiry approaches, which spreads recomputation of
hot keys over time instead of having every caller miss at once.

See Vattani et al., "Optimal Probabilistic Cache Stampede Prevention",
VLDB 2015.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
import random
import sys
import time
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

from .assign import assign, ensure_writable
from .errors import (
    AssignError,
    CacheReadError,
    CacheWriteError,
    DegradedFetchError,
    InvalidReferenceError,
    RecomputeError,
    RecomputeInvariantError,
)
from .metrics import FetcherMetrics, NoOpFetcherMetrics
from .settings import FetcherSettings
from .types import Cache, CacheRead, Fetchable, FetchResult, Randomizer, Recomputer

logger = logging.getLogger("xfetch.fetcher")

T = TypeVar("T")

# Smallest draw fed to the logarithm; keeps the threshold finite.
_MIN_DRAW = sys.float_info.min


def refresh_threshold(delta_s: float, beta: float, draw: float) -> float:
    """
    Return ``-delta * beta * ln(draw)``, the early-expiry window in seconds.

    Draws outside ``(0, 1]`` are clamped into it; a zero weight yields ``0``.
    """
    weight = max(delta_s, 0.0) * beta
    if not weight > 0:
        return 0.0
    if not draw > 0:
        draw = _MIN_DRAW
    elif draw > 1:
        draw = 1.0
    return -weight * math.log(draw)


class Fetcher:
    """
    Reads a key through a ``Cache`` and decides whether to recompute it.

    The fetcher keeps no per-key state and takes no locks: concurrent calls
    are independent as long as they do not share one holder. It owns a
    private random source, seeded at construction, unless a ``randomizer``
    is injected.

    Args:
        beta: Early refresh aggressiveness; ``0`` refreshes only on a miss.
        recompute_on_cache_failure: Recompute when the cache read fails
            instead of failing the call.
        randomizer: Returns a float in ``(0, 1]``; must be safe to call
            concurrently.
        seed: Seed for the default random source.
        clock: Monotonic clock used to measure recompute cost.
        metrics: Counter sink; defaults to a no-op.
        timeout_s: Default deadline shared by all steps of one fetch.
    """

    def __init__(
        self,
        beta: float = 1.0,
        *,
        recompute_on_cache_failure: bool = False,
        randomizer: Randomizer | None = None,
        seed: int | None = None,
        clock: Callable[[], float] = time.perf_counter,
        metrics: FetcherMetrics | None = None,
        timeout_s: float | None = None,
    ) -> None:
        if beta < 0:
            raise ValueError("beta must be >= 0")
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self._beta = float(beta)
        self._recompute_on_cache_failure = recompute_on_cache_failure
        if randomizer is None:
            rng = random.Random(seed)
            # random() draws from [0, 1); flip it into (0, 1].
            randomizer = lambda: 1.0 - rng.random()  # noqa: E731
        self._randomizer = randomizer
        self._clock = clock
        self._metrics = metrics or NoOpFetcherMetrics()
        self._timeout_s = timeout_s

    @classmethod
    def from_settings(cls, settings: FetcherSettings, **overrides: Any) -> "Fetcher":
        """Build a fetcher from ``FetcherSettings``; keyword overrides win."""
        kwargs: dict[str, Any] = {
            "recompute_on_cache_failure": settings.recompute_on_cache_failure,
            "seed": settings.seed,
            "timeout_s": settings.timeout_s,
        }
        kwargs.update(overrides)
        beta = kwargs.pop("beta", settings.beta)
        return cls(beta, **kwargs)

    @property
    def beta(self) -> float:
        return self._beta

    @property
    def recompute_on_cache_failure(self) -> bool:
        return self._recompute_on_cache_failure

    def should_refresh(self, delta_s: float, ttl_s: float) -> bool:
        """
        Decide whether a value with ``ttl_s`` seconds left is refreshed now.

        A miss (``ttl_s <= 0``) always refreshes.
        """
        if ttl_s <= 0:
            return True
        return refresh_threshold(delta_s, self._beta, self._randomizer()) >= ttl_s

    async def fetch(
        self,
        cache: Cache,
        key: str,
        fetchable: Fetchable,
        recompute: Recomputer,
        *,
        timeout_s: float | None = None,
    ) -> FetchResult:
        """
        Populate ``fetchable`` from ``cache`` or by recomputing it.

        Returns ``FetchResult(retrieved, error)``. ``retrieved`` is true when
        the holder wrapped by ``fetchable`` holds a usable value, even if
        ``error`` reports a failed write-back or a degraded cache read.
        Failures are never retried here; cancellation is never swallowed.

        Args:
            cache: Backend holding the value and its delta.
            key: Cache key.
            fetchable: Codec wrapping the caller's holder.
            recompute: Callback returning ``(fetchable, ttl_s)``; may be async.
            timeout_s: Deadline for the whole call, overriding the default.

        Raises:
            ValueError: When ``timeout_s`` is given and not positive.
        """
        if timeout_s is not None and timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        try:
            ensure_writable(fetchable.unwrap())
        except InvalidReferenceError as exc:
            return FetchResult(False, exc)

        deadline = self._deadline(timeout_s)

        try:
            read: CacheRead = await self._await_step(cache.read(key, fetchable), deadline)
        except Exception as exc:
            read_error = CacheReadError(exc)
            self._metrics.incr("xfetch_cache_read_error_total")
            if not self._recompute_on_cache_failure:
                logger.warning("Cache read failed for key=%s: %s", key, exc)
                return FetchResult(False, read_error)

            logger.warning(
                "Cache read failed for key=%s, recomputing anyway: %s", key, exc
            )
            self._metrics.incr("xfetch_refresh_total", tags={"reason": "cache_failure"})
            outcome = await self._refresh(cache, key, fetchable, recompute, deadline)
            if outcome.error is None:
                return FetchResult(True, read_error)
            return FetchResult(
                outcome.retrieved, DegradedFetchError(read_error, outcome.error)
            )

        delta_s, ttl_s = read
        if not self.should_refresh(delta_s, ttl_s):
            logger.debug(
                "Cache hit for key=%s (ttl_s=%.3f, delta_s=%.3f)", key, ttl_s, delta_s
            )
            self._metrics.incr("xfetch_cache_hit_total")
            return FetchResult(True)

        reason = "miss" if ttl_s <= 0 else "early"
        logger.debug(
            "Refreshing key=%s (reason=%s, ttl_s=%.3f, delta_s=%.3f)",
            key,
            reason,
            ttl_s,
            delta_s,
        )
        self._metrics.incr("xfetch_refresh_total", tags={"reason": reason})
        return await self._refresh(cache, key, fetchable, recompute, deadline)

    def fetch_sync(
        self,
        cache: Cache,
        key: str,
        fetchable: Fetchable,
        recompute: Recomputer,
        *,
        timeout_s: float | None = None,
    ) -> FetchResult:
        """Sync wrapper for ``fetch``; must not be called from a running loop."""
        return asyncio.run(
            self.fetch(cache, key, fetchable, recompute, timeout_s=timeout_s)
        )

    async def _refresh(
        self,
        cache: Cache,
        key: str,
        fetchable: Fetchable,
        recompute: Recomputer,
        deadline: float | None,
    ) -> FetchResult:
        """Recompute, assign into the caller's holder, then write back."""
        start = self._clock()
        try:
            result = await self._await_step(_call_recompute(recompute), deadline)
        except Exception as exc:
            logger.warning("Recompute failed for key=%s: %s", key, exc)
            self._metrics.incr("xfetch_recompute_error_total")
            return FetchResult(False, RecomputeError(exc))
        delta_s = max(0.0, self._clock() - start)

        try:
            recomputed, ttl_s = _unpack_recomputed(result)
        except RecomputeInvariantError as exc:
            logger.warning("Recompute for key=%s broke its contract: %s", key, exc)
            self._metrics.incr("xfetch_recompute_error_total")
            return FetchResult(False, exc)

        try:
            assign(fetchable.unwrap(), recomputed.unwrap())
        except AssignError as exc:
            logger.error("Cannot assign recomputed value for key=%s: %s", key, exc)
            self._metrics.incr("xfetch_assign_error_total")
            return FetchResult(False, exc)

        try:
            await self._await_step(
                cache.update(key, ttl_s=ttl_s, delta_s=delta_s, fetchable=fetchable),
                deadline,
            )
        except Exception as exc:
            logger.warning("Cache update failed for key=%s: %s", key, exc)
            self._metrics.incr("xfetch_cache_write_error_total")
            return FetchResult(True, CacheWriteError(exc))

        logger.debug(
            "Stored key=%s (ttl_s=%.3f, delta_s=%.3f)", key, ttl_s, delta_s
        )
        return FetchResult(True)

    def _deadline(self, timeout_s: float | None) -> float | None:
        timeout = timeout_s if timeout_s is not None else self._timeout_s
        if timeout is None:
            return None
        return asyncio.get_running_loop().time() + timeout

    async def _await_step(self, awaitable: Awaitable[T], deadline: float | None) -> T:
        """Await one step within the remaining time before ``deadline``."""
        if deadline is None:
            return await awaitable
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise asyncio.TimeoutError("fetch deadline exceeded")
        return await asyncio.wait_for(awaitable, timeout=remaining)


def _unpack_recomputed(result: Any) -> tuple[Fetchable, float]:
    """
    Split a recompute result into its fetchable and TTL in seconds.

    Raises:
        RecomputeInvariantError: ``result`` is not a ``(fetchable, ttl)``
            pair with a non-None fetchable and a numeric or timedelta TTL.
    """
    if result is None:
        raise RecomputeInvariantError()
    try:
        recomputed, ttl = result
    except (TypeError, ValueError):
        raise RecomputeInvariantError(
            f"recompute must return (fetchable, ttl), got {type(result).__name__}"
        ) from None
    if recomputed is None:
        raise RecomputeInvariantError()
    if not isinstance(recomputed, Fetchable):
        raise RecomputeInvariantError(
            f"recompute returned {type(recomputed).__name__}, not a fetchable"
        )
    if isinstance(ttl, timedelta):
        return recomputed, ttl.total_seconds()
    if isinstance(ttl, bool):
        raise RecomputeInvariantError("recompute ttl must be a number, got bool")
    try:
        return recomputed, float(ttl)
    except (TypeError, ValueError):
        raise RecomputeInvariantError(
            f"recompute ttl must be a number or timedelta, got {type(ttl).__name__}"
        ) from None


async def _call_recompute(recompute: Recomputer) -> Any:
    """Invoke a recompute callback, handling both sync and async signatures."""
    result = recompute()
    if inspect.isawaitable(result):
        result = await result
    return result
