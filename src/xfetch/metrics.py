"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for fetcher observability.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol


class FetcherMetrics(Protocol):
    """Minimal metrics interface for fetcher instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpFetcherMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


# Help text for the counters emitted by ``Fetcher``.
_COUNTER_DOCS = {
    "xfetch_cache_hit_total": "Fetches served from cache without recomputing.",
    "xfetch_refresh_total": "Recomputations started, by reason (miss, early, cache_failure).",
    "xfetch_cache_read_error_total": "Cache reads that failed with a transport or decoding fault.",
    "xfetch_cache_write_error_total": "Recomputed values that could not be written back.",
    "xfetch_recompute_error_total": "Recompute callbacks that failed or broke their contract.",
    "xfetch_assign_error_total": "Recomputed values that could not be assigned to the holder.",
}


class PrometheusFetcherMetrics(FetcherMetrics):
    """
    Prometheus-backed fetcher metrics adapter.

    One ``Counter`` is registered lazily per metric name and label set.
    Requires `prometheus_client` package.

    Args:
        namespace: Optional prefix for every counter name.
        registry: Collector registry; defaults to the global one.
    """

    def __init__(self, *, namespace: str = "", registry: object | None = None) -> None:
        try:
            from prometheus_client import REGISTRY, Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusFetcherMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._counter_cls = Counter
        self._namespace = namespace
        self._registry = registry if registry is not None else REGISTRY
        self._counters: dict[tuple[str, tuple[str, ...]], object] = {}

    def _counter(self, name: str, label_names: tuple[str, ...]) -> object:
        key = (name, label_names)
        counter = self._counters.get(key)
        if counter is None:
            counter = self._counter_cls(
                name=name,
                documentation=_COUNTER_DOCS.get(name, f"xfetch counter {name}"),
                namespace=self._namespace,
                labelnames=label_names,
                registry=self._registry,
            )
            self._counters[key] = counter
        return counter

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        tags = tags or {}
        label_names = tuple(sorted(tags))
        counter = self._counter(name, label_names)
        if label_names:
            counter = counter.labels(  # type: ignore[attr-defined]
                **{label: str(tags[label]) for label in label_names}
            )
        counter.inc(value)  # type: ignore[attr-defined]
