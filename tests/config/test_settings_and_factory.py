from __future__ import annotations

import asyncio

import pytest

from xfetch import (
    Fetcher,
    FetcherSettings,
    JSONText,
    NoOpFetcherMetrics,
    PrometheusFetcherMetrics,
    Recomputed,
    Ref,
)
from xfetch.cache import InMemoryCache, RedisCache, create_cache_from_env

_ENV_NAMES = (
    "XFETCH_BETA",
    "XFETCH_RECOMPUTE_ON_CACHE_FAILURE",
    "XFETCH_SEED",
    "XFETCH_TIMEOUT_S",
    "XFETCH_CACHE_BACKEND",
    "XFETCH_REDIS_PREFIX",
    "XFETCH_REDIS_URL",
    "XFETCH_REDIS_HOST",
    "XFETCH_REDIS_PORT",
    "XFETCH_REDIS_DB",
    "XFETCH_REDIS_PASSWORD",
    "REDIS_URL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_settings_defaults_from_empty_env():
    assert FetcherSettings.from_env() == FetcherSettings()
    assert FetcherSettings() == FetcherSettings(1.0, False, None, None)


def test_settings_read_from_env(monkeypatch):
    monkeypatch.setenv("XFETCH_BETA", "2.5")
    monkeypatch.setenv("XFETCH_RECOMPUTE_ON_CACHE_FAILURE", "yes")
    monkeypatch.setenv("XFETCH_SEED", "42")
    monkeypatch.setenv("XFETCH_TIMEOUT_S", "0.75")

    settings = FetcherSettings.from_env()

    assert settings == FetcherSettings(
        beta=2.5, recompute_on_cache_failure=True, seed=42, timeout_s=0.75
    )


def test_settings_reject_invalid_values(monkeypatch):
    with pytest.raises(ValueError, match="beta must be >= 0"):
        FetcherSettings(beta=-1.0)
    with pytest.raises(ValueError, match="timeout_s must be > 0"):
        FetcherSettings(timeout_s=0.0)

    monkeypatch.setenv("XFETCH_RECOMPUTE_ON_CACHE_FAILURE", "maybe")
    with pytest.raises(ValueError, match="XFETCH_RECOMPUTE_ON_CACHE_FAILURE"):
        FetcherSettings.from_env()


def test_fetcher_from_settings_applies_overrides():
    settings = FetcherSettings(beta=3.0, recompute_on_cache_failure=True)

    fetcher = Fetcher.from_settings(settings)
    tuned = Fetcher.from_settings(settings, beta=0.0)

    assert (fetcher.beta, fetcher.recompute_on_cache_failure) == (3.0, True)
    assert (tuned.beta, tuned.recompute_on_cache_failure) == (0.0, True)


def test_factory_defaults_to_inmemory(monkeypatch):
    assert isinstance(create_cache_from_env(), InMemoryCache)

    monkeypatch.setenv("XFETCH_CACHE_BACKEND", " Memory ")
    assert isinstance(create_cache_from_env(), InMemoryCache)


def test_factory_builds_redis_cache_with_injected_client(monkeypatch):
    client = object()
    monkeypatch.setenv("XFETCH_CACHE_BACKEND", "redis")
    monkeypatch.setenv("XFETCH_REDIS_PREFIX", "app")

    cache = create_cache_from_env(redis_client=client)

    assert isinstance(cache, RedisCache)
    assert cache._redis is client  # noqa: SLF001
    assert cache._key("k") == "app:k"  # noqa: SLF001
    assert cache._delta_key("k") == "app:k:delta"  # noqa: SLF001


def test_factory_builds_redis_client_from_url(monkeypatch):
    pytest.importorskip("redis.asyncio")
    monkeypatch.setenv("XFETCH_CACHE_BACKEND", "redis")
    monkeypatch.setenv("XFETCH_REDIS_URL", "redis://cache.internal:6380/2")

    cache = create_cache_from_env()

    kwargs = cache._redis.connection_pool.connection_kwargs  # noqa: SLF001
    assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("cache.internal", 6380, 2)


def test_factory_passes_password_with_url_characters_verbatim(monkeypatch):
    pytest.importorskip("redis.asyncio")
    monkeypatch.setenv("XFETCH_CACHE_BACKEND", "redis")
    monkeypatch.setenv("XFETCH_REDIS_HOST", "cachehost")
    monkeypatch.setenv("XFETCH_REDIS_PORT", "6390")
    monkeypatch.setenv("XFETCH_REDIS_DB", "3")
    monkeypatch.setenv("XFETCH_REDIS_PASSWORD", "p@ss/w#rd")

    cache = create_cache_from_env()

    kwargs = cache._redis.connection_pool.connection_kwargs  # noqa: SLF001
    assert (kwargs["host"], kwargs["port"], kwargs["db"], kwargs["password"]) == (
        "cachehost",
        6390,
        3,
        "p@ss/w#rd",
    )


def test_factory_defaults_redis_host_settings(monkeypatch):
    pytest.importorskip("redis.asyncio")
    monkeypatch.setenv("XFETCH_CACHE_BACKEND", "redis")

    cache = create_cache_from_env()

    kwargs = cache._redis.connection_pool.connection_kwargs  # noqa: SLF001
    assert (kwargs["host"], kwargs["port"], kwargs["db"]) == ("localhost", 6379, 0)
    assert kwargs.get("password") is None


def test_factory_rejects_malformed_redis_port(monkeypatch):
    pytest.importorskip("redis.asyncio")
    monkeypatch.setenv("XFETCH_CACHE_BACKEND", "redis")
    monkeypatch.setenv("XFETCH_REDIS_PORT", "sixthousand")

    with pytest.raises(ValueError, match="XFETCH_REDIS_PORT must be an integer"):
        create_cache_from_env()


def test_factory_rejects_unknown_backend(monkeypatch):
    monkeypatch.setenv("XFETCH_CACHE_BACKEND", "memcached")

    with pytest.raises(ValueError, match="Unknown XFETCH_CACHE_BACKEND: memcached"):
        create_cache_from_env()


def test_noop_metrics_accepts_tags():
    NoOpFetcherMetrics().incr("xfetch_refresh_total", tags={"reason": "miss"})


def test_prometheus_metrics_count_fetch_outcomes():
    prometheus_client = pytest.importorskip("prometheus_client")
    registry = prometheus_client.CollectorRegistry()
    metrics = PrometheusFetcherMetrics(registry=registry)
    fetcher = Fetcher(1.0, randomizer=lambda: 0.01, metrics=metrics)
    cache = InMemoryCache()

    def recompute():
        return Recomputed(JSONText(Ref(str, "v")), 60.0)

    for _ in range(2):
        result = asyncio.run(fetcher.fetch(cache, "k", JSONText(Ref(str)), recompute))
        assert result.ok

    assert registry.get_sample_value("xfetch_refresh_total", {"reason": "miss"}) == 1.0
    assert registry.get_sample_value("xfetch_cache_hit_total") == 1.0


def test_prometheus_counters_carry_xfetch_help_text():
    prometheus_client = pytest.importorskip("prometheus_client")
    registry = prometheus_client.CollectorRegistry()
    metrics = PrometheusFetcherMetrics(namespace="svc", registry=registry)

    metrics.incr("xfetch_refresh_total", tags={"reason": "early"})
    metrics.incr("xfetch_refresh_total", 2, tags={"reason": "early"})

    docs = {family.name: family.documentation for family in registry.collect()}
    assert docs["svc_xfetch_refresh"].startswith("Recomputations started, by reason")
    assert registry.get_sample_value("svc_xfetch_refresh_total", {"reason": "early"}) == 3.0
