"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Build a cache backend from `XFETCH_*` environment variables.
"""

from __future__ import annotations

import os
from typing import Any

from ..types import Cache
from .inmemory import InMemoryCache

_INMEMORY_NAMES = ("mem", "memory", "inmemory", "in_memory")


def _env(*names: str) -> str | None:
    """Return the first of `names` set to a non-blank value, stripped."""
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return None


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _redis_client_from_env() -> Any:
    """
    Build a `redis.asyncio.Redis` client.

    `XFETCH_REDIS_URL` (or `REDIS_URL`) wins. Without a URL the client is
    built from `XFETCH_REDIS_HOST`, `_PORT`, `_DB` and `_PASSWORD` passed as
    separate connection arguments, so credentials are never parsed as a URL.
    """
    try:
        import redis.asyncio as redis
    except ModuleNotFoundError as exc:  # pragma: no cover
        raise RuntimeError(
            "Redis cache backend requires `redis` to be installed."
        ) from exc

    url = _env("XFETCH_REDIS_URL", "REDIS_URL")
    if url is not None:
        return redis.Redis.from_url(url)
    return redis.Redis(
        host=_env("XFETCH_REDIS_HOST") or "localhost",
        port=_env_int("XFETCH_REDIS_PORT", 6379),
        db=_env_int("XFETCH_REDIS_DB", 0),
        password=_env("XFETCH_REDIS_PASSWORD"),
    )


def create_cache_from_env(*, redis_client: Any | None = None) -> Cache:
    """
    Create the cache backend named by `XFETCH_CACHE_BACKEND`.

    - `inmemory` (default; also `mem`, `memory`, `in_memory`)
    - `redis`: uses `redis_client` when supplied, otherwise builds one from
      the environment. Keys are namespaced by `XFETCH_REDIS_PREFIX`.

    Raises:
        ValueError: Unknown backend name or malformed Redis settings.
    """
    backend = (os.getenv("XFETCH_CACHE_BACKEND") or "inmemory").strip().lower()

    if backend in _INMEMORY_NAMES:
        return InMemoryCache()
    if backend != "redis":
        raise ValueError(f"Unknown XFETCH_CACHE_BACKEND: {backend}")

    from .redis import RedisCache

    client = redis_client if redis_client is not None else _redis_client_from_env()
    return RedisCache(client, prefix=_env("XFETCH_REDIS_PREFIX") or "")
