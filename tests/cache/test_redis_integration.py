from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field

import pytest

from xfetch import Fetcher, JSONText, Recomputed, Ref, StructRecord
from xfetch.cache import RedisCache


def _redis_url() -> str | None:
    return os.getenv("XFETCH_TEST_REDIS_URL")


@dataclass
class Session:
    user: str = ""
    visits: int = 0
    roles: list[str] = field(default_factory=list)


@pytest.mark.skipif(_redis_url() is None, reason="XFETCH_TEST_REDIS_URL is not set")
@pytest.mark.asyncio
async def test_redis_value_and_delta_round_trip_with_real_redis():
    redis = pytest.importorskip("redis.asyncio")
    client = redis.Redis.from_url(_redis_url())
    prefix = f"itest:xfetch:{uuid.uuid4().hex}"
    cache = RedisCache(client, prefix=prefix)

    try:
        await cache.update(
            "session",
            ttl_s=30.0,
            delta_s=0.5,
            fetchable=StructRecord(Session("ada", 3, ["admin"])),
        )
        # Stale fields from an older record must not survive a rewrite.
        await cache.update(
            "session",
            ttl_s=30.0,
            delta_s=0.25,
            fetchable=StructRecord(Session("bob")),
        )

        holder = Session()
        delta_s, ttl_s = await cache.read("session", StructRecord(holder))

        assert holder == Session("bob", 0, [])
        assert delta_s == 0.25
        assert 0 < ttl_s <= 30.0
        assert await client.pttl(f"{prefix}:session:delta") > 0

        missing = Ref(str, "untouched")
        assert await cache.read("missing", JSONText(missing)) == (0.0, 0.0)
        assert missing.value == "untouched"
    finally:
        keys = await client.keys(f"{prefix}:*")
        if keys:
            await client.delete(*keys)
        await client.aclose()


@pytest.mark.skipif(_redis_url() is None, reason="XFETCH_TEST_REDIS_URL is not set")
@pytest.mark.asyncio
async def test_fetcher_recomputes_once_then_serves_from_real_redis():
    redis = pytest.importorskip("redis.asyncio")
    client = redis.Redis.from_url(_redis_url())
    prefix = f"itest:xfetch:{uuid.uuid4().hex}"
    cache = RedisCache(client, prefix=prefix)
    fetcher = Fetcher(1.0, randomizer=lambda: 1.0)
    calls: list[int] = []

    async def recompute():
        calls.append(1)
        return Recomputed(JSONText(Ref(str, "fresh")), 60.0)

    try:
        first = Ref(str)
        assert await fetcher.fetch(cache, "k", JSONText(first), recompute) == (True, None)
        second = Ref(str)
        assert await fetcher.fetch(cache, "k", JSONText(second), recompute) == (True, None)

        assert first.value == second.value == "fresh"
        assert calls == [1]
    finally:
        keys = await client.keys(f"{prefix}:*")
        if keys:
            await client.delete(*keys)
        await client.aclose()
