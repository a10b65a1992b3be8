"""Result cache tests."""

from __future__ import annotations

from typing import Any

from journal_analytics.services.cache import InMemoryCacheBackend, ResultCache, _escape_glob
from journal_analytics.services.errors import CacheBackendError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class BrokenBackend:
    async def get(self, key: str) -> Any | None:
        raise CacheBackendError("connection refused")

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise CacheBackendError("connection refused")

    async def delete(self, key: str) -> None:
        raise CacheBackendError("connection refused")

    async def delete_prefix(self, prefix: str) -> int:
        raise CacheBackendError("connection refused")


async def test_invalidate_turns_every_user_key_into_a_miss():
    cache = ResultCache(InMemoryCacheBackend())
    keys = [
        cache.key_for("user-1", "metrics", start="2024-01-01", end="2024-12-31"),
        cache.key_for("user-1", "report", start="2024-03-01", end="2024-03-31", type="monthly"),
        cache.key_for("user-1", "breakdown", dimension="segment"),
    ]
    other = cache.key_for("user-2", "metrics", start="2024-01-01", end="2024-12-31")
    for key in keys + [other]:
        await cache.set(key, {"value": 1})

    removed = await cache.invalidate("user-1")

    assert removed == 3
    for key in keys:
        assert await cache.get(key) is None
    assert await cache.get(other) == {"value": 1}


async def test_user_ids_cannot_collide_on_prefix():
    cache = ResultCache(InMemoryCacheBackend())
    mine = cache.key_for("a", "metrics")
    theirs = cache.key_for("a:b", "metrics")
    await cache.set(mine, 1)
    await cache.set(theirs, 2)

    await cache.invalidate("a")

    assert await cache.get(mine) is None
    assert await cache.get(theirs) == 2


def test_keys_are_stable_and_parameter_sensitive():
    cache = ResultCache(InMemoryCacheBackend(), prefix="stk")

    first = cache.key_for("u", "report", start="2024-01-01", end="2024-01-31", type="custom")
    reordered = cache.key_for("u", "report", type="custom", end="2024-01-31", start="2024-01-01")
    changed = cache.key_for("u", "report", start="2024-01-01", end="2024-02-29", type="custom")

    assert first == reordered
    assert first != changed
    assert first.startswith("stk:u:report:")


async def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = ResultCache(InMemoryCacheBackend(clock=clock), default_ttl=120)
    await cache.set("stk:u:dashboard:abc", {"pnl": "10.00"})

    clock.now += 119
    assert await cache.get("stk:u:dashboard:abc") == {"pnl": "10.00"}
    clock.now += 1
    assert await cache.get("stk:u:dashboard:abc") is None


async def test_get_or_compute_reuses_cached_value():
    cache = ResultCache(InMemoryCacheBackend())
    calls = []

    async def compute() -> int:
        calls.append(1)
        return 42

    for _ in range(3):
        value = await cache.get_or_compute("k", compute, encode=lambda v: v, decode=int)
        assert value == 42

    assert len(calls) == 1


async def test_backend_failures_fall_back_to_recomputation():
    cache = ResultCache(BrokenBackend())
    calls = []

    async def compute() -> str:
        calls.append(1)
        return "fresh"

    assert await cache.get_or_compute("k", compute, encode=str, decode=str) == "fresh"
    assert await cache.get_or_compute("k", compute, encode=str, decode=str) == "fresh"
    assert len(calls) == 2
    assert await cache.invalidate("user") == 0


async def test_undecodable_entry_is_recomputed():
    cache = ResultCache(InMemoryCacheBackend())
    await cache.set("k", "not-a-number")

    async def compute() -> int:
        return 7

    assert await cache.get_or_compute("k", compute, encode=lambda v: v, decode=int) == 7
    assert await cache.get("k") == 7


def test_redis_match_pattern_escapes_glob_characters():
    assert _escape_glob("stk:a*b?:") == "stk:a\\*b\\?:"


async def test_expired_entries_are_reclaimed_on_write():
    clock = FakeClock()
    backend = InMemoryCacheBackend(clock=clock)
    for index in range(1000):
        await backend.set(f"stk:u:metrics:{index}", index, ttl_seconds=1)
        clock.now += 10

    assert len(backend) == 1
    assert await backend.get("stk:u:metrics:999") is None


async def test_overwritten_entry_keeps_its_new_expiry():
    clock = FakeClock()
    backend = InMemoryCacheBackend(clock=clock)
    await backend.set("k", "old", ttl_seconds=5)
    await backend.set("k", "new", ttl_seconds=60)

    clock.now += 10
    await backend.set("other", 1, ttl_seconds=60)

    assert await backend.get("k") == "new"


async def test_result_computed_across_an_invalidation_is_not_stored():
    cache = ResultCache(InMemoryCacheBackend())
    key = cache.key_for("user-1", "metrics")

    async def compute() -> str:
        await cache.invalidate("user-1")
        return "stale"

    assert await cache.get_or_compute(key, compute, encode=str, decode=str, user_id="user-1") == "stale"
    assert await cache.get(key) is None

    async def fresh() -> str:
        return "fresh"

    assert await cache.get_or_compute(key, fresh, encode=str, decode=str, user_id="user-1") == "fresh"
    assert await cache.get(key) == "fresh"
