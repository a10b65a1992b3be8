"""TTL result cache placed in front of the metrics and report computations.

The cache is an optimisation only: every backend failure is logged and
treated as a miss, and callers always recompute on a miss. Keys are scoped
by user so that ``invalidate(user_id)`` can drop everything derived from a
user's ledger whenever a trade is created, updated, deleted or synced.

Concurrent misses on the same key are not coalesced: two requests may both
compute and store the same value. A computation that started before an
``invalidate`` for its user is not written back, so the next read after an
invalidation always misses. The generation counter is process-local.
"""

from __future__ import annotations

import hashlib
import heapq
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol, TypeVar
from urllib.parse import quote

import redis.asyncio as redis

from journal_analytics.core.telemetry import get_meter

from .errors import CacheBackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LOOKUPS = get_meter().create_counter(
    "analytics.cache.lookups",
    description="Result cache lookups by outcome (hit, miss, error)",
)


class CacheBackend(Protocol):
    """Storage capability behind ``ResultCache``."""

    async def get(self, key: str) -> Any | None:
        ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def delete_prefix(self, prefix: str) -> int:
        ...


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float


class InMemoryCacheBackend:
    """Process-local backend; entries are only ever inserted or removed whole."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._expiries: list[tuple[float, str]] = []

    async def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return None
            return entry.value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            expires_at = now + ttl_seconds
            self._entries[key] = CacheEntry(key=key, value=value, expires_at=expires_at)
            heapq.heappush(self._expiries, (expires_at, key))

    def _purge_expired(self, now: float) -> None:
        # heap items may belong to an overwritten entry
        while self._expiries and self._expiries[0][0] <= now:
            expires_at, key = heapq.heappop(self._expiries)
            entry = self._entries.get(key)
            if entry is not None and entry.expires_at == expires_at:
                del self._entries[key]

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._expiries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _escape_glob(value: str) -> str:
    return "".join("\\" + ch if ch in "*?[]\\" else ch for ch in value)


class RedisCacheBackend:
    """Shared backend storing JSON payloads in Redis with ``SET EX``."""

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisCacheBackend:
        return cls(redis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._client.get(key)
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis get failed: {exc}") from exc
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise CacheBackendError(f"Corrupt cache payload under {key}") from exc

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            await self._client.set(key, json.dumps(value, default=str), ex=ttl_seconds)
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis set failed: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis delete failed: {exc}") from exc

    async def delete_prefix(self, prefix: str) -> int:
        try:
            keys = [key async for key in self._client.scan_iter(match=_escape_glob(prefix) + "*")]
            if not keys:
                return 0
            return int(await self._client.delete(*keys))
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis prefix delete failed: {exc}") from exc

    async def close(self) -> None:
        await self._client.aclose()


class ResultCache:
    """User-scoped TTL memoisation over a ``CacheBackend``."""

    def __init__(self, backend: CacheBackend, *, prefix: str = "stk", default_ttl: int = 300):
        self.backend = backend
        self.prefix = prefix
        self.default_ttl = default_ttl
        self._generations: dict[str, int] = {}

    def user_prefix(self, user_id: str) -> str:
        return f"{self.prefix}:{quote(str(user_id), safe='')}:"

    def key_for(self, user_id: str, namespace: str, **params: Any) -> str:
        """Stable key over every parameter that affects the cached result."""

        encoded = json.dumps(params, sort_keys=True, default=str, separators=(",", ":"))
        digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:24]
        return f"{self.user_prefix(user_id)}{namespace}:{digest}"

    def generation(self, user_id: str) -> int:
        return self._generations.get(str(user_id), 0)

    async def get(self, key: str) -> Any | None:
        try:
            value = await self.backend.get(key)
        except CacheBackendError as exc:
            logger.warning("Cache get failed for %s: %s", key, exc)
            _LOOKUPS.add(1, {"outcome": "error"})
            return None
        outcome = "hit" if value is not None else "miss"
        _LOOKUPS.add(1, {"outcome": outcome})
        logger.debug("Cache %s for %s", outcome, key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        try:
            await self.backend.set(key, value, ttl or self.default_ttl)
        except CacheBackendError as exc:
            logger.warning("Cache set failed for %s: %s", key, exc)

    async def invalidate(self, user_id: str) -> int:
        """Drop every entry scoped to ``user_id``; returns the number removed."""

        self._generations[str(user_id)] = self.generation(user_id) + 1
        try:
            removed = await self.backend.delete_prefix(self.user_prefix(user_id))
        except CacheBackendError as exc:
            logger.error("Cache invalidation failed for user %s: %s", user_id, exc)
            return 0
        logger.info("Invalidated %d cached results for user %s", removed, user_id)
        return removed

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        *,
        encode: Callable[[T], Any],
        decode: Callable[[Any], T],
        ttl: int | None = None,
        user_id: str | None = None,
    ) -> T:
        generation = self.generation(user_id) if user_id is not None else 0
        cached = await self.get(key)
        if cached is not None:
            try:
                return decode(cached)
            except ValueError as exc:
                logger.warning("Discarding undecodable cache entry %s: %s", key, exc)
        value = await compute()
        if user_id is not None and self.generation(user_id) != generation:
            logger.debug("Skipping cache write for %s: user %s invalidated during compute", key, user_id)
            return value
        await self.set(key, encode(value), ttl)
        return value


__all__ = [
    "CacheBackend",
    "CacheEntry",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "ResultCache",
]
