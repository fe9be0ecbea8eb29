"""Key-value storage for ephemeral state, Redis first with an in-memory fallback.

Intake sessions live here.  When Redis is configured and reachable every
process shares the same sessions; otherwise (local development, tests, a
Redis outage) the store degrades to a process-local LRU so a conversation
never blocks on a missing backend.  Values are JSON, encoded with orjson.
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import time
from collections import OrderedDict
from typing import Any, Protocol, runtime_checkable

import orjson
import structlog

logger = structlog.get_logger(__name__)


@runtime_checkable
class CacheBackend(Protocol):
    """Async byte-level backend interface."""

    async def get(self, key: str) -> bytes | None: ...

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None: ...

    async def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisCacheBackend:
    """``redis.asyncio`` backend over a shared connection pool."""

    __slots__ = ("_pool", "_redis")

    def __init__(self, url: str, *, max_connections: int = 20) -> None:
        import redis.asyncio as aioredis

        self._pool = aioredis.ConnectionPool.from_url(
            url,
            max_connections=max_connections,
            decode_responses=False,
        )
        self._redis = aioredis.Redis(connection_pool=self._pool)

    async def get(self, key: str) -> bytes | None:
        return await self._redis.get(key)

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        await self._redis.set(key, value, ex=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._redis.delete(key)

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except Exception:
            return False

    async def close(self) -> None:
        await self._redis.aclose()
        await self._pool.aclose()


# ---------------------------------------------------------------------------
# In-memory LRU backend
# ---------------------------------------------------------------------------


class _Entry:
    __slots__ = ("expires_at", "value")

    def __init__(self, value: bytes, ttl_seconds: int | None) -> None:
        self.value = value
        self.expires_at: float | None = None if ttl_seconds is None else time.monotonic() + ttl_seconds

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() > self.expires_at


class InMemoryCacheBackend:
    """Bounded LRU with per-entry TTL.

    Expired entries are dropped when touched; the least recently used
    entry is dropped when the map is full.
    """

    __slots__ = ("_data", "_lock", "_max_size")

    def __init__(self, *, max_size: int = 10_000) -> None:
        self._max_size = max_size
        self._data: OrderedDict[str, _Entry] = OrderedDict()
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.expired:
                del self._data[key]
                return None
            self._data.move_to_end(key)
            return entry.value

    async def set(self, key: str, value: bytes, ttl_seconds: int | None = None) -> None:
        async with self._lock:
            self._data.pop(key, None)
            while len(self._data) >= self._max_size:
                self._data.popitem(last=False)
            self._data[key] = _Entry(value, ttl_seconds)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    @property
    def size(self) -> int:
        """Number of stored entries, expired ones included."""
        return len(self._data)


# ---------------------------------------------------------------------------
# CacheManager
# ---------------------------------------------------------------------------


def stable_hash(text: str) -> str:
    """Deterministic, key-safe digest (used to keep phone numbers out of keys)."""
    return hashlib.sha256(text.encode()).hexdigest()[:16]


class CacheManager:
    """JSON cache facade with Redis -> in-memory failover.

    Parameters
    ----------
    redis_url:
        Redis connection string.  *None* or ``""`` skips Redis entirely.
    namespace:
        Prefix for every key, e.g. ``"intake:"``.
    inmemory_max_size:
        Capacity of the in-memory fallback.
    """

    __slots__ = ("_fallback", "_namespace", "_redis", "_redis_available", "_redis_checked")

    def __init__(
        self,
        *,
        redis_url: str | None = None,
        namespace: str = "",
        inmemory_max_size: int = 10_000,
    ) -> None:
        self._namespace = namespace
        self._fallback = InMemoryCacheBackend(max_size=inmemory_max_size)
        self._redis: RedisCacheBackend | None = None
        self._redis_available = False
        self._redis_checked = False

        if redis_url:
            try:
                self._redis = RedisCacheBackend(redis_url)
            except Exception:
                logger.warning("cache.redis_init_failed")
                self._redis = None

    @property
    def backend_name(self) -> str:
        return "redis" if self._redis_available else "memory"

    async def _ensure_checked(self) -> None:
        if self._redis is None or self._redis_checked:
            return
        self._redis_checked = True
        self._redis_available = await self._redis.ping()
        if self._redis_available:
            logger.info("cache.redis_connected", namespace=self._namespace)
        else:
            logger.warning("cache.redis_unavailable_using_inmemory", namespace=self._namespace)

    async def _call(self, method: str, key: str, *args: Any, **kwargs: Any) -> Any:
        await self._ensure_checked()
        full_key = f"{self._namespace}{key}"
        if self._redis_available and self._redis is not None:
            try:
                return await getattr(self._redis, method)(full_key, *args, **kwargs)
            except Exception:
                logger.warning("cache.redis_op_failed", method=method)
                self._redis_available = False
        return await getattr(self._fallback, method)(full_key, *args, **kwargs)

    async def get(self, key: str, default: Any = None) -> Any:
        raw: bytes | None = await self._call("get", key)
        if raw is None:
            return default
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError:
            logger.warning("cache.corrupt_entry", namespace=self._namespace)
            return default

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        await self._call("set", key, orjson.dumps(value), ttl_seconds=ttl_seconds)

    async def delete(self, key: str) -> None:
        await self._call("delete", key)

    async def close(self) -> None:
        if self._redis is not None:
            with contextlib.suppress(Exception):
                await self._redis.close()
