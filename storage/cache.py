"""Key-value cache with expiry.

Backend is selected at startup via the REDIS_URL environment variable:
  - REDIS_URL=none (or unset) → in-process MemoryCache (default / fallback)
  - REDIS_URL=redis://...     → RedisCache (redis.asyncio), keys prefixed with REDIS_KEY_PREFIX

Both backends expose the same async surface, so handlers take either one.
"""
import json
import time
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError

from common.logger import get_logger
from config.settings import REDIS_KEY_PREFIX, REDIS_URL

logger = get_logger("cache")

T = TypeVar("T")


class CacheError(Exception):
    """The cache backend could not complete an operation."""


class MemoryCache:
    """Single-process stand-in for Redis."""

    SWEEP_INTERVAL = 60

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._values: dict[str, tuple[str, Optional[float]]] = {}
        # key -> (hit timestamps, expires_at), mirroring EXPIRE on the Redis sorted set
        self._windows: dict[str, tuple[list[float], float]] = {}
        self._last_sweep: Optional[float] = None

    def _sweep(self, now: float) -> None:
        """Drop expired values and windows, at most once per SWEEP_INTERVAL."""
        if self._last_sweep is not None and 0 <= now - self._last_sweep < self.SWEEP_INTERVAL:
            return
        self._last_sweep = now
        clock_now = self._clock()
        self._values = {k: v for k, v in self._values.items()
                        if v[1] is None or v[1] > clock_now}
        self._windows = {k: w for k, w in self._windows.items() if w[1] > now}

    async def get(self, key: str) -> Optional[str]:
        item = self._values.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and expires_at <= self._clock():
            del self._values[key]
            return None
        return value

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        now = self._clock()
        self._sweep(now)
        expires_at = now + ex if ex else None
        self._values[key] = (value, expires_at)

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    async def hit_window(self, key: str, now: float, interval: int) -> int:
        self._sweep(now)
        previous, _ = self._windows.get(key, ([], now))
        hits = [t for t in previous if t > now - interval]
        hits.append(now)
        self._windows[key] = (hits, now + interval)
        return len(hits)

    async def close(self) -> None:
        self._values.clear()
        self._windows.clear()


class RedisCache:
    def __init__(self, client: "redis.Redis", prefix: str = REDIS_KEY_PREFIX):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = REDIS_KEY_PREFIX) -> "RedisCache":
        client = redis.from_url(url, decode_responses=True, health_check_interval=30)
        return cls(client, prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.client.get(self._key(key))
        except RedisError as e:
            raise CacheError(f"get {key}: {e}") from e

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        try:
            await self.client.set(self._key(key), value, ex=ex)
        except RedisError as e:
            raise CacheError(f"set {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(self._key(key))
        except RedisError as e:
            raise CacheError(f"delete {key}: {e}") from e

    async def hit_window(self, key: str, now: float, interval: int) -> int:
        """Record a hit in a sorted-set sliding window and return the window size."""
        k = self._key(key)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(k, 0, now - interval)
                pipe.zadd(k, {f"{now}-{uuid.uuid4().hex[:8]}": now})
                pipe.zcard(k)
                pipe.expire(k, interval)
                results = await pipe.execute()
        except RedisError as e:
            raise CacheError(f"rate window {key}: {e}") from e
        return int(results[2])

    async def close(self) -> None:
        await self.client.aclose()


def create_cache(url: str = REDIS_URL):
    if url.lower() in ("none", "", "null"):
        logger.info("[MEM] Cache backend: in-process")
        return MemoryCache()
    logger.info(f"[REDIS] Cache backend: {url.split('@')[-1]}")
    return RedisCache.from_url(url)


# ── JSON helpers ───────────────────────────────────────────────────────────────

async def get_json(cache, key: str) -> Any:
    raw = await cache.get(key)
    return json.loads(raw) if raw else None


async def set_json(cache, key: str, value: Any, ex: Optional[int] = None) -> None:
    await cache.set(key, json.dumps(value, default=str), ex=ex)


async def with_cache(cache, key: str, ex: int, fn: Callable[[], Awaitable[T]]) -> T:
    """Return the cached value for *key*, or compute it with *fn* and cache it for *ex* seconds.

    Falsy results are returned but not cached.
    """
    value = await get_json(cache, key)
    if value:
        return value
    result = await fn()
    if result:
        await set_json(cache, key, result, ex=ex)
    return result


# ── Rate limiting ──────────────────────────────────────────────────────────────

@dataclass
class RateLimitResult:
    success: bool
    current: int
    limit: int
    remaining: int
    reset: int

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset),
        }


async def rate_limit(cache, unique_key: str, interval: int, limit: int,
                     now: Optional[float] = None) -> RateLimitResult:
    """Sliding-window limiter. A failing backend lets the request through."""
    now = int(now if now is not None else time.time())
    try:
        count = await cache.hit_window(f"rate_limit:{unique_key}", now, interval)
    except CacheError as e:
        logger.error(f"Rate limit error: {e}")
        return RateLimitResult(True, 1, limit, limit - 1, now + interval)
    return RateLimitResult(
        success=count <= limit,
        current=count,
        limit=limit,
        remaining=max(0, limit - count),
        reset=now + interval,
    )
