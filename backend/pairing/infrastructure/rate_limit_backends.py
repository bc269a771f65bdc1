"""Rate Limit Backends - window counters behind the RateLimiter.

Invariants:
    - hit() increments the counter; the first hit of a window sets its expiry
    - read() never increments
    - Any backend failure surfaces as RateLimitBackendError (fail policy lives in the limiter)

Design Decisions:
    - Redis INCR + EXPIRE: one counter key per (identity, endpoint), expiry = window
    - A key that lost its TTL gets it back on the next hit, so it can never block forever
    - MemoryWindowCounter for single-worker deployments and tests (injectable clock)
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as redis
from redis.exceptions import RedisError

from pairing.core.errors import RateLimitBackendError


@dataclass(frozen=True)
class WindowCount:
    count: int
    ttl_seconds: int


class RedisWindowCounter:
    def __init__(self, client: redis.Redis, prefix: str = "rl"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "rl") -> "RedisWindowCounter":
        return cls(redis.from_url(url, decode_responses=True), prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def hit(self, key: str, window_seconds: int) -> WindowCount:
        rkey = self._key(key)
        try:
            count = await self.client.incr(rkey)
            if count == 1:
                await self.client.expire(rkey, window_seconds)
                return WindowCount(count, window_seconds)
            ttl = await self.client.ttl(rkey)
            if ttl < 0:
                await self.client.expire(rkey, window_seconds)
                ttl = window_seconds
            return WindowCount(int(count), int(ttl))
        except (RedisError, OSError) as e:
            raise RateLimitBackendError(str(e)) from e

    async def read(self, key: str, window_seconds: int) -> WindowCount:
        rkey = self._key(key)
        try:
            raw = await self.client.get(rkey)
            if raw is None:
                return WindowCount(0, window_seconds)
            ttl = await self.client.ttl(rkey)
            return WindowCount(int(raw), int(ttl) if ttl >= 0 else window_seconds)
        except (RedisError, OSError) as e:
            raise RateLimitBackendError(str(e)) from e

    async def close(self) -> None:
        await self.client.aclose()


class MemoryWindowCounter:
    """Process-local counter: {key: (count, expires_at)}."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._windows: dict[str, tuple[int, float]] = {}

    def _live(self, key: str) -> tuple[int, float] | None:
        entry = self._windows.get(key)
        if entry is None:
            return None
        if self.clock() >= entry[1]:
            del self._windows[key]
            return None
        return entry

    async def hit(self, key: str, window_seconds: int) -> WindowCount:
        now = self.clock()
        entry = self._live(key)
        if entry is None:
            entry = (0, now + window_seconds)
        count, expires_at = entry[0] + 1, entry[1]
        self._windows[key] = (count, expires_at)
        return WindowCount(count, max(1, int(expires_at - now + 0.999)))

    async def read(self, key: str, window_seconds: int) -> WindowCount:
        entry = self._live(key)
        if entry is None:
            return WindowCount(0, window_seconds)
        return WindowCount(entry[0], max(1, int(entry[1] - self.clock() + 0.999)))

    async def close(self) -> None:
        self._windows.clear()
