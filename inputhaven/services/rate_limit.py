"""Per-IP admission control.

Primary: Redis sorted-set sliding window, shared by every instance.
Fallback: in-process fixed window, used only when Redis errors out.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass

from redis.exceptions import RedisError

from inputhaven.core.config import get_settings
from inputhaven.core.logging import get_logger

log = get_logger(__name__)

KEY_PREFIX = "ratelimit"
STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    backend: str = "redis"


class RedisSlidingWindowLimiter:
    """Counts requests in the trailing window with one MULTI/EXEC per call.

    A request that lands over the limit removes its own entry again so that
    rejected traffic does not extend the block.
    """

    def __init__(self, redis, name: str, limit: int, window_seconds: int):
        self.redis = redis
        self.name = name
        self.limit_count = limit
        self.window_ms = window_seconds * 1000

    def _key(self, key: str) -> str:
        return f"{KEY_PREFIX}:{self.name}:{key}"

    async def limit(self, key: str) -> RateLimitResult:
        rkey = self._key(key)
        now_ms = int(time.time() * 1000)
        member = f"{now_ms}:{uuid.uuid4().hex}"
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(rkey, 0, now_ms - self.window_ms)
            pipe.zadd(rkey, {member: now_ms})
            pipe.zcard(rkey)
            pipe.pexpire(rkey, self.window_ms)
            _, _, count, _ = await pipe.execute()
        if count > self.limit_count:
            await self.redis.zrem(rkey, member)
            return RateLimitResult(allowed=False, limit=self.limit_count, remaining=0)
        return RateLimitResult(allowed=True, limit=self.limit_count, remaining=self.limit_count - count)


class MemoryRateLimiter:
    """Per-process fixed window. Less precise near window edges and not shared
    across instances."""

    CLEANUP_THRESHOLD = 10_000

    def __init__(self, limit: int, window_seconds: int):
        self.limit_count = limit
        self.window = float(window_seconds)
        self._store: dict[str, tuple[int, float]] = {}

    def limit(self, key: str, now: float | None = None) -> RateLimitResult:
        now = time.monotonic() if now is None else now
        self._cleanup(now)
        count, reset_at = self._store.get(key, (0, 0.0))
        if now >= reset_at:
            self._store[key] = (1, now + self.window)
            return RateLimitResult(True, self.limit_count, self.limit_count - 1, backend="memory")
        if count >= self.limit_count:
            return RateLimitResult(False, self.limit_count, 0, backend="memory")
        self._store[key] = (count + 1, reset_at)
        return RateLimitResult(True, self.limit_count, self.limit_count - count - 1, backend="memory")

    def _cleanup(self, now: float) -> None:
        if len(self._store) <= self.CLEANUP_THRESHOLD:
            return
        for k in [k for k, (_, reset_at) in self._store.items() if now >= reset_at]:
            del self._store[k]

    def reset(self) -> None:
        self._store.clear()


class FallbackRateLimiter:
    """Primary/fallback pair: store errors switch to the in-process limiter;
    a normal rejection from the primary is final."""

    def __init__(self, primary: RedisSlidingWindowLimiter, fallback: MemoryRateLimiter):
        self.primary = primary
        self.fallback = fallback

    async def limit(self, key: str) -> RateLimitResult:
        try:
            return await self.primary.limit(key)
        except STORE_ERRORS as e:
            log.error("rate_limit_fallback", limiter=self.primary.name, error=str(e))
            return self.fallback.limit(key)


def _limits() -> dict[str, tuple[int, int]]:
    s = get_settings()
    return {
        "submission": (s.submission_rate_limit, s.submission_rate_window_seconds),
        "api": (s.api_rate_limit, s.api_rate_window_seconds),
    }


_fallbacks: dict[str, MemoryRateLimiter] = {}


def get_fallback_limiter(name: str) -> MemoryRateLimiter:
    if name not in _fallbacks:
        limit, window = _limits()[name]
        _fallbacks[name] = MemoryRateLimiter(limit, window)
    return _fallbacks[name]


def get_rate_limiter(redis, name: str) -> FallbackRateLimiter:
    """Limiter named 'submission' or 'api'; the fallback state is process-wide."""
    limit, window = _limits()[name]
    return FallbackRateLimiter(
        RedisSlidingWindowLimiter(redis, name, limit, window),
        get_fallback_limiter(name),
    )
