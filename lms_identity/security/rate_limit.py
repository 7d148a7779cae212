"""Sliding window rate limiters guarding the resolution endpoints."""

from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Final, Protocol

from redis import Redis
from redis.exceptions import RedisError, ResponseError

from ..config import Settings

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def allow(self, key: str) -> bool:
        ...


class InMemoryRateLimiter:
    """Per-process sliding window limiter.

    Keys whose newest hit has left the window are dropped, at most once per
    window, so the table only holds clients seen recently.
    """

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._hits: defaultdict[str, deque[float]] = defaultdict(deque)
        self._lock = Lock()
        self._last_sweep = time.monotonic()

    def _sweep(self, now: float) -> None:
        stale = [key for key, hits in self._hits.items() if not hits or now - hits[-1] > self._window]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now

    def allow(self, key: str) -> bool:
        """Record a hit for ``key`` and report whether it is within the limit."""
        now = time.monotonic()
        with self._lock:
            if now - self._last_sweep > self._window:
                self._sweep(now)
            hits = self._hits[key]
            while hits and now - hits[0] > self._window:
                hits.popleft()
            if len(hits) >= self._max_requests:
                return False
            hits.append(now)
            return True


class RedisRateLimiter:
    """Limiter shared across service replicas, stored in Redis sorted sets."""

    _SCRIPT: Final[str] = """
    local key = KEYS[1]
    local window_ms = tonumber(ARGV[1])
    local limit = tonumber(ARGV[2])
    local now_ms = tonumber(ARGV[3])

    redis.call('ZREMRANGEBYSCORE', key, 0, now_ms - window_ms)
    if redis.call('ZCARD', key) >= limit then
        return 0
    end
    local seq = redis.call('INCR', key .. ':seq')
    redis.call('PEXPIRE', key .. ':seq', window_ms)
    redis.call('ZADD', key, now_ms, now_ms .. ':' .. seq)
    redis.call('PEXPIRE', key, window_ms)
    return 1
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "lms-identity:rate",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._script = client.register_script(self._SCRIPT)

    def allow(self, key: str) -> bool:
        now_ms = int(time.time() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        try:
            return int(self._script(keys=[redis_key], args=[self._window_ms, self._max_requests, now_ms])) == 1
        except ResponseError as exc:
            if "unknown command" not in str(exc).lower():
                raise
            # servers without scripting
            return self._allow_without_script(redis_key, now_ms)

    def _allow_without_script(self, redis_key: str, now_ms: int) -> bool:
        self._client.zremrangebyscore(redis_key, 0, now_ms - self._window_ms)
        if self._client.zcard(redis_key) >= self._max_requests:
            return False
        seq = self._client.incr(f"{redis_key}:seq")
        self._client.pexpire(f"{redis_key}:seq", self._window_ms)
        self._client.zadd(redis_key, {f"{now_ms}:{seq}": now_ms})
        self._client.pexpire(redis_key, self._window_ms)
        return True


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Return the configured limiter, falling back to memory when Redis is unreachable."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            client = Redis.from_url(settings.redis_url)
            client.ping()
        except RedisError as exc:
            logger.warning("redis rate limiter unavailable, using in-memory limiter: %s", exc)
        else:
            logger.info("rate limiter using redis backend")
            return RedisRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
    logger.info("rate limiter using in-memory backend")
    return InMemoryRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
