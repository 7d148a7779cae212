"""Tests for the sliding window rate limiters."""

from __future__ import annotations

import time

import fakeredis
import pytest

from lms_identity.config import Settings
from lms_identity.security import rate_limit
from lms_identity.security.rate_limit import InMemoryRateLimiter, RedisRateLimiter, build_rate_limiter


@pytest.fixture()
def redis_client() -> fakeredis.FakeStrictRedis:
    client = fakeredis.FakeStrictRedis()
    client.flushall()
    return client


def test_in_memory_limiter_blocks_excess_and_recovers(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limit.time, "monotonic", lambda: clock[0])
    limiter = InMemoryRateLimiter(max_requests=2, window_seconds=10)

    assert limiter.allow("resolve:10.0.0.1")
    assert limiter.allow("resolve:10.0.0.1")
    assert not limiter.allow("resolve:10.0.0.1")
    assert limiter.allow("resolve:10.0.0.2")

    clock[0] += 11
    assert limiter.allow("resolve:10.0.0.1")


def test_in_memory_limiter_forgets_idle_clients(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limit.time, "monotonic", lambda: clock[0])
    limiter = InMemoryRateLimiter(max_requests=2, window_seconds=10)

    for octet in range(50):
        assert limiter.allow(f"resolve:10.0.0.{octet}")
    assert len(limiter._hits) == 50

    clock[0] += 11
    assert limiter.allow("resolve:10.0.1.1")

    assert list(limiter._hits) == ["resolve:10.0.1.1"]


def test_in_memory_limiter_keeps_blocked_client_through_sweep(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limit.time, "monotonic", lambda: clock[0])
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=10)

    clock[0] += 6
    assert limiter.allow("token:10.0.0.1")
    clock[0] += 5
    assert not limiter.allow("token:10.0.0.1")
    assert "token:10.0.0.1" in limiter._hits


def test_redis_limiter_allows_within_threshold(redis_client):
    limiter = RedisRateLimiter(redis_client, max_requests=3, window_seconds=1, key_prefix="test")
    key = "resolve:10.0.0.1"
    assert limiter.allow(key)
    assert limiter.allow(key)
    assert limiter.allow(key)


def test_redis_limiter_blocks_excess(redis_client):
    limiter = RedisRateLimiter(redis_client, max_requests=2, window_seconds=1, key_prefix="test")
    key = "token:10.0.0.1"
    assert limiter.allow(key)
    assert limiter.allow(key)
    assert not limiter.allow(key)


def test_redis_limiter_expires_entries(redis_client):
    limiter = RedisRateLimiter(redis_client, max_requests=1, window_seconds=1, key_prefix="test")
    key = "resolve:10.0.0.1"
    assert limiter.allow(key)
    assert not limiter.allow(key)
    time.sleep(1.1)
    assert limiter.allow(key)


def test_build_rate_limiter_defaults_to_memory():
    limiter = build_rate_limiter(Settings(rate_limit_backend="memory"))

    assert isinstance(limiter, InMemoryRateLimiter)


def test_build_rate_limiter_falls_back_when_redis_unreachable():
    settings = Settings(rate_limit_backend="redis", redis_url="redis://127.0.0.1:1/0")

    assert isinstance(build_rate_limiter(settings), InMemoryRateLimiter)
