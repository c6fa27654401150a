"""
Module: backend/utils/ratelimit.py
Fixed-window request throttling keyed by client identity.

The default store lives in process memory, so every instance behind a load
balancer enforces its own budget. Setting REDIS_URL moves the counters to
Redis and shares them between instances.
"""
from __future__ import annotations
import logging
import math
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps
from typing import Callable, Dict, Optional, Protocol

import redis
from flask import jsonify, make_response, request

from utils.config_handler import load_config

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimitConfig:
    window_seconds: float
    max_requests: int


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float  # epoch seconds

    def retry_after(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        return max(0, math.ceil(self.reset_at - now))


RATE_LIMIT_PRESETS: Dict[str, RateLimitConfig] = {
    "strict": RateLimitConfig(window_seconds=60, max_requests=10),     # expensive operations
    "normal": RateLimitConfig(window_seconds=60, max_requests=60),
    "relaxed": RateLimitConfig(window_seconds=60, max_requests=120),   # public reads, beacons
    "auth": RateLimitConfig(window_seconds=60, max_requests=5),        # login / register
    "ai": RateLimitConfig(window_seconds=60, max_requests=20),         # embedding / assistant calls
}


class RateLimitStore(Protocol):
    def hit(self, key: str, window_seconds: float, now: float) -> tuple[int, float]:
        """Count one request for ``key``; return (count in window, reset_at)."""
        ...

    def clear(self) -> None:
        ...


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


class MemoryRateLimitStore:
    """Per-process counters. Expired entries are swept at most once per interval."""

    def __init__(self, sweep_interval: float = SWEEP_INTERVAL_SECONDS, clock: Callable[[], float] = time.time):
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._last_sweep = clock()

    def hit(self, key: str, window_seconds: float, now: float) -> tuple[int, float]:
        with self._lock:
            if now - self._last_sweep >= self._sweep_interval:
                self._sweep_locked(now)
            entry = self._entries.get(key)
            if entry is None or entry.reset_at < now:
                entry = RateLimitEntry(count=0, reset_at=now + window_seconds)
                self._entries[key] = entry
            entry.count += 1
            return entry.count, entry.reset_at

    def sweep(self, now: float | None = None) -> int:
        with self._lock:
            return self._sweep_locked(self._clock() if now is None else now)

    def _sweep_locked(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if e.reset_at < now]
        for k in expired:
            del self._entries[k]
        self._last_sweep = now
        return len(expired)

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            return self._entries.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class RedisRateLimitStore:
    """Counters shared across instances; Redis expiry replaces the sweep."""

    def __init__(self, client: "redis.Redis", prefix: str = "rl:"):
        self._redis = client
        self._prefix = prefix

    def hit(self, key: str, window_seconds: float, now: float) -> tuple[int, float]:
        rkey = f"{self._prefix}{key}"
        window_ms = int(window_seconds * 1000)
        pipe = self._redis.pipeline()
        pipe.incr(rkey)
        pipe.pttl(rkey)
        count, ttl_ms = pipe.execute()
        if int(count) == 1 or int(ttl_ms) < 0:
            self._redis.pexpire(rkey, window_ms)
            ttl_ms = window_ms
        return int(count), now + int(ttl_ms) / 1000.0

    def clear(self) -> None:
        for k in self._redis.scan_iter(f"{self._prefix}*"):
            self._redis.delete(k)


_store: RateLimitStore | None = None
_store_lock = threading.Lock()


def _build_default_store() -> RateLimitStore:
    url = load_config().get("redis_url")
    if url:
        try:
            client = redis.Redis.from_url(url, decode_responses=True)
            client.ping()
            logger.info("rate limiter using redis store")
            return RedisRateLimitStore(client)
        except redis.RedisError as e:
            logger.warning("redis unavailable for rate limiting, using memory store: %s", e)
    return MemoryRateLimitStore()


def get_store() -> RateLimitStore:
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = _build_default_store()
    return _store


def set_store(store: RateLimitStore | None) -> None:
    global _store
    _store = store


def check_rate_limit(
    identity: str,
    config: RateLimitConfig,
    store: RateLimitStore | None = None,
    now: float | None = None,
) -> RateLimitResult:
    store = store if store is not None else get_store()
    now = time.time() if now is None else now
    count, reset_at = store.hit(identity, config.window_seconds, now)
    return RateLimitResult(
        allowed=count <= config.max_requests,
        remaining=max(0, config.max_requests - count),
        reset_at=reset_at,
    )


def _normalize_ip(ip: str | None) -> str:
    s = (ip or '').strip()
    if s.startswith('::ffff:') and s.count(':') >= 2:
        s = s.split(':')[-1]
    if s.startswith('[') and s.endswith(']'):
        s = s[1:-1]
    return s


def get_client_identity() -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer.

    Requests carrying none of these share the ``unknown`` bucket.
    """
    forwarded = request.headers.get('X-Forwarded-For', '')
    ip = (
        (forwarded.split(',')[0].strip() if forwarded else '')
        or request.headers.get('X-Real-IP', '').strip()
        or request.remote_addr
        or ''
    )
    return _normalize_ip(ip) or 'unknown'


def _reset_header(reset_at: float) -> str:
    return datetime.fromtimestamp(reset_at, tz=timezone.utc).isoformat()


def rate_limit(limit: str | RateLimitConfig = "normal") -> Callable:
    """
    Throttle a view. ``limit`` is a preset name or an explicit config.
    Rejections are 429 with X-RateLimit-Remaining / Retry-After headers.
    """
    config = RATE_LIMIT_PRESETS[limit] if isinstance(limit, str) else limit

    def deco(fn: Callable):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            key = f"{request.endpoint or fn.__name__}:{get_client_identity()}"
            now = time.time()
            result = check_rate_limit(key, config, now=now)
            if not result.allowed:
                retry = result.retry_after(now)
                logger.info("rate limit exceeded key=%s", key)
                resp = make_response(jsonify({"error": "Too many requests", "retryAfter": retry}), 429)
                resp.headers["X-RateLimit-Remaining"] = str(result.remaining)
                resp.headers["X-RateLimit-Reset"] = _reset_header(result.reset_at)
                resp.headers["Retry-After"] = str(retry)
                return resp
            resp = make_response(fn(*args, **kwargs))
            resp.headers["X-RateLimit-Remaining"] = str(result.remaining)
            resp.headers["X-RateLimit-Reset"] = _reset_header(result.reset_at)
            return resp
        return wrapper
    return deco
