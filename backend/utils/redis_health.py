"""
Module: backend/utils/redis_health.py
Redis reachability for /api/healthz. Redis backs the Celery broker and the
optional shared rate-limit store; without REDIS_URL it is simply not used.
"""
from __future__ import annotations
from urllib.parse import urlparse

import redis

from utils.config_handler import load_config


def _mask_url(url: str) -> str:
    p = urlparse(url)
    if not p.password:
        return url
    netloc = f"{p.username or ''}:***@{p.hostname or 'localhost'}"
    if p.port:
        netloc += f":{p.port}"
    return f"{p.scheme}://{netloc}{p.path or ''}"


def get_redis_health() -> dict:
    """{configured, ok, url?, error?}; ``ok`` is None when Redis is not configured."""
    url = load_config()["redis_url"]
    if not url:
        return {"configured": False, "ok": None}
    try:
        ok = bool(redis.Redis.from_url(url, socket_timeout=1.5, socket_connect_timeout=1.5).ping())
        return {"configured": True, "ok": ok, "url": _mask_url(url)}
    except redis.RedisError as e:
        return {"configured": True, "ok": False, "url": _mask_url(url), "error": str(e)}
