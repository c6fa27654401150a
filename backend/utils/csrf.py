"""
Module: backend/utils/csrf.py
Origin / Referer allow-listing for state-changing requests.

No token is issued or compared: a request is accepted when the browser
declares an allowed origin. Requests without either header are rejected in
production and allowed elsewhere.
"""
from __future__ import annotations
import logging
from typing import Iterable
from urllib.parse import urlsplit

from flask import jsonify, request

from utils.config_handler import allowed_origins, is_production

logger = logging.getLogger(__name__)

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def _scheme_host(value: str) -> tuple[str, str] | None:
    try:
        parts = urlsplit(value)
    except ValueError:
        return None
    if not parts.scheme or not parts.netloc:
        return None
    return parts.scheme.lower(), parts.netloc.lower()


def _origin_matches(origin: str, allowed: Iterable[str]) -> bool:
    target = _scheme_host(origin)
    for candidate in allowed:
        parsed = _scheme_host(candidate)
        if parsed is None or target is None:
            if origin.startswith(candidate):
                return True
            continue
        if parsed == target:
            return True
    return False


def verify_origin(req=None, allowed: Iterable[str] | None = None, production: bool | None = None) -> bool:
    req = req if req is not None else request
    if req.method.upper() in SAFE_METHODS:
        return True

    allowed = list(allowed) if allowed is not None else allowed_origins()
    origin = req.headers.get("Origin")
    referer = req.headers.get("Referer")

    if origin:
        return _origin_matches(origin, allowed)

    if referer:
        return any(referer.startswith(a) for a in allowed)

    if production if production is not None else is_production():
        logger.warning("[CSRF] Missing origin/referer for %s %s", req.method, req.path)
        return False
    return True


def origin_guard():
    """before_request hook for /api/ routes."""
    if not request.path.startswith("/api/"):
        return None
    if verify_origin(request):
        return None
    return jsonify({"error": "Invalid origin. CSRF protection triggered."}), 403
