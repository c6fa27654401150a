"""
Module: backend/utils/config_handler.py
Runtime configuration assembled from environment variables.
"""
import os
from typing import Any, Dict, List

DEFAULT_DATA: Dict[str, Any] = {
    "env": "development",
    "app_url": "",
    "vercel_url": "",
    "cron_secret": "",
    "counselor_access_code": "",
    "embedding_api_url": "https://api.openai.com/v1/embeddings",
    "embedding_api_key": "",
    "embedding_model": "text-embedding-3-small",
    "embedding_timeout": 20.0,
    "redis_url": "",
}

DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
]


def _env(*names: str) -> str:
    for name in names:
        v = (os.getenv(name) or "").strip()
        if v:
            return v
    return ""


def load_config() -> Dict[str, Any]:
    """Read on every call so tests and long-lived workers see env changes."""
    data = DEFAULT_DATA.copy()
    overrides = {
        "env": _env("APP_ENV", "FLASK_ENV", "NODE_ENV").lower(),
        "app_url": _env("PUBLIC_APP_URL", "NEXT_PUBLIC_APP_URL").rstrip("/"),
        "vercel_url": _env("VERCEL_URL"),
        "cron_secret": _env("CRON_SECRET"),
        "counselor_access_code": _env("COUNSELOR_ACCESS_CODE"),
        "embedding_api_url": _env("EMBEDDING_API_URL"),
        "embedding_api_key": _env("EMBEDDING_API_KEY", "OPENAI_API_KEY"),
        "embedding_model": _env("EMBEDDING_MODEL"),
        "redis_url": _env("REDIS_URL"),
    }
    for k, v in overrides.items():
        if v:
            data[k] = v
    try:
        data["embedding_timeout"] = float(_env("EMBEDDING_TIMEOUT") or DEFAULT_DATA["embedding_timeout"])
    except ValueError:
        pass
    return data


def is_production() -> bool:
    return load_config()["env"] == "production"


def allowed_origins() -> List[str]:
    """Origin allow-list shared by CORS and the origin guard."""
    raw = _env("ALLOWED_ORIGINS")
    if raw:
        candidates = [o.strip().rstrip("/") for o in raw.split(",")]
    else:
        cfg = load_config()
        candidates = [
            cfg["app_url"],
            f"https://{cfg['vercel_url']}" if cfg["vercel_url"] else "",
            *DEV_ORIGINS,
        ]
    out: List[str] = []
    for o in candidates:
        if o and o not in out:
            out.append(o)
    return out
