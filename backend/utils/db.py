# backend/utils/db.py
from __future__ import annotations
from contextlib import contextmanager
import logging
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite:///schooltrack.db"


class Base(DeclarativeBase):
    pass


_engine = None
SessionLocal = None
EFFECTIVE_DB_URL = ""


def _normalize_url(url: str) -> str:
    if not url:
        return url
    # psycopg (v3) driver for bare postgresql:// URLs
    return url.replace("postgresql://", "postgresql+psycopg://", 1) if url.startswith("postgresql://") else url


def init_engine_session(url: str | None = None):
    """
    Initialise the engine and session factory.
    DATABASE_URL wins; otherwise a local SQLite file is used.
    Tables are created on first connect.
    """
    global _engine, SessionLocal, EFFECTIVE_DB_URL

    raw = url or os.getenv("DATABASE_URL") or DEFAULT_DB_URL
    target = _normalize_url(raw)
    if _engine is not None and EFFECTIVE_DB_URL == target:
        return _engine

    eng = create_engine(target, pool_pre_ping=True)
    with eng.connect() as conn:
        conn.exec_driver_sql("SELECT 1")

    _engine = eng
    SessionLocal = sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)

    import models  # noqa: F401  registers every mapped class
    Base.metadata.create_all(_engine)
    EFFECTIVE_DB_URL = target
    logger.info("DB connected: %s", _mask_url(target))
    return _engine


def get_engine():
    if _engine is None:
        init_engine_session()
    return _engine


def _mask_url(url: str) -> str:
    if '://' not in url or '@' not in url:
        return url
    left, rest = url.split('://', 1)
    cred_part, host_part = rest.split('@', 1)
    if ':' in cred_part:
        user = cred_part.split(':', 1)[0]
        masked = f"{user}:***"
    else:
        masked = cred_part
    return f"{left}://{masked}@{host_part}"


def get_db_health() -> dict:
    """DB health for /api/healthz."""
    ok = False
    driver = None
    err = None
    url = EFFECTIVE_DB_URL or os.getenv("DATABASE_URL") or DEFAULT_DB_URL
    try:
        eng = get_engine()
        with eng.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
        ok = True
        driver = eng.url.drivername
    except Exception as e:
        err = str(e)
    return {
        "ok": ok,
        "url": _mask_url(url),
        "driver": driver,
        **({"error": err} if err else {}),
    }


@contextmanager
def get_session():
    if SessionLocal is None:
        init_engine_session()
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
