"""
Embedding indexer: turns supported rows into text, embeds it and upserts the
``embeddings`` row. Called from background tasks, never from the request path.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Activity, Embedding, Opportunity, utcnow
from services.embeddings import create_text_embedding, encode_vector, normalize, strip_pii

logger = logging.getLogger(__name__)

INDEX_PAGE_SIZE = 50


def _activity_content(row: Activity) -> Optional[dict]:
    parts = []
    if row.name:
        parts.append(f"Activity: {row.name}")
    if row.category:
        parts.append(f"Category: {row.category}")
    if row.organization:
        parts.append(f"Organization: {row.organization}")
    if row.role:
        parts.append(f"Role: {row.role}")
    if row.description:
        parts.append(f"Description: {row.description}")
    if row.total_hours:
        parts.append(f"Hours: {row.total_hours:g}")
    return {"content": "\n".join(parts), "owner_id": row.student_id}


def _opportunity_content(row: Opportunity) -> Optional[dict]:
    parts = [f"Opportunity: {row.title}"]
    if row.description:
        parts.append(f"Description: {row.description}")
    return {"content": "\n".join(parts), "owner_id": None}


SUPPORTED_MODELS: Dict[str, tuple[type, Callable]] = {
    "Activity": (Activity, _activity_content),
    "Opportunity": (Opportunity, _opportunity_content),
}


def is_model_supported(model_name: str) -> bool:
    return model_name in SUPPORTED_MODELS


def build_embeddable_content(model_name: str, row) -> Optional[dict]:
    if row is None or not is_model_supported(model_name):
        return None
    built = SUPPORTED_MODELS[model_name][1](row)
    if not built or not built["content"].strip():
        return None
    built["content"] = strip_pii(built["content"])
    return built


def upsert_embedding(session: Session, model_name: str, record_id: str) -> bool:
    """Index one record. Returns False for unsupported, missing or empty records;
    embedding API errors propagate so the task layer can retry them."""
    if not is_model_supported(model_name):
        logger.warning("[indexer] model %s not supported", model_name)
        return False
    model_cls = SUPPORTED_MODELS[model_name][0]
    row = session.get(model_cls, record_id)
    if row is None:
        logger.warning("[indexer] %s:%s not found", model_name, record_id)
        return False
    built = build_embeddable_content(model_name, row)
    if built is None:
        logger.warning("[indexer] nothing to embed for %s:%s", model_name, record_id)
        return False

    vector = encode_vector(normalize(create_text_embedding(built["content"])))
    existing = session.execute(
        select(Embedding).where(Embedding.model_name == model_name, Embedding.record_id == record_id)
    ).scalar_one_or_none()
    if existing is None:
        session.add(Embedding(
            model_name=model_name, record_id=record_id,
            content=built["content"], vector=vector, owner_id=built["owner_id"],
        ))
    else:
        existing.content = built["content"]
        existing.vector = vector
        existing.owner_id = built["owner_id"]
        existing.updated_at = utcnow()
    session.commit()
    logger.info("[indexer] indexed %s:%s", model_name, record_id)
    return True


def delete_embedding(session: Session, model_name: str, record_id: str) -> bool:
    deleted = session.query(Embedding).filter(
        Embedding.model_name == model_name, Embedding.record_id == record_id
    ).delete()
    session.commit()
    return bool(deleted)


def index_model(session: Session, model_name: str, page_size: int = INDEX_PAGE_SIZE) -> Dict[str, int]:
    """Walk every row of ``model_name`` in id order; per-record failures are counted, not raised."""
    if not is_model_supported(model_name):
        return {"indexed": 0, "failed": 0}
    model_cls = SUPPORTED_MODELS[model_name][0]
    indexed = failed = 0
    cursor: Optional[str] = None
    while True:
        q = select(model_cls.id).order_by(model_cls.id).limit(page_size)
        if cursor is not None:
            q = q.where(model_cls.id > cursor)
        ids = session.execute(q).scalars().all()
        if not ids:
            break
        for record_id in ids:
            try:
                ok = upsert_embedding(session, model_name, record_id)
            except Exception:
                session.rollback()
                logger.exception("[indexer] failed %s:%s", model_name, record_id)
                ok = False
            indexed += int(ok)
            failed += int(not ok)
        cursor = ids[-1]
        if len(ids) < page_size:
            break
    logger.info("[indexer] %s: %d indexed, %d failed", model_name, indexed, failed)
    return {"indexed": indexed, "failed": failed}
