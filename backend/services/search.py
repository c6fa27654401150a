"""
Semantic search over stored embeddings.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from models import Embedding
from services.embeddings import cosine, create_text_embedding, normalize, parse_vector
from services.indexer import SUPPORTED_MODELS

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 200


@dataclass
class SearchMatch:
    modelName: str
    recordId: str
    score: float
    snippet: str
    ownerId: Optional[str] = None


def _snippet(content: str) -> str:
    return content[:SNIPPET_CHARS] + ("..." if len(content) > SNIPPET_CHARS else "")


def semantic_search(session: Session, query: str, models: Optional[Iterable[str]] = None,
                    top_k: int = 10, owner_id: Optional[str] = None) -> dict:
    """Rank stored embeddings by cosine similarity to ``query``.

    With ``owner_id`` only shared rows and that owner's rows are candidates.
    """
    query_vector = normalize(create_text_embedding(query))
    wanted = [m for m in (models or SUPPORTED_MODELS) if m in SUPPORTED_MODELS]
    if not wanted:
        return {"matches": [], "totalCandidates": 0}

    q = select(Embedding).where(Embedding.model_name.in_(wanted))
    if owner_id is not None:
        q = q.where(or_(Embedding.owner_id.is_(None), Embedding.owner_id == owner_id))
    candidates = session.execute(q).scalars().all()
    logger.info("[search] %d candidate embeddings", len(candidates))

    matches: List[SearchMatch] = []
    for emb in candidates:
        vec = parse_vector(emb.vector)
        if len(vec) != len(query_vector):
            continue
        matches.append(SearchMatch(
            modelName=emb.model_name,
            recordId=emb.record_id,
            score=cosine(query_vector, vec),
            snippet=_snippet(emb.content),
            ownerId=emb.owner_id,
        ))
    matches.sort(key=lambda m: m.score, reverse=True)
    return {"matches": [asdict(m) for m in matches[:top_k]], "totalCandidates": len(candidates)}
