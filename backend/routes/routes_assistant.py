import logging

import requests
from flask import Blueprint, g, jsonify, request

from models import UserRole
from services.embeddings import EmbeddingError, EmbeddingNotConfigured
from services.search import semantic_search
from utils.authz import require_login
from utils.db import get_session
from utils.ratelimit import rate_limit
from utils.response_helpers import error_response

bp = Blueprint("assistant", __name__, url_prefix="/api/assistant")
logger = logging.getLogger(__name__)

MAX_QUERY_CHARS = 2000
MAX_TOP_K = 50


@bp.post("/search")
@rate_limit("ai")
@require_login
def search():
    data = request.get_json(silent=True) or {}
    query = data.get("query")
    if not isinstance(query, str) or not query.strip():
        return error_response("Query is required")
    if len(query) > MAX_QUERY_CHARS:
        return error_response("Query is too long")
    try:
        top_k = max(1, min(int(data.get("topK", 10)), MAX_TOP_K))
    except (TypeError, ValueError):
        return error_response("topK must be an integer")

    user = g.current_user
    # students only search shared records and their own
    owner_id = user.id if user.role == UserRole.student.value else None
    try:
        with get_session() as s:
            result = semantic_search(s, query.strip(), top_k=top_k, owner_id=owner_id)
    except EmbeddingNotConfigured:
        return error_response("Search is not configured", 503)
    except (EmbeddingError, requests.RequestException) as e:
        logger.error("semantic search failed: %s", e)
        return error_response("Search is temporarily unavailable", 502)
    return jsonify(result)
