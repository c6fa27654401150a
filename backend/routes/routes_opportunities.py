from flask import Blueprint, jsonify, request
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from models import Edition
from utils.db import get_session
from utils.ratelimit import rate_limit

bp = Blueprint("opportunities", __name__, url_prefix="/api/opportunities")

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@bp.get("")
@rate_limit("relaxed")
def list_opportunities():
    """Editions ranked by the stored popularity score."""
    try:
        limit = int(request.args.get("limit", DEFAULT_LIMIT))
    except ValueError:
        limit = DEFAULT_LIMIT
    limit = max(1, min(limit, MAX_LIMIT))

    with get_session() as s:
        rows = s.execute(
            select(Edition)
            .options(selectinload(Edition.opportunity))
            .order_by(Edition.popularity_score.desc(), Edition.created_at.desc())
            .limit(limit)
        ).scalars().all()
        return jsonify({"editions": [e.to_dict() for e in rows]})
