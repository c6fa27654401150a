import logging

from flask import Blueprint, jsonify, request
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models import Edition
from utils.db import get_session
from utils.ratelimit import rate_limit
from utils.response_helpers import error_response

bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")
logger = logging.getLogger(__name__)


@bp.post("/click")
@rate_limit("relaxed")
def track_click():
    """Count an outbound click. Tracking failures never surface as errors."""
    data = request.get_json(silent=True) or {}
    edition_id = data.get("editionId")
    if not edition_id or not isinstance(edition_id, str):
        return error_response("Edition ID is required")

    try:
        with get_session() as s:
            res = s.execute(
                update(Edition).where(Edition.id == edition_id).values(clicks_30d=Edition.clicks_30d + 1)
            )
            s.commit()
    except SQLAlchemyError as e:
        logger.error("click tracking failed edition=%s: %s", edition_id, e)
        return jsonify({"success": False})
    if res.rowcount == 0:
        logger.warning("click for unknown edition %s", edition_id)
        return jsonify({"success": False})
    return jsonify({"success": True})
