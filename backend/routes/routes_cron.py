import hmac
import logging

from flask import Blueprint, jsonify, request

from services.popularity import recompute_popularity
from utils.config_handler import load_config
from utils.response_helpers import error_response, unauthorized_response

bp = Blueprint("cron", __name__, url_prefix="/api/cron")
logger = logging.getLogger(__name__)


def _authorized() -> bool:
    secret = load_config()["cron_secret"]
    if not secret:
        return True
    supplied = request.headers.get("Authorization", "")
    return hmac.compare_digest(supplied, f"Bearer {secret}")


@bp.get("/popularity")
def cron_popularity():
    if not _authorized():
        return unauthorized_response()
    try:
        return jsonify(recompute_popularity())
    except Exception:
        logger.exception("[cron] popularity recompute failed")
        return error_response("Failed to recompute popularity", 500)
