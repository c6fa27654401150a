"""
Admin and counselor dashboards, plus index maintenance.
"""
import logging

from flask import Blueprint, g, jsonify

from services.engagement import admin_analytics, counselor_insights
from services.indexer import SUPPORTED_MODELS
from services.tasks import enqueue
from services.tasks.retrieval_tasks import index_model_task
from utils.authz import COLLEGE_COUNSELOR, get_admin_sub_role, require_capability
from utils.db import get_session
from utils.ratelimit import rate_limit
from utils.response_helpers import error_response, forbidden_response

bp = Blueprint("admin", __name__, url_prefix="/api/admin")
logger = logging.getLogger(__name__)


@bp.get("/counselor/insights")
@require_capability("counselor.view")
def get_counselor_insights():
    user = g.current_user
    with get_session() as s:
        if get_admin_sub_role(s, user.id) != COLLEGE_COUNSELOR:
            return forbidden_response("Only college counselors can access this resource")
        if not user.school_id:
            return error_response("Please set your school before accessing counselor insights.")
        return jsonify(counselor_insights(s, user.school_id))


@bp.get("/analytics")
@require_capability("analytics.view")
def get_analytics():
    with get_session() as s:
        return jsonify(admin_analytics(s))


@bp.post("/rebuild-embeddings")
@rate_limit("strict")
@require_capability("embeddings.rebuild")
def rebuild_embeddings():
    queued = [name for name in SUPPORTED_MODELS if enqueue(index_model_task, name)]
    logger.info("re-index requested by %s: %s", g.current_user.id, queued)
    if not queued:
        return error_response("Background queue unavailable", 503)
    return jsonify({"success": True, "queued": queued}), 202
