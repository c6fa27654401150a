import logging

from flask import Blueprint, g, jsonify, request

from models import Activity, ActivityStatus, UserRole
from services.tasks import enqueue
from services.tasks.retrieval_tasks import delete_embedding_task, upsert_embedding_task
from utils.authz import has_capability, require_capability, require_login
from utils.db import get_session
from utils.response_helpers import error_response, not_found_response

bp = Blueprint("activities", __name__, url_prefix="/api/activities")
logger = logging.getLogger(__name__)

TEXT_FIELDS = ("category", "description", "role", "organization")
DATE_FIELDS = {"startDate": "start_date", "endDate": "end_date"}
NUMBER_FIELDS = {"hoursPerWeek": "hours_per_week", "totalHours": "total_hours"}
REVIEW_STATUSES = (ActivityStatus.verified, ActivityStatus.denied)


def _number(value):
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("not a number")
    n = float(value)
    if n < 0:
        raise ValueError("negative")
    return n


@bp.get("")
@require_login
def list_activities():
    """Students see their own; reviewers see everything, optionally by ``status``."""
    user = g.current_user
    with get_session() as s:
        q = s.query(Activity)
        if user.role == UserRole.student.value:
            q = q.filter(Activity.student_id == user.id)
        elif not has_capability(user, "activity.verify"):
            return error_response("Forbidden", 403)
        status = (request.args.get("status") or "").strip().lower()
        if status:
            q = q.filter(Activity.status == status)
        rows = q.order_by(Activity.created_at.desc()).all()
        return jsonify({"activities": [a.to_dict() for a in rows]})


@bp.post("")
@require_capability("activity.create")
def create_activity():
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return error_response("Activity name is required")

    fields = {"name": name.strip()}
    for key in TEXT_FIELDS:
        v = data.get(key)
        fields[key] = v.strip() if isinstance(v, str) and v.strip() else None
    for key, attr in DATE_FIELDS.items():
        v = data.get(key)
        fields[attr] = v if isinstance(v, str) and v else None
    try:
        for key, attr in NUMBER_FIELDS.items():
            fields[attr] = _number(data.get(key))
    except (TypeError, ValueError):
        return error_response("Hours must be non-negative numbers")

    with get_session() as s:
        activity = Activity(student_id=g.current_user.id, **fields)
        s.add(activity)
        s.commit()
        body = activity.to_dict()
    enqueue(upsert_embedding_task, "Activity", body["id"])
    return jsonify({"activity": body}), 201


@bp.post("/<activity_id>/verify")
@require_capability("activity.verify")
def verify_activity(activity_id: str):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if status not in REVIEW_STATUSES:
        return error_response("Status must be 'verified' or 'denied'")

    with get_session() as s:
        activity = s.get(Activity, activity_id)
        if activity is None:
            return not_found_response("Activity")
        activity.status = status
        s.commit()
        body = activity.to_dict()
    logger.info("activity %s marked %s by %s", activity_id, status, g.current_user.id)
    enqueue(upsert_embedding_task, "Activity", activity_id)
    return jsonify({"activity": body})


@bp.delete("/<activity_id>")
@require_capability("activity.create")
def delete_activity(activity_id: str):
    with get_session() as s:
        activity = s.get(Activity, activity_id)
        if activity is None or activity.student_id != g.current_user.id:
            return not_found_response("Activity")
        s.delete(activity)
        s.commit()
    enqueue(delete_embedding_task, "Activity", activity_id)
    return jsonify({"success": True})
