"""
Advisor-side advisory management: invites, groups and engagement stats.
"""
import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy import func

from models import Setting, User, UserRole, as_utc
from services.advisory_groups import (
    ADVISORY_REQUEST_PREFIX, AdvisoryGroupRecord, build_advisory_request_key,
    encode_advisory_request_value, find_group, flatten_group_student_ids,
    load_advisor_groups, save_advisor_groups,
)
from services.engagement import advisory_stats
from services.scorecards import build_advisory_score_card
from utils.authz import require_capability
from utils.db import get_session
from utils.response_helpers import error_response, not_found_response

bp = Blueprint("advisory", __name__, url_prefix="/api/advisory")
logger = logging.getLogger(__name__)


def _pending_requests(s, advisor_id: str) -> list[Setting]:
    prefix = f"{ADVISORY_REQUEST_PREFIX}{advisor_id}_"
    return (
        s.query(Setting)
        .filter(Setting.key.startswith(prefix, autoescape=True))
        .order_by(Setting.created_at.desc())
        .all()
    )


def _student_summaries(s, student_ids: list[str]) -> list[dict]:
    if not student_ids:
        return []
    rows = s.query(User).filter(User.id.in_(student_ids), User.role == UserRole.student.value).all()
    by_id = {u.id: u for u in rows}
    return [
        {"id": u.id, "name": u.name, "email": u.email}
        for u in (by_id.get(sid) for sid in student_ids) if u is not None
    ]


@bp.get("")
@require_capability("advisory.manage")
def get_advisory():
    advisor_id = g.current_user.id
    with get_session() as s:
        groups = load_advisor_groups(s, advisor_id)
        s.commit()
        prefix = f"{ADVISORY_REQUEST_PREFIX}{advisor_id}_"
        pending = _pending_requests(s, advisor_id)
        return jsonify({
            "groups": [grp.to_dict() for grp in groups],
            "students": _student_summaries(s, flatten_group_student_ids(groups)),
            "pendingRequests": [
                {"email": row.key[len(prefix):], "createdAt": as_utc(row.created_at).isoformat()}
                for row in pending
            ],
        })


@bp.post("")
@require_capability("advisory.manage")
def invite_student():
    advisor_id = g.current_user.id
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    group_id = data.get("groupId") if isinstance(data.get("groupId"), str) else None
    if not email or not isinstance(email, str) or "@" not in email:
        return error_response("Valid email is required")
    email = email.strip().lower()

    with get_session() as s:
        student = s.query(User).filter(func.lower(User.email) == email).first()
        if student is None or student.role != UserRole.student.value:
            return error_response("No student found with this email", 404)

        groups = load_advisor_groups(s, advisor_id)
        if student.id in flatten_group_student_ids(groups):
            s.commit()
            return error_response("Student is already in your advisory")

        key = build_advisory_request_key(advisor_id, email)
        if s.query(Setting).filter(Setting.key == key).first() is not None:
            s.commit()
            return error_response("Request already sent to this student")

        if group_id and find_group(groups, group_id) is None:
            group_id = None
        s.add(Setting(key=key, value=encode_advisory_request_value(student.id, group_id)))
        s.commit()
    logger.info("advisory invite advisor=%s student=%s group=%s", advisor_id, student.id, group_id)
    return jsonify({"success": True, "message": "Advisory request sent"})


@bp.get("/groups")
@require_capability("advisory.manage")
def list_groups():
    with get_session() as s:
        groups = load_advisor_groups(s, g.current_user.id)
        s.commit()
        return jsonify({"groups": [grp.to_dict() for grp in groups]})


@bp.post("/groups")
@require_capability("advisory.manage")
def create_group():
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return error_response("Group name is required")

    with get_session() as s:
        groups = load_advisor_groups(s, g.current_user.id)
        group = AdvisoryGroupRecord.new(name)
        save_advisor_groups(s, g.current_user.id, [*groups, group])
        s.commit()
    return jsonify({"group": group.to_dict()}), 201


def _clean_student_ids(advisor_groups, raw) -> list[str] | None:
    """Membership may only be rearranged among the advisor's current students."""
    if not isinstance(raw, list) or not all(isinstance(x, str) for x in raw):
        return None
    allowed = set(flatten_group_student_ids(advisor_groups))
    return list(dict.fromkeys(x for x in raw if x in allowed))


@bp.patch("/groups/<group_id>")
@require_capability("advisory.manage")
def update_group(group_id: str):
    data = request.get_json(silent=True) or {}
    with get_session() as s:
        groups = load_advisor_groups(s, g.current_user.id)
        target = find_group(groups, group_id)
        if target is None:
            s.commit()
            return not_found_response("Group")

        changes = {}
        if "name" in data:
            name = data.get("name")
            if not isinstance(name, str) or not name.strip():
                return error_response("Group name is required")
            changes["name"] = name.strip()
        if "studentIds" in data:
            ids = _clean_student_ids(groups, data.get("studentIds"))
            if ids is None:
                return error_response("studentIds must be a list of ids")
            changes["student_ids"] = ids
        if not changes:
            return error_response("Nothing to update")

        updated = target.touched(**changes)
        save_advisor_groups(s, g.current_user.id, [updated if grp.id == group_id else grp for grp in groups])
        s.commit()
    return jsonify({"group": updated.to_dict()})


@bp.delete("/groups/<group_id>")
@require_capability("advisory.manage")
def delete_group(group_id: str):
    with get_session() as s:
        groups = load_advisor_groups(s, g.current_user.id)
        if find_group(groups, group_id) is None:
            s.commit()
            return not_found_response("Group")
        if len(groups) == 1:
            s.commit()
            return error_response("At least one advisory group is required")
        remaining = [grp for grp in groups if grp.id != group_id]
        save_advisor_groups(s, g.current_user.id, remaining)
        s.commit()
    return jsonify({"success": True, "groups": [grp.to_dict() for grp in remaining]})


@bp.get("/stats")
@require_capability("advisory.manage")
def get_stats():
    advisor_id = g.current_user.id
    with get_session() as s:
        groups = load_advisor_groups(s, advisor_id)
        s.commit()
        stats = advisory_stats(s, flatten_group_student_ids(groups))
        pending = len(_pending_requests(s, advisor_id))
    return jsonify({**stats, "scoreCard": build_advisory_score_card(stats, pending)})
