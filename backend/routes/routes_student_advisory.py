import logging

from flask import Blueprint, g, jsonify, request

from models import Setting, User, as_utc
from services.advisory_groups import (
    ADVISORY_REQUEST_PREFIX, add_student_to_group, load_advisor_groups,
    parse_advisory_request_key, parse_advisory_request_value, save_advisor_groups,
)
from utils.authz import require_capability
from utils.db import get_session
from utils.response_helpers import error_response

bp = Blueprint("student_advisory", __name__, url_prefix="/api/student/advisory")
logger = logging.getLogger(__name__)


@bp.get("")
@require_capability("advisory.respond")
def list_invites():
    uid = g.current_user.id
    with get_session() as s:
        rows = (
            s.query(Setting)
            .filter(Setting.key.startswith(ADVISORY_REQUEST_PREFIX, autoescape=True))
            .order_by(Setting.created_at.desc())
            .all()
        )
        invites = []
        for row in rows:
            if parse_advisory_request_value(row.value).student_id != uid:
                continue
            parsed = parse_advisory_request_key(row.key)
            if parsed is None:
                continue
            invites.append({**parsed, "requestKey": row.key, "createdAt": as_utc(row.created_at).isoformat()})

        advisor_ids = {i["advisorId"] for i in invites}
        advisors = {u.id: u for u in s.query(User).filter(User.id.in_(advisor_ids)).all()} if advisor_ids else {}
        return jsonify({"invites": [
            {
                "requestKey": i["requestKey"],
                "advisorId": i["advisorId"],
                "advisorName": (advisors[i["advisorId"]].name if i["advisorId"] in advisors else None) or "Advisor",
                "advisorEmail": advisors[i["advisorId"]].email if i["advisorId"] in advisors else "",
                "studentEmail": i["studentEmail"],
                "createdAt": i["createdAt"],
            }
            for i in invites
        ]})


@bp.post("")
@require_capability("advisory.respond")
def respond_to_invite():
    uid = g.current_user.id
    data = request.get_json(silent=True) or {}
    request_key = data.get("requestKey")
    action = data.get("action")
    if not isinstance(request_key, str) or not request_key or action not in ("accept", "decline"):
        return error_response("Invalid request")

    with get_session() as s:
        pending = s.query(Setting).filter(Setting.key == request_key).first()
        metadata = parse_advisory_request_value(pending.value if pending else None)
        if pending is None or metadata.student_id != uid:
            return error_response("Invite no longer available", 404)

        parsed = parse_advisory_request_key(request_key)
        if parsed is None:
            return error_response("Invalid advisory request")

        advisor = s.get(User, parsed["advisorId"])
        if advisor is None:
            s.delete(pending)
            s.commit()
            return error_response("Advisor not found", 404)

        if action == "decline":
            s.delete(pending)
            s.commit()
            logger.info("advisory invite declined advisor=%s student=%s", advisor.id, uid)
            return jsonify({"status": "declined"})

        groups = load_advisor_groups(s, advisor.id)
        save_advisor_groups(s, advisor.id, add_student_to_group(groups, uid, metadata.group_id))
        s.delete(pending)
        s.commit()
        logger.info("advisory invite accepted advisor=%s student=%s", advisor.id, uid)
        return jsonify({"status": "accepted", "advisor": {"id": advisor.id, "name": advisor.name}})
