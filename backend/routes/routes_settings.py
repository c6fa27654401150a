from __future__ import annotations
import hmac

from flask import Blueprint, g, jsonify, request

from models import Setting
from utils.authz import (
    ADMIN_SUB_ROLES, COLLEGE_COUNSELOR, admin_sub_role_key, get_admin_sub_role,
    require_capability, require_login,
)
from utils.config_handler import load_config
from utils.db import get_session
from utils.response_helpers import error_response

bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@bp.get("")
@require_login
def get_setting():
    key = (request.args.get("key") or "").strip()
    if not key:
        return error_response("Key parameter required")
    with get_session() as s:
        row = s.query(Setting).filter(Setting.key == key).first()
        return jsonify({
            "value": row.value if row is not None and row.value else "false",
            "exists": row is not None,
        })


@bp.get("/admin-role")
@require_capability("settings.admin_role")
def get_admin_role():
    with get_session() as s:
        return jsonify({"adminSubRole": get_admin_sub_role(s, g.current_user.id)})


@bp.post("/admin-role")
@require_capability("settings.admin_role")
def set_admin_role():
    data = request.get_json(silent=True) or {}
    sub_role = data.get("adminSubRole")
    if sub_role not in ADMIN_SUB_ROLES:
        return error_response("Invalid admin sub-role")

    if sub_role == COLLEGE_COUNSELOR:
        expected = load_config()["counselor_access_code"]
        code = data.get("code")
        if not expected or not isinstance(code, str) or not hmac.compare_digest(code, expected):
            return error_response(
                "Invalid code. Please contact developers for the College Counselor access code.", 403
            )

    key = admin_sub_role_key(g.current_user.id)
    with get_session() as s:
        row = s.query(Setting).filter(Setting.key == key).first()
        if row is None:
            s.add(Setting(key=key, value=sub_role))
        else:
            row.value = sub_role
        s.commit()
    return jsonify({"adminSubRole": sub_role, "success": True})
