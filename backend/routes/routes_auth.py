from flask import Blueprint, g, jsonify, request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from models import School, User, UserRole
from utils.auth import issue_token
from utils.authz import require_login
from utils.db import get_session
from utils.ratelimit import rate_limit
from utils.response_helpers import conflict_response, error_response
from utils.security import check_password, hash_password

bp = Blueprint("auth", __name__, url_prefix="/api/auth")

MIN_PASSWORD_LENGTH = 8
# admins are created with manage.py, never through the API
SELF_SERVICE_ROLES = {UserRole.student.value, UserRole.verifier.value, UserRole.teacher.value}


def _normalize_email(value) -> str:
    return (value or "").strip().lower() if isinstance(value, str) else ""


@bp.post("/register")
@rate_limit("auth")
def register():
    data = request.get_json(silent=True) or {}
    email = _normalize_email(data.get("email"))
    password = data.get("password") or ""
    role = (data.get("role") or UserRole.student.value).strip().lower()

    if "@" not in email:
        return error_response("Valid email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        return error_response(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if role not in SELF_SERVICE_ROLES:
        return error_response("Invalid role")

    with get_session() as s:
        if s.query(User).filter(func.lower(User.email) == email).first():
            return error_response("Email already registered", 409)

        school_id = None
        slug = (data.get("schoolSlug") or "").strip().lower()
        if slug:
            school = s.query(School).filter(School.slug == slug).first()
            if school is None:
                school = School(slug=slug, name=(data.get("schoolName") or slug).strip())
                s.add(school)
                s.flush()
            school_id = school.id

        u = User(
            email=email,
            name=(data.get("name") or "").strip() or None,
            password_hash=hash_password(password),
            role=role,
            school_id=school_id,
        )
        s.add(u)
        try:
            s.commit()
        except IntegrityError:
            s.rollback()
            return conflict_response("Email already registered")
        return jsonify({"token": issue_token(u), "user": u.to_dict()}), 201


@bp.post("/login")
@rate_limit("auth")
def login():
    data = request.get_json(silent=True) or {}
    email = _normalize_email(data.get("email"))
    password = data.get("password") or ""

    with get_session() as s:
        u = s.query(User).filter(func.lower(User.email) == email).first()
        if not u or not check_password(password, u.password_hash):
            return error_response("Invalid email or password", 401)
        return jsonify({"token": issue_token(u), "user": u.to_dict()})


@bp.get("/me")
@require_login
def me():
    return jsonify({"user": g.current_user.to_dict()})
