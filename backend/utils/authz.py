"""
Module: backend/utils/authz.py
Capability checks. Routes ask for a capability, never for a role string.
"""
from __future__ import annotations
from functools import wraps
import logging

from flask import g, request
from flask_jwt_extended import verify_jwt_in_request
from sqlalchemy.orm import Session

from models import Setting, User, UserRole
from utils.auth import get_current_user
from utils.db import get_session
from utils.response_helpers import forbidden_response, unauthorized_response

logger = logging.getLogger(__name__)

COLLEGE_COUNSELOR = "college_counselor"
TEACHER = "teacher"
ADMIN_SUB_ROLES = (TEACHER, COLLEGE_COUNSELOR)

CAPABILITIES: dict[str, frozenset[UserRole]] = {
    "activity.create": frozenset({UserRole.student}),
    "activity.verify": frozenset({UserRole.verifier, UserRole.teacher, UserRole.admin}),
    "advisory.manage": frozenset({UserRole.teacher, UserRole.admin}),
    "advisory.respond": frozenset({UserRole.student}),
    "analytics.view": frozenset({UserRole.admin}),
    "counselor.view": frozenset({UserRole.teacher, UserRole.admin}),
    "settings.admin_role": frozenset({UserRole.teacher, UserRole.admin}),
    "embeddings.rebuild": frozenset({UserRole.admin}),
}


def has_capability(user: User | None, capability: str) -> bool:
    if user is None:
        return False
    try:
        role = UserRole(user.role)
    except ValueError:
        return False
    return role in CAPABILITIES[capability]


def admin_sub_role_key(user_id: str) -> str:
    return f"admin_subrole_{user_id}"


def get_admin_sub_role(session: Session, user_id: str) -> str:
    row = session.query(Setting).filter(Setting.key == admin_sub_role_key(user_id)).first()
    return COLLEGE_COUNSELOR if row is not None and row.value == COLLEGE_COUNSELOR else TEACHER


def require_capability(capability: str):
    """401 without a resolvable user, 403 when the role lacks ``capability``.
    The user is left on ``g.current_user``.
    """
    if capability not in CAPABILITIES:
        raise KeyError(f"unknown capability: {capability}")

    def wrap(fn):
        @wraps(fn)
        def inner(*a, **kw):
            verify_jwt_in_request()
            with get_session() as s:
                user = get_current_user(s)
                if user is not None:
                    s.expunge(user)
            if user is None:
                return unauthorized_response()
            if not has_capability(user, capability):
                logger.warning(
                    "capability denied actor=%s role=%s cap=%s path=%s",
                    user.id, user.role, capability, request.path,
                )
                return forbidden_response()
            g.current_user = user
            return fn(*a, **kw)
        return inner
    return wrap


def require_login(fn):
    @wraps(fn)
    def inner(*a, **kw):
        verify_jwt_in_request()
        with get_session() as s:
            user = get_current_user(s)
            if user is not None:
                s.expunge(user)
        if user is None:
            return unauthorized_response()
        g.current_user = user
        return fn(*a, **kw)
    return inner
