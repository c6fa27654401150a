"""
Module: backend/utils/auth.py
Resolve the bearer token to a User row.
"""
from __future__ import annotations
from flask_jwt_extended import create_access_token, get_jwt_identity, verify_jwt_in_request
from sqlalchemy.orm import Session

from models import User


def issue_token(user: User) -> str:
    return create_access_token(identity=str(user.id), additional_claims={"role": user.role})


def get_current_user(session: Session, optional: bool = False) -> User | None:
    """
    Load the caller. With ``optional`` a missing token yields None instead of
    raising; an invalid token still raises.
    """
    verify_jwt_in_request(optional=optional)
    ident = get_jwt_identity()
    if not ident:
        return None
    return session.get(User, str(ident))
