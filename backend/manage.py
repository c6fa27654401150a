"""
Module: backend/manage.py
Operator commands: account bootstrap, popularity recompute, re-index.
"""
import sys
from models import User, UserRole
from services.indexer import SUPPORTED_MODELS, index_model
from services.popularity import recompute_popularity
from utils.db import get_session, init_engine_session
from utils.security import hash_password


def create_user(email: str, password: str, role: str = UserRole.student.value) -> None:
    """Create the user, or update role and password when the email exists."""
    email = email.strip().lower()
    with get_session() as s:
        u = s.query(User).filter_by(email=email).first()
        if u:
            u.role = role
            u.password_hash = hash_password(password)
            s.commit()
            print(f"updated: {email} ({role})")
            return
        s.add(User(email=email, password_hash=hash_password(password), role=role))
        s.commit()
        print(f"created: {email} ({role})")


def main(argv: list[str]) -> int:
    try:
        init_engine_session()
    except Exception as e:
        print(f"DB init failed: {e}")
        return 1

    cmd = argv[1] if len(argv) >= 2 else ""

    if cmd == "create-user":
        if len(argv) < 4:
            print("usage: python manage.py create-user <email> <password> [role]")
            return 2
        role = argv[4] if len(argv) >= 5 else UserRole.student.value
        if role not in {r.value for r in UserRole}:
            print(f"unknown role: {role}")
            return 2
        create_user(argv[2], argv[3], role)
        return 0

    if cmd == "recompute-popularity":
        print(recompute_popularity())
        return 0

    if cmd == "reindex":
        names = argv[2:] or list(SUPPORTED_MODELS)
        with get_session() as s:
            for name in names:
                print(name, index_model(s, name))
        return 0

    print("usage: python manage.py <create-user|recompute-popularity|reindex> ...")
    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
