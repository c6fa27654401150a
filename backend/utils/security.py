"""
Module: backend/utils/security.py
Password hashing for locally registered accounts.
"""
import os
import bcrypt

_ROUNDS = int(os.getenv("PASSWORD_SALT_ROUNDS", "12"))


def hash_password(plain: str) -> str:
    salt = bcrypt.gensalt(rounds=_ROUNDS)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode()


def check_password(plain: str, hashed: str | None) -> bool:
    # accounts created through the OAuth provider carry no local hash
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False
