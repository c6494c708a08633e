"""Password hashing and temporary credential generation."""

from __future__ import annotations

import secrets
import string

import bcrypt


TEMP_PASSWORD_ALPHABET = string.ascii_uppercase + string.digits


def hash_password(password: str, rounds: int = 10) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def generate_temporary_password(length: int = 8) -> str:
    """Random uppercase-alphanumeric password handed out once on creation or reset."""
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))
