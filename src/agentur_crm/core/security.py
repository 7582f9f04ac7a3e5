"""Password hashing for team member accounts."""

from __future__ import annotations

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a plain-text password for storage."""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a plain-text password against a stored hash.

    Accounts without a stored hash never verify.
    """
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)
