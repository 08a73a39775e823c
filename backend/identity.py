"""
backend/identity.py

Identity & credential store: registration, login, password hashing and
bearer-token issue.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from backend.config import (
    ALGORITHM,
    IS_DEV,
    JWT_EXPIRES_DAYS,
    PASSWORD_HASH_ITERATIONS,
    PASSWORD_MIN_LENGTH,
    SECRET_KEY,
)
from backend.documents import DocumentStore, new_id
from backend.errors import Conflict, Unauthenticated, ValidationError
from backend.models import User, UserRole, user_to_dict, utcnow

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


# --------------------------------------------------------------------
# Password hashing (salted PBKDF2-SHA256)
# --------------------------------------------------------------------

def hash_password(password: str, salt: Optional[str] = None) -> str:
    """Return 'pbkdf2_sha256$<iterations>$<salt>$<hex digest>'."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), PASSWORD_HASH_ITERATIONS
    ).hex()
    return f"pbkdf2_sha256${PASSWORD_HASH_ITERATIONS}${salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, digest = password_hash.split("$")
    except ValueError:
        return False
    if algorithm != "pbkdf2_sha256":
        return False
    candidate = hashlib.pbkdf2_hmac(
        "sha256", password.encode(), salt.encode(), int(iterations)
    ).hex()
    return hmac.compare_digest(candidate, digest)


# --------------------------------------------------------------------
# Token Utilities
# --------------------------------------------------------------------

def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Signed JWT carrying the user id (sub) and an expiry (exp)."""
    expires_at = datetime.now(timezone.utc) + (expires_delta or timedelta(days=JWT_EXPIRES_DAYS))
    return jwt.encode({"sub": user_id, "exp": expires_at}, SECRET_KEY, algorithm=ALGORITHM)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityService:
    """Owns user records and credential verification."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def register(
        self,
        name: str,
        email: str,
        password: str,
        role: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a user and return its public fields plus a bearer token.

        Raises:
            ValidationError: missing name, malformed email, short password, bad role
            Conflict: email already registered
        """
        name = (name or "").strip()
        email_norm = normalize_email(email)

        if not name:
            raise ValidationError("Name is required")
        if not EMAIL_PATTERN.match(email_norm):
            raise ValidationError("Invalid email format")
        if not password or len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
        try:
            user_role = UserRole(role) if role else UserRole.member
        except ValueError:
            raise ValidationError("Role must be one of: admin, member")

        if self.store.find_user_by_email(email_norm):
            print(f"[REGISTER] Duplicate email rejected: {email_norm!r}")
            raise Conflict("User already exists")

        now = utcnow()
        user = User(
            id=new_id(),
            name=name,
            email=email_norm,
            role=user_role,
            password_hash=hash_password(password),
            created_at=now,
            updated_at=now,
        )
        self.store.insert_user(user)
        print(f"[REGISTER] User created: id={user.id}, role={user.role.value}")

        return self._auth_payload(user)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """
        Verify credentials and return public user fields plus a bearer token.

        Raises:
            Unauthenticated: unknown email or wrong password (same message for both)
        """
        user = self.store.find_user_by_email(normalize_email(email))
        if user is None or not verify_password(password or "", user.password_hash):
            if IS_DEV:
                print(f"[LOGIN] Rejected login, user_found={user is not None}")
            raise Unauthenticated("Invalid email or password")

        if IS_DEV:
            print(f"[LOGIN] Authenticated: user_id={user.id}")
        return self._auth_payload(user)

    @staticmethod
    def _auth_payload(user: User) -> Dict[str, Any]:
        payload = user_to_dict(user)
        payload["token"] = create_access_token(user.id)
        return payload
