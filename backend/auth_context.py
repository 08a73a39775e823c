"""
backend/auth_context.py

Shared authentication context primitives for FastAPI dependency injection.

Contains:
- AuthContext: immutable identity of the caller, derived from the bearer token
- verify_token: JWT verification
- resolve_auth_context: token -> AuthContext (shared by HTTP and websocket)
- require_auth_context: FastAPI dependency for protected routes

This module MUST NOT import backend.main to avoid circular dependencies.
"""

from __future__ import annotations

from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from backend.config import ALGORITHM, IS_DEV, SECRET_KEY
from backend.documents import DocumentStore, is_valid_id
from backend.errors import Unauthenticated
from backend.models import Actor, UserRole

# auto_error=False: a missing header must be a 401 from us, not the scheme's default
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------
# JWT Token Verification
# ---------------------------------------------------------
def verify_token(token: str) -> dict:
    """
    Verify a bearer token and return its decoded payload.

    Raises:
        Unauthenticated: if the token is expired or invalid
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Not authorized, token failed")


# ---------------------------------------------------------
# AuthContext
# ---------------------------------------------------------
class AuthContext(BaseModel):
    """
    Identity of the caller. The ONLY source of truth for user id and role in
    protected endpoints; never trust ids from request bodies for the actor.
    """
    user_id: str
    role: UserRole
    email: str
    name: str

    @property
    def actor(self) -> Actor:
        return Actor(id=self.user_id, role=self.role)


def resolve_auth_context(store: DocumentStore, token: Optional[str]) -> AuthContext:
    """
    Verify the token and load the user it names (the store is the source of
    truth for role).

    Raises:
        Unauthenticated: no token, bad token, or user no longer exists
    """
    if not token:
        raise Unauthenticated("Not authorized, no token")

    payload = verify_token(token)
    user_id = payload.get("sub")
    if not is_valid_id(user_id):
        print("[AUTH] Missing or malformed user id in token payload")
        raise Unauthenticated("Invalid token payload")

    user = store.find_user(user_id)
    if user is None:
        print(f"[AUTH] User not found: user_id={user_id}")
        raise Unauthenticated("User not found")

    ctx = AuthContext(user_id=user.id, role=user.role, email=user.email, name=user.name)
    if IS_DEV:
        print(f"[AUTH] Authenticated: user_id={ctx.user_id}, role={ctx.role.value}")
    return ctx


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def require_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    store: DocumentStore = Depends(get_store),
) -> AuthContext:
    """
    Auth dependency for protected routes.

    Usage:
        @router.get("/protected")
        def protected_route(ctx: AuthContext = Depends(require_auth_context)):
            ...
    """
    token = credentials.credentials if credentials else None
    return resolve_auth_context(store, token)
