"""
backend/routes_users.py

Public registration and login endpoints.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from backend.dependencies import get_identity_service
from backend.identity import IdentityService
from backend.schemas import LoginRequest, RegisterRequest


router = APIRouter(
    prefix="/api/users",
    tags=["users"],
)


@router.post("/register", status_code=201)
def register(
    req: RegisterRequest,
    identity: IdentityService = Depends(get_identity_service),
) -> Dict[str, Any]:
    """
    Register a new user and return it with a bearer token.

    Raises:
        400: validation failure or email already registered
    """
    return identity.register(req.name, req.email, req.password, req.role)


@router.post("/login")
def login(
    req: LoginRequest,
    identity: IdentityService = Depends(get_identity_service),
) -> Dict[str, Any]:
    """
    Authenticate with email + password.

    Raises:
        401: unknown email or wrong password
    """
    return identity.login(req.email, req.password)
