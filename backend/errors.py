"""
backend/errors.py

Error taxonomy for the service layer.

Services raise these plain exceptions (no FastAPI imports); main.py installs
one exception handler that turns any AppError into {"detail": message} with
the matching HTTP status.
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for errors surfaced to the HTTP caller."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(AppError):
    """Missing or malformed required fields."""
    status_code = 400
    default_message = "Invalid request"


class Unauthenticated(AppError):
    """Missing, invalid or expired token."""
    status_code = 401
    default_message = "Not authorized, token failed"


class Forbidden(AppError):
    """Authenticated, but the policy denies the operation."""
    status_code = 403
    default_message = "Not authorized"


class NotFound(AppError):
    """Resource absent."""
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    # Duplicate email at registration. The REST contract reports 400.
    status_code = 400
    default_message = "User already exists"


def describe_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """Flatten pydantic error dicts into one message for {"detail": ...}."""
    missing = [str(e["loc"][-1]) for e in errors if e.get("type") == "missing" and e.get("loc")]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    parts = []
    for e in errors:
        loc = ".".join(str(p) for p in e.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {e.get('msg')}" if loc else str(e.get("msg")))
    return "; ".join(parts) or "Invalid request"
