"""
backend/schemas.py

Pydantic request schemas for the REST API.

Wire names are camelCase (assignedTo, dueDate, userId); the models expose
snake_case attributes. Loosely typed inputs are resolved here, once, at the
API boundary:
- members: a single id, a list of ids, or a JSON-encoded list of ids
- assignedTo: a single id (or null to clear on update)
Anything else is rejected as a validation error.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, validator
from pydantic import ValidationError as PydanticValidationError

from backend.errors import ValidationError, describe_validation_errors


def parse_member_input(value: Union[str, List[str], None]) -> Optional[List[str]]:
    """
    Resolve the tagged members input into a plain list of ids.

    SingleId:  "abc..."            -> ["abc..."]
    IdList:    ["abc...", "def..."] -> unchanged
    IdList:    '["abc...", ...]'   -> decoded JSON list
    """
    if value is None:
        return None
    if isinstance(value, list):
        return value

    text = value.strip()
    if text.startswith("["):
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            raise ValueError("members must be an id, a list of ids, or a JSON list of ids")
        if not isinstance(decoded, list) or not all(isinstance(m, str) for m in decoded):
            raise ValueError("members must be an id, a list of ids, or a JSON list of ids")
        return decoded
    if not text:
        return []
    return [text]


def _trim(v):
    if isinstance(v, str):
        return v.strip()
    return v


# ========================================================================
# USER SCHEMAS
# ========================================================================

class RegisterRequest(BaseModel):
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email (stored lowercase)")
    password: str = Field(..., description="Password (min 6 chars)")
    role: Optional[str] = Field(None, description="admin | member (default member)")


class LoginRequest(BaseModel):
    email: str
    password: str


# ========================================================================
# PROJECT SCHEMAS
# ========================================================================

class ProjectCreateRequest(BaseModel):
    """Request schema for creating a project.

    - title is required and trimmed
    - members accepts a single id, a list of ids, or a JSON-encoded list
    """
    title: str = Field(..., max_length=200, description="Project title (required)")
    description: Optional[str] = Field(None, max_length=5000)
    members: Optional[Union[List[str], str]] = Field(None, description="Member user id(s)")

    @validator("title", pre=True)
    def trim_title(cls, v):
        """Trim whitespace from title."""
        return _trim(v)

    @validator("title")
    def validate_title_non_empty(cls, v):
        if not v:
            raise ValueError("title must not be empty")
        return v

    @validator("members")
    def resolve_members(cls, v):
        return parse_member_input(v)


class ProjectUpdateRequest(ProjectCreateRequest):
    """Same shape as create; only fields present in the body are applied."""

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class MemberAddRequest(BaseModel):
    user_id: str = Field(..., alias="userId", description="User id to add")


# ========================================================================
# TASK SCHEMAS
# ========================================================================

class TaskCreateRequest(BaseModel):
    title: str = Field(..., max_length=200, description="Task title (required)")
    description: Optional[str] = Field(None, max_length=5000)
    assigned_to: Optional[str] = Field(None, alias="assignedTo", description="Assignee user id")
    due_date: Optional[datetime] = Field(None, alias="dueDate", description="Due date (ISO 8601)")

    @validator("title", pre=True)
    def trim_title(cls, v):
        return _trim(v)

    @validator("title")
    def validate_title_non_empty(cls, v):
        if not v:
            raise ValueError("title must not be empty")
        return v


class TaskUpdateRequest(BaseModel):
    """Any subset of the task fields. Present fields overwrite, including null."""
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    status: Optional[str] = Field(None, description="pending | in-progress | done")
    assigned_to: Optional[str] = Field(None, alias="assignedTo")
    due_date: Optional[datetime] = Field(None, alias="dueDate")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    @classmethod
    def parse_changes(cls, body: Any) -> Dict[str, Any]:
        """
        Validate a raw JSON body into a changes dict.

        Called only after the caller is authorized for the task.
        """
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            return cls.model_validate(body).changes()
        except PydanticValidationError as e:
            raise ValidationError(describe_validation_errors(e.errors()))
