"""
backend/routes_projects.py

Project endpoints (and task creation, which is nested under a project).

Security guarantees:
- All endpoints require authentication (require_auth_context)
- The acting user comes from the token only, never from the body
- Existence is checked before authorization: 404 before 403
- Read: admin, owner or member. Write/delete/membership: admin or owner
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Path

from backend.auth_context import AuthContext, require_auth_context
from backend.dependencies import get_project_service, get_task_service
from backend.projects import ProjectService
from backend.schemas import (
    MemberAddRequest,
    ProjectCreateRequest,
    ProjectUpdateRequest,
    TaskCreateRequest,
)
from backend.tasks import TaskService


router = APIRouter(
    prefix="/api/projects",
    tags=["projects"],
)


@router.post("", status_code=201)
def create_project(
    request: ProjectCreateRequest,
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    """
    Create a project owned by the caller.

    Raises:
        400: missing title or malformed members
    """
    return projects.create(ctx.actor, request.title, request.description, request.members)


@router.get("")
def list_projects(
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> List[Dict[str, Any]]:
    """Projects the caller owns or belongs to (every project for an admin)."""
    return projects.list(ctx.actor)


@router.get("/{project_id}")
def get_project(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    """
    Expanded project: owner/members as {id, name, email}, tasks with assignee.

    Raises:
        403: caller is not admin, owner or member
        404: project not found
    """
    return projects.get(ctx.actor, project_id)


@router.put("/{project_id}")
def update_project(
    request: ProjectUpdateRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    """
    Update title/description; replaces the member set when members is sent.

    Raises:
        400: missing title
        403: caller is not admin or owner
        404: project not found
    """
    return projects.update(ctx.actor, project_id, request.changes())


@router.delete("/{project_id}")
def delete_project(
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    """Delete the project and every task in it."""
    return projects.delete(ctx.actor, project_id)


@router.post("/{project_id}/members")
def add_member(
    request: MemberAddRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    """
    Add a member (idempotent).

    Raises:
        403: caller is not admin or owner
        404: project or user not found
    """
    return projects.add_member(ctx.actor, project_id, request.user_id)


@router.delete("/{project_id}/members/{user_id}")
def remove_member(
    project_id: str = Path(..., description="Project ID"),
    user_id: str = Path(..., description="User ID to remove"),
    ctx: AuthContext = Depends(require_auth_context),
    projects: ProjectService = Depends(get_project_service),
) -> Dict[str, Any]:
    """Remove a member (idempotent)."""
    return projects.remove_member(ctx.actor, project_id, user_id)


@router.post("/{project_id}/tasks", status_code=201)
def create_task(
    request: TaskCreateRequest,
    project_id: str = Path(..., description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    """
    Create a task in the project and broadcast task:created to its room.

    Raises:
        400: missing title or malformed assignedTo
        403: caller is not admin, owner or member
        404: project not found
    """
    return tasks.create(
        ctx.actor,
        project_id,
        request.title,
        description=request.description,
        assigned_to=request.assigned_to,
        due_date=request.due_date,
    )
