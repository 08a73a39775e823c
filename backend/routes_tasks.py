"""
backend/routes_tasks.py

Task update endpoint. Tasks are created through /api/projects/{id}/tasks.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Path

from backend.auth_context import AuthContext, require_auth_context
from backend.dependencies import get_task_service
from backend.schemas import TaskUpdateRequest
from backend.tasks import TaskService


router = APIRouter(
    prefix="/api/tasks",
    tags=["tasks"],
)


@router.put("/{task_id}")
def update_task(
    task_id: str = Path(..., description="Task ID"),
    body: Any = Body(None, description="Any subset of title/description/status/assignedTo/dueDate"),
    ctx: AuthContext = Depends(require_auth_context),
    tasks: TaskService = Depends(get_task_service),
) -> Dict[str, Any]:
    """
    Update any subset of title/description/status/assignedTo/dueDate.

    Fields present in the body overwrite (null clears description,
    assignedTo and dueDate); absent fields are kept. Broadcasts task:updated.

    The body is taken raw and validated only once the caller is known to be
    allowed to write the task.

    Raises:
        400: malformed body, empty title, null/unknown status, malformed assignedTo
        403: caller is not admin, project owner, project member or assignee
        404: task or its project not found
    """
    task, project = tasks.load_writable(ctx.actor, task_id)
    changes = TaskUpdateRequest.parse_changes(body)
    return tasks.apply_update(task, project, changes)
