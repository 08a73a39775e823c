"""
backend/rbac.py

Role- and relationship-based access control for projects and tasks.

Every authorization decision in the backend goes through these predicates.
Pure Python logic - no FastAPI imports, no database access.

Rules:
- admin can do everything
- project owner can read and write the project and its tasks
- project members can read the project, create tasks and update tasks
- a task's assignee can update that task
"""

from typing import Optional

from backend.models import Actor, Project, Task, UserRole


# ============================================================================
# Relationship Helpers
# ============================================================================

def is_admin(actor: Actor) -> bool:
    return actor.role == UserRole.admin


def is_owner(actor: Actor, project: Project) -> bool:
    return actor.id == project.owner


def is_member(actor: Actor, project: Project) -> bool:
    return actor.id in project.members


def is_assignee(actor: Actor, task: Optional[Task]) -> bool:
    return task is not None and task.assigned_to is not None and actor.id == task.assigned_to


# ============================================================================
# Project Policy
# ============================================================================

def can_read_project(actor: Actor, project: Project) -> bool:
    """
    Read access: admin, owner, or member.

    Also gates joining the project's real-time room.
    """
    return is_admin(actor) or is_owner(actor, project) or is_member(actor, project)


def can_write_project(actor: Actor, project: Project) -> bool:
    """
    Write access (edit metadata, delete, manage membership): admin or owner.
    Members are deliberately excluded.
    """
    return is_admin(actor) or is_owner(actor, project)


# ============================================================================
# Task Policy
# ============================================================================

def can_create_task(actor: Actor, project: Project) -> bool:
    """Creating a task needs membership-level access, not ownership."""
    return can_read_project(actor, project)


def can_write_task(actor: Actor, task: Task, project: Project) -> bool:
    """
    Update access for a task, resolved through its parent project:
    admin, project owner, project member, or the task's assignee.
    """
    return (
        is_admin(actor)
        or is_owner(actor, project)
        or is_member(actor, project)
        or is_assignee(actor, task)
    )
