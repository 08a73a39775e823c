from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# Enums
class UserRole(str, Enum):
    admin = "admin"
    member = "member"


class TaskStatus(str, Enum):
    pending = "pending"
    in_progress = "in-progress"
    done = "done"


# Models
class User(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole = UserRole.member
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Project(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    owner: str
    members: List[str] = Field(default_factory=list)
    tasks: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Task(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.pending
    assigned_to: Optional[str] = None
    due_date: Optional[datetime] = None
    project: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Actor(BaseModel):
    """The authenticated identity performing an operation."""
    id: str
    role: UserRole = UserRole.member

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


# ---------------------------------------------------------
# Wire representations (camelCase, shared by REST and real-time payloads)
# ---------------------------------------------------------
def iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def user_summary(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def user_to_dict(user: User) -> Dict[str, Any]:
    # Never includes password_hash
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value,
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }


def task_to_dict(task: Task, users: Optional[Dict[str, User]] = None) -> Dict[str, Any]:
    """
    Serialize a task. When `users` is given, assignedTo is expanded to
    {id, name, email} (or None if the user no longer resolves).
    """
    assigned_to: Any = task.assigned_to
    if users is not None and task.assigned_to:
        assigned_to = user_summary(users.get(task.assigned_to))

    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "assignedTo": assigned_to,
        "dueDate": iso(task.due_date),
        "project": task.project,
        "createdAt": iso(task.created_at),
        "updatedAt": iso(task.updated_at),
    }


def project_to_dict(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "owner": project.owner,
        "members": list(project.members),
        "tasks": list(project.tasks),
        "createdAt": iso(project.created_at),
        "updatedAt": iso(project.updated_at),
    }
