"""
backend/tasks.py

Task aggregate service. Tasks are always reached through their parent
project: authorization is resolved against the project, and every mutation
is published to the project's room.

Update semantics are field-presence based: a key present in the update
overwrites the stored value (including clearing it with None), an absent key
keeps it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from backend.config import IS_DEV
from backend.documents import DocumentStore, is_valid_id, new_id
from backend.errors import Forbidden, NotFound, ValidationError
from backend.models import Actor, Project, Task, TaskStatus, task_to_dict, utcnow
from backend.projects import ProjectService
from backend.rbac import can_create_task, can_write_task
from backend.realtime import FanOutChannel

UPDATABLE_FIELDS = ("title", "description", "status", "assigned_to", "due_date")


def normalize_task_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Task title is required")
    return title.strip()


def normalize_status(status: Any) -> TaskStatus:
    try:
        return TaskStatus(status)
    except ValueError:
        raise ValidationError("Status must be one of: pending, in-progress, done")


def normalize_assignee(assigned_to: Any) -> Optional[str]:
    if assigned_to is None:
        return None
    if not is_valid_id(assigned_to):
        raise ValidationError(f"Invalid assignedTo id: {assigned_to!r}")
    return assigned_to


class TaskService:
    def __init__(self, store: DocumentStore, channel: FanOutChannel, projects: ProjectService):
        self.store = store
        self.channel = channel
        self.projects = projects

    def create(
        self,
        actor: Actor,
        project_id: str,
        title: str,
        description: Optional[str] = None,
        assigned_to: Optional[str] = None,
        due_date: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        project = self.projects.load(project_id)
        if not can_create_task(actor, project):
            raise Forbidden("Not authorized to add tasks to this project")

        now = utcnow()
        task = Task(
            id=new_id(),
            title=normalize_task_title(title),
            description=description.strip() if description is not None else None,
            status=TaskStatus.pending,
            assigned_to=normalize_assignee(assigned_to),
            due_date=due_date,
            project=project.id,
            created_at=now,
            updated_at=now,
        )
        self.store.insert_task(task)

        # Re-read so a concurrent append to the task list is not overwritten
        project = self.projects.load(project.id)
        project = project.model_copy(update={"tasks": [*project.tasks, task.id], "updated_at": now})
        self.store.save_project(project)
        print(f"[TASKS] Created task_id={task.id} in project_id={project.id}")

        data = task_to_dict(task)
        self.channel.publish(project.id, "task:created", data)
        return data

    def load_writable(self, actor: Actor, task_id: str) -> Tuple[Task, Project]:
        """Load a task and its project, raising 404/403 before any body is read."""
        task = self.store.find_task(task_id) if is_valid_id(task_id) else None
        if task is None:
            raise NotFound("Task not found")

        project = self.store.find_project(task.project)
        if project is None:
            raise NotFound("Project not found")

        if not can_write_task(actor, task, project):
            raise Forbidden("Not authorized to update this task")
        return task, project

    def update(self, actor: Actor, task_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        task, project = self.load_writable(actor, task_id)
        return self.apply_update(task, project, changes)

    def apply_update(self, task: Task, project: Project, changes: Dict[str, Any]) -> Dict[str, Any]:
        update: Dict[str, Any] = {}
        if "title" in changes:
            update["title"] = normalize_task_title(changes["title"])
        if "description" in changes:
            description = changes["description"]
            update["description"] = description.strip() if description else None
        if "status" in changes:
            update["status"] = normalize_status(changes["status"])
        if "assigned_to" in changes:
            update["assigned_to"] = normalize_assignee(changes["assigned_to"])
        if "due_date" in changes:
            update["due_date"] = changes["due_date"]
        update["updated_at"] = utcnow()

        task = task.model_copy(update=update)
        self.store.save_task(task)
        if IS_DEV:
            print(f"[TASKS] Updated task_id={task.id}, fields={sorted(k for k in changes if k in UPDATABLE_FIELDS)}")

        data = task_to_dict(task)
        self.channel.publish(project.id, "task:updated", data)
        return data
