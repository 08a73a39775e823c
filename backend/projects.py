"""
backend/projects.py

Project aggregate service: create/read/update/delete projects, manage
membership, cascade task deletion, and publish project events.

Check order for every operation on an existing project:
1. project exists (NotFound)
2. policy allows it (Forbidden)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from backend.config import IS_DEV
from backend.documents import DocumentStore, is_valid_id, new_id
from backend.errors import Forbidden, NotFound, ValidationError
from backend.models import Actor, Project, project_to_dict, task_to_dict, user_summary, utcnow
from backend.rbac import can_read_project, can_write_project
from backend.realtime import FanOutChannel


def normalize_title(title: Optional[str]) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Project title is required")
    return title.strip()


def normalize_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    return description.strip()


def normalize_member_ids(member_ids: Optional[List[str]]) -> List[str]:
    """De-duplicate while keeping first-seen order; every id must be well formed."""
    if not member_ids:
        return []
    for member_id in member_ids:
        if not is_valid_id(member_id):
            raise ValidationError(f"Invalid member id: {member_id!r}")
    return list(dict.fromkeys(member_ids))


class ProjectService:
    def __init__(self, store: DocumentStore, channel: FanOutChannel):
        self.store = store
        self.channel = channel

    # -----------------------------------------------------
    # Lookup helpers
    # -----------------------------------------------------
    def load(self, project_id: str) -> Project:
        """Fetch a project or raise NotFound (malformed ids are simply absent)."""
        project = self.store.find_project(project_id) if is_valid_id(project_id) else None
        if project is None:
            raise NotFound("Project not found")
        return project

    def load_readable(self, actor: Actor, project_id: str) -> Project:
        project = self.load(project_id)
        if not can_read_project(actor, project):
            raise Forbidden("Not authorized to access this project")
        return project

    def load_writable(self, actor: Actor, project_id: str, action: str = "update") -> Project:
        project = self.load(project_id)
        if not can_write_project(actor, project):
            raise Forbidden(f"Not authorized to {action} this project")
        return project

    def expand(self, project: Project) -> Dict[str, Any]:
        """
        Project with owner/members expanded to {id, name, email} and tasks
        replaced by task documents whose assignee is expanded likewise.
        """
        tasks = self.store.find_tasks(project.tasks)
        user_ids = {project.owner, *project.members}
        user_ids.update(t.assigned_to for t in tasks if t.assigned_to)
        users = self.store.find_users(user_ids)

        data = project_to_dict(project)
        data["owner"] = user_summary(users.get(project.owner))
        data["members"] = [user_summary(users[m]) for m in project.members if m in users]
        data["tasks"] = [task_to_dict(t, users) for t in tasks]
        return data

    def _publish_updated(self, project: Project) -> Dict[str, Any]:
        expanded = self.expand(project)
        self.channel.publish(project.id, "project:updated", expanded)
        return expanded

    def _evict_revoked(self, project: Project, user_ids: List[str]) -> None:
        """Drop the room subscriptions of users who can no longer read the project."""
        if not user_ids:
            return
        users = self.store.find_users(user_ids)
        revoked = [
            uid for uid in user_ids
            if uid not in users or not can_read_project(Actor(id=uid, role=users[uid].role), project)
        ]
        if revoked:
            self.channel.evict(project.id, revoked)

    # -----------------------------------------------------
    # Operations
    # -----------------------------------------------------
    def create(
        self,
        actor: Actor,
        title: str,
        description: Optional[str] = None,
        members: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        now = utcnow()
        project = Project(
            id=new_id(),
            title=normalize_title(title),
            description=normalize_description(description),
            owner=actor.id,
            members=normalize_member_ids(members),
            tasks=[],
            created_at=now,
            updated_at=now,
        )
        self.store.insert_project(project)
        print(f"[PROJECTS] Created project_id={project.id}, owner={actor.id}, members={len(project.members)}")
        return self.expand(project)

    def get(self, actor: Actor, project_id: str) -> Dict[str, Any]:
        return self.expand(self.load_readable(actor, project_id))

    def list(self, actor: Actor) -> List[Dict[str, Any]]:
        if actor.is_admin:
            projects = self.store.find_projects()
        else:
            projects = self.store.find_projects_for_user(actor.id)
        return [self.expand(p) for p in projects]

    def update(self, actor: Actor, project_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Partial update: keys present in `changes` overwrite, absent keys are
        kept. Supported keys: title, description, members (wholesale replace).
        """
        project = self.load_writable(actor, project_id, "update")

        update: Dict[str, Any] = {}
        if "title" in changes:
            update["title"] = normalize_title(changes["title"])
        if "description" in changes:
            update["description"] = normalize_description(changes["description"])
        if "members" in changes:
            update["members"] = normalize_member_ids(changes["members"])
        update["updated_at"] = utcnow()

        dropped = [m for m in project.members if m not in update.get("members", project.members)]
        project = project.model_copy(update=update)
        self.store.save_project(project)
        if IS_DEV:
            print(f"[PROJECTS] Updated project_id={project.id}, fields={sorted(k for k in changes)}")
        self._evict_revoked(project, dropped)
        return self._publish_updated(project)

    def delete(self, actor: Actor, project_id: str) -> Dict[str, Any]:
        """
        Delete the project's tasks, then the project. The two deletes are
        separate operations; a failure in between leaves orphaned tasks.
        """
        project = self.load_writable(actor, project_id, "delete")

        removed_tasks = self.store.delete_tasks_by_project(project.id)
        self.store.delete_project(project.id)
        print(f"[PROJECTS] Deleted project_id={project.id} with {removed_tasks} task(s)")

        self.channel.publish(project.id, "project:deleted", {"id": project.id})
        self.channel.close_room(project.id)
        return {"message": "Project deleted", "id": project.id}

    def add_member(self, actor: Actor, project_id: str, user_id: str) -> Dict[str, Any]:
        """Idempotent: adding an existing member leaves the member set unchanged."""
        project = self.load_writable(actor, project_id, "add members to")

        user = self.store.find_user(user_id) if is_valid_id(user_id) else None
        if user is None:
            raise NotFound("User not found")

        if user.id in project.members:
            return self.expand(project)

        project = project.model_copy(update={"members": [*project.members, user.id], "updated_at": utcnow()})
        self.store.save_project(project)
        print(f"[PROJECTS] Added member user_id={user.id} to project_id={project.id}")
        return self._publish_updated(project)

    def remove_member(self, actor: Actor, project_id: str, user_id: str) -> Dict[str, Any]:
        """Idempotent: removing a non-member is a no-op."""
        project = self.load_writable(actor, project_id, "remove members from")

        if user_id not in project.members:
            return self.expand(project)

        project = project.model_copy(
            update={"members": [m for m in project.members if m != user_id], "updated_at": utcnow()}
        )
        self.store.save_project(project)
        print(f"[PROJECTS] Removed member user_id={user_id} from project_id={project.id}")
        self._evict_revoked(project, [user_id])
        return self._publish_updated(project)
