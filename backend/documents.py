"""
backend/documents.py

Document-style persistence for users, projects and tasks.

Each record is read and written as a whole document. A project carries its
member ids and task ids as JSON arrays in its own row, so saving a project
is a single-row write (last write wins, no version check).

This is the only module that knows table and column names.
"""

from __future__ import annotations

import json
import re
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from backend.db import execute_query, get_db_connection
from backend.errors import Conflict
from backend.models import Project, Task, User


ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def new_id() -> str:
    return uuid.uuid4().hex


def is_valid_id(value: Any) -> bool:
    """True if `value` is syntactically a document identifier."""
    return isinstance(value, str) and bool(ID_PATTERN.match(value))


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


# ---------------------------------------------------------
# Row Conversion Helpers
# ---------------------------------------------------------
def _row_to_user(row) -> Optional[User]:
    if row is None:
        return None
    m = row._mapping
    return User(
        id=m["id"],
        name=m["name"],
        email=m["email"],
        role=m["role"],
        password_hash=m["password_hash"],
        created_at=m["created_at"],
        updated_at=m["updated_at"],
    )


def _row_to_project(row) -> Optional[Project]:
    if row is None:
        return None
    m = row._mapping
    return Project(
        id=m["id"],
        title=m["title"],
        description=m["description"],
        owner=m["owner_id"],
        members=json.loads(m["members_json"] or "[]"),
        tasks=json.loads(m["tasks_json"] or "[]"),
        created_at=m["created_at"],
        updated_at=m["updated_at"],
    )


def _row_to_task(row) -> Optional[Task]:
    if row is None:
        return None
    m = row._mapping
    return Task(
        id=m["id"],
        title=m["title"],
        description=m["description"],
        status=m["status"],
        assigned_to=m["assigned_to"],
        due_date=m["due_date"],
        project=m["project_id"],
        created_at=m["created_at"],
        updated_at=m["updated_at"],
    )


def _project_params(project: Project) -> Dict[str, Any]:
    return {
        "id": project.id,
        "title": project.title,
        "description": project.description,
        "owner_id": project.owner,
        "members_json": json.dumps(list(project.members)),
        "tasks_json": json.dumps(list(project.tasks)),
        "created_at": _iso(project.created_at),
        "updated_at": _iso(project.updated_at),
    }


def _task_params(task: Task) -> Dict[str, Any]:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status.value,
        "assigned_to": task.assigned_to,
        "due_date": _iso(task.due_date),
        "project_id": task.project,
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
    }


def _in_clause(prefix: str, ids: List[str]) -> tuple[str, Dict[str, Any]]:
    """Build ':p0, :p1, ...' placeholders for an IN (...) filter."""
    names = [f"{prefix}{i}" for i in range(len(ids))]
    return ", ".join(f":{n}" for n in names), dict(zip(names, ids))


class DocumentStore:
    """
    Create/find/update/delete documents by id or filter.

    Every method opens its own short transaction; callers that need two
    writes (project + tasks) get two independent operations.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    # -----------------------------------------------------
    # Users
    # -----------------------------------------------------
    def insert_user(self, user: User) -> User:
        try:
            with get_db_connection(self.engine) as conn:
                execute_query(
                    conn,
                    """
                    INSERT INTO users (id, name, email, role, password_hash, created_at, updated_at)
                    VALUES (:id, :name, :email, :role, :password_hash, :created_at, :updated_at)
                    """,
                    {
                        "id": user.id,
                        "name": user.name,
                        "email": user.email,
                        "role": user.role.value,
                        "password_hash": user.password_hash,
                        "created_at": _iso(user.created_at),
                        "updated_at": _iso(user.updated_at),
                    },
                )
        except IntegrityError as e:
            # users.email is UNIQUE; two concurrent registrations can both pass the pre-check
            print(f"[DB] IntegrityError on user insert: {type(e).__name__}")
            raise Conflict("User already exists")
        return user

    def find_user(self, user_id: str) -> Optional[User]:
        with get_db_connection(self.engine) as conn:
            row = execute_query(conn, "SELECT * FROM users WHERE id = :id", {"id": user_id}).fetchone()
        return _row_to_user(row)

    def find_user_by_email(self, email: str) -> Optional[User]:
        with get_db_connection(self.engine) as conn:
            row = execute_query(conn, "SELECT * FROM users WHERE email = :email", {"email": email}).fetchone()
        return _row_to_user(row)

    def find_users(self, user_ids: Iterable[str]) -> Dict[str, User]:
        ids = sorted({uid for uid in user_ids if uid})
        if not ids:
            return {}
        placeholders, params = _in_clause("u", ids)
        with get_db_connection(self.engine) as conn:
            rows = execute_query(conn, f"SELECT * FROM users WHERE id IN ({placeholders})", params).fetchall()
        users = [_row_to_user(r) for r in rows]
        return {u.id: u for u in users}

    # -----------------------------------------------------
    # Projects
    # -----------------------------------------------------
    def insert_project(self, project: Project) -> Project:
        with get_db_connection(self.engine) as conn:
            execute_query(
                conn,
                """
                INSERT INTO projects (id, title, description, owner_id, members_json, tasks_json, created_at, updated_at)
                VALUES (:id, :title, :description, :owner_id, :members_json, :tasks_json, :created_at, :updated_at)
                """,
                _project_params(project),
            )
        return project

    def find_project(self, project_id: str) -> Optional[Project]:
        with get_db_connection(self.engine) as conn:
            row = execute_query(conn, "SELECT * FROM projects WHERE id = :id", {"id": project_id}).fetchone()
        return _row_to_project(row)

    def find_projects(self) -> List[Project]:
        with get_db_connection(self.engine) as conn:
            rows = execute_query(conn, "SELECT * FROM projects ORDER BY created_at").fetchall()
        return [_row_to_project(r) for r in rows]

    def find_projects_for_user(self, user_id: str) -> List[Project]:
        """Projects the user owns or is a member of."""
        # ids are hex, so the quoted id cannot collide with LIKE wildcards
        with get_db_connection(self.engine) as conn:
            rows = execute_query(
                conn,
                """
                SELECT * FROM projects
                WHERE owner_id = :user_id OR members_json LIKE :member_pattern
                ORDER BY created_at
                """,
                {"user_id": user_id, "member_pattern": f'%"{user_id}"%'},
            ).fetchall()
        projects = [_row_to_project(r) for r in rows]
        return [p for p in projects if p.owner == user_id or user_id in p.members]

    def save_project(self, project: Project) -> Project:
        with get_db_connection(self.engine) as conn:
            execute_query(
                conn,
                """
                UPDATE projects
                SET title = :title,
                    description = :description,
                    owner_id = :owner_id,
                    members_json = :members_json,
                    tasks_json = :tasks_json,
                    created_at = :created_at,
                    updated_at = :updated_at
                WHERE id = :id
                """,
                _project_params(project),
            )
        return project

    def delete_project(self, project_id: str) -> int:
        with get_db_connection(self.engine) as conn:
            result = execute_query(conn, "DELETE FROM projects WHERE id = :id", {"id": project_id})
        return result.rowcount

    # -----------------------------------------------------
    # Tasks
    # -----------------------------------------------------
    def insert_task(self, task: Task) -> Task:
        with get_db_connection(self.engine) as conn:
            execute_query(
                conn,
                """
                INSERT INTO tasks (id, title, description, status, assigned_to, due_date, project_id, created_at, updated_at)
                VALUES (:id, :title, :description, :status, :assigned_to, :due_date, :project_id, :created_at, :updated_at)
                """,
                _task_params(task),
            )
        return task

    def find_task(self, task_id: str) -> Optional[Task]:
        with get_db_connection(self.engine) as conn:
            row = execute_query(conn, "SELECT * FROM tasks WHERE id = :id", {"id": task_id}).fetchone()
        return _row_to_task(row)

    def find_tasks(self, task_ids: List[str]) -> List[Task]:
        """Tasks by id, in the order given; ids that no longer resolve are skipped."""
        if not task_ids:
            return []
        placeholders, params = _in_clause("t", list(dict.fromkeys(task_ids)))
        with get_db_connection(self.engine) as conn:
            rows = execute_query(conn, f"SELECT * FROM tasks WHERE id IN ({placeholders})", params).fetchall()
        by_id = {t.id: t for t in (_row_to_task(r) for r in rows)}
        return [by_id[tid] for tid in dict.fromkeys(task_ids) if tid in by_id]

    def save_task(self, task: Task) -> Task:
        with get_db_connection(self.engine) as conn:
            execute_query(
                conn,
                """
                UPDATE tasks
                SET title = :title,
                    description = :description,
                    status = :status,
                    assigned_to = :assigned_to,
                    due_date = :due_date,
                    project_id = :project_id,
                    created_at = :created_at,
                    updated_at = :updated_at
                WHERE id = :id
                """,
                _task_params(task),
            )
        return task

    def delete_tasks_by_project(self, project_id: str) -> int:
        with get_db_connection(self.engine) as conn:
            result = execute_query(conn, "DELETE FROM tasks WHERE project_id = :project_id", {"project_id": project_id})
        return result.rowcount
