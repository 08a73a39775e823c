"""
frontend/project_state.py
Local state for the project currently being viewed.

REST responses and real-time events both flow into one ProjectViewState.
Nothing deduplicates a mutation that arrives through both paths (or twice
after a reconnect), so every merge is keyed by id and idempotent.

Pure Python - no Streamlit imports, so the merge rules are unit-testable.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

# Events this view reacts to; anything else is ignored
HANDLED_EVENTS = ("task:created", "task:updated", "project:updated", "project:deleted")


def _task_project_id(task: Dict[str, Any]) -> Optional[str]:
    project = task.get("project")
    if isinstance(project, dict):
        return project.get("id")
    return project


class ProjectViewState:
    def __init__(self, project_id: str):
        self.project_id = project_id
        self.project: Optional[Dict[str, Any]] = None
        self.tasks: List[Dict[str, Any]] = []
        self.deleted = False

    def load(self, project: Dict[str, Any]) -> None:
        """Replace state from an expanded project (GET /api/projects/{id})."""
        self.project = {k: v for k, v in project.items() if k != "tasks"}
        self.tasks = []
        for task in project.get("tasks") or []:
            self.merge_task(task)

    def merge_task(self, task: Dict[str, Any]) -> None:
        """Append if the id is new, replace in place if it exists."""
        task_id = task.get("id")
        if not task_id:
            return
        for i, existing in enumerate(self.tasks):
            if existing.get("id") == task_id:
                self.tasks[i] = self._keep_expanded_assignee(existing, task)
                return
        self.tasks.append(task)

    @staticmethod
    def _keep_expanded_assignee(existing: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
        """
        Task events carry assignedTo as a bare id while the expanded project
        carries {id, name, email}; keep the richer form when both agree.
        """
        old = existing.get("assignedTo")
        new = incoming.get("assignedTo")
        if isinstance(old, dict) and isinstance(new, str) and old.get("id") == new:
            return {**incoming, "assignedTo": old}
        return incoming

    def apply_event(self, event: str, payload: Any) -> bool:
        """
        Merge one real-time event. Returns True if the state changed shape
        (caller may rerender), False if the event was not for this project.
        """
        if event not in HANDLED_EVENTS or not isinstance(payload, dict):
            return False

        if event in ("task:created", "task:updated"):
            if _task_project_id(payload) != self.project_id:
                return False
            self.merge_task(payload)
            return True

        if payload.get("id") != self.project_id:
            return False

        if event == "project:updated":
            self.load(payload)
            return True

        # project:deleted
        self.deleted = True
        self.project = None
        self.tasks = []
        return True

    def task(self, task_id: str) -> Optional[Dict[str, Any]]:
        for task in self.tasks:
            if task.get("id") == task_id:
                return task
        return None

    def counts_by_status(self) -> Dict[str, int]:
        counts = {"pending": 0, "in-progress": 0, "done": 0}
        for task in self.tasks:
            status = task.get("status")
            if status in counts:
                counts[status] += 1
        return counts
