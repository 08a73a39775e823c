"""
backend/dependencies.py

FastAPI dependencies that hand route handlers the services built by
create_app(). Services live on app.state; the websocket route reads
app.state directly.
"""

from __future__ import annotations

from fastapi import Request

from backend.identity import IdentityService
from backend.projects import ProjectService
from backend.tasks import TaskService


def get_identity_service(request: Request) -> IdentityService:
    return request.app.state.identity


def get_project_service(request: Request) -> ProjectService:
    return request.app.state.projects


def get_task_service(request: Request) -> TaskService:
    return request.app.state.tasks
