# ---------------------------------------------------------
# backend/main.py
# Teamboard - team projects, tasks and live updates
#
# Run: uvicorn backend.main:app --reload (from repo root)
#
# - FastAPI + SQLAlchemy (SQLite in dev, PostgreSQL in prod)
# - /api/users     : register / login (bearer tokens)
# - /api/projects  : projects, membership, task creation
# - /api/tasks     : task updates
# - /ws            : per-project real-time rooms
# ---------------------------------------------------------

from __future__ import annotations

from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from backend.config import CORS_ORIGINS, IS_DEV, IS_PROD
from backend.db import init_db, init_engine
from backend.documents import DocumentStore
from backend.errors import AppError, describe_validation_errors
from backend.identity import IdentityService
from backend.projects import ProjectService
from backend.realtime import FanOutChannel
from backend.tasks import TaskService
from backend import routes_projects, routes_realtime, routes_tasks, routes_users


# ============================================================================
# API ENDPOINT CLASSIFICATION & SECURITY MODEL
# ============================================================================
#
# [PUBLIC] - No authentication required
#   • /health - Health check
#   • /api/users/register - User registration
#   • /api/users/login - User login
#
# [AUTH_ONLY] - Bearer token required; access decided per project by rbac.py
#   • /api/projects (POST, GET)
#   • /api/projects/{id} (GET, PUT, DELETE)
#   • /api/projects/{id}/members (POST), /api/projects/{id}/members/{userId} (DELETE)
#   • /api/projects/{id}/tasks (POST)
#   • /api/tasks/{id} (PUT)
#   • /ws?token=... - token checked at connect, project access checked at join
#
# ENFORCEMENT RULES:
# 1. The actor always comes from the token (require_auth_context), never from a body
# 2. Existence is checked before authorization (404 before 403)
# 3. Every task/project mutation is published to the project's room after it persists
# 4. Publishing never fails or delays the HTTP response
# 5. Task update bodies are validated after authorization (403 before 400)
#
# ============================================================================


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        if IS_DEV and exc.status_code >= 403:
            print(f"[API] {request.method} {request.url.path} -> {exc.status_code} {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": describe_validation_errors(exc.errors())})

    @app.exception_handler(SQLAlchemyError)
    async def handle_db_error(request: Request, exc: SQLAlchemyError):
        # Log error but don't expose internal details
        print(f"[API] DB error on {request.method} {request.url.path}: {type(exc).__name__}")
        return JSONResponse(status_code=500, content={"detail": "Database error"})


def create_app(database_url: Optional[str] = None) -> FastAPI:
    """
    Build the application: one engine, one document store, one fan-out
    channel, and the services wired to them.
    """
    app = FastAPI(title="Teamboard Backend", version="0.1")

    # CORS configuration from config module
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    engine = init_engine(database_url)
    init_db(engine)

    store = DocumentStore(engine)
    channel = FanOutChannel()
    projects = ProjectService(store, channel)

    app.state.engine = engine
    app.state.store = store
    app.state.channel = channel
    app.state.identity = IdentityService(store)
    app.state.projects = projects
    app.state.tasks = TaskService(store, channel, projects)

    install_error_handlers(app)

    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "ok"}

    app.include_router(routes_users.router)
    app.include_router(routes_projects.router)
    app.include_router(routes_tasks.router)
    app.include_router(routes_realtime.router)

    return app


app = create_app()
