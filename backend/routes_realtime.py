"""
backend/routes_realtime.py

Websocket endpoint for the real-time fan-out channel.

Protocol (JSON text frames):
    client -> server  {"event": "join" | "leave", "payload": {"projectId": "..."}}
    server -> client  {"event": "...", "payload": ...}

Server events: joined, left, error, task:created, task:updated,
project:updated, project:deleted.

The token is supplied once, at connect time (?token=...). Joining a room
requires read access to the project.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from backend.auth_context import AuthContext, resolve_auth_context
from backend.config import IS_DEV
from backend.errors import AppError, Forbidden, Unauthenticated
from backend.rbac import can_read_project
from backend.realtime import WebSocketSession

# Close code sent when the connect-time token is missing or invalid
WS_CLOSE_UNAUTHENTICATED = 4401

router = APIRouter(tags=["realtime"])


def _error(message: str, project_id: Optional[str] = None) -> Dict[str, Any]:
    return {"event": "error", "payload": {"message": message, "projectId": project_id}}


async def handle_message(state, ctx: AuthContext, session: WebSocketSession, message: Any) -> None:
    """Apply one client frame (join/leave) for an authenticated session."""
    if not isinstance(message, dict):
        session.deliver(_error("Malformed message"))
        return

    event = message.get("event")
    payload = message.get("payload") or {}
    project_id = payload.get("projectId") if isinstance(payload, dict) else None

    if event not in ("join", "leave"):
        session.deliver(_error(f"Unknown event: {event!r}"))
        return
    if not project_id:
        session.deliver(_error("projectId is required"))
        return

    if event == "leave":
        state.channel.leave(project_id, session)
        session.deliver({"event": "left", "payload": {"projectId": project_id}})
        return

    try:
        project = await run_in_threadpool(state.projects.load, project_id)
        if not can_read_project(ctx.actor, project):
            raise Forbidden("Not authorized to access this project")
    except AppError as e:
        if IS_DEV:
            print(f"[REALTIME] Join denied: user_id={ctx.user_id}, project_id={project_id}, reason={e.message}")
        session.deliver(_error(e.message, project_id))
        return

    state.channel.join(project.id, session)
    session.deliver({"event": "joined", "payload": {"projectId": project.id}})


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    state = websocket.app.state

    try:
        ctx = await run_in_threadpool(resolve_auth_context, state.store, token)
    except Unauthenticated as e:
        print(f"[REALTIME] Rejected connection: {e.message}")
        await websocket.close(code=WS_CLOSE_UNAUTHENTICATED)
        return

    await websocket.accept()
    session = WebSocketSession(uuid.uuid4().hex, websocket, asyncio.get_running_loop(), user_id=ctx.user_id)
    sender = asyncio.create_task(session.pump())
    print(f"[REALTIME] Connected {session!r} user_id={ctx.user_id}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                session.deliver(_error("Malformed message"))
                continue
            await handle_message(state, ctx, session, message)
    except WebSocketDisconnect as e:
        print(f"[REALTIME] Disconnected {session!r} code={e.code}")
    finally:
        state.channel.leave_all(session)
        sender.cancel()
