"""
backend/realtime.py

Real-time fan-out channel: per-project broadcast rooms.

Delivery model:
- best effort, at most once, no replay
- events published while a session is disconnected are lost for it
- per session, events arrive in the order the server published them
- publish never blocks and never raises into the caller

The channel is constructed once by create_app() and handed to the services
that publish on it.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Dict, Iterable, Optional, Set

from backend.config import IS_DEV


def room_name(project_id: str) -> str:
    return f"project:{project_id}"


class Session:
    """
    A connected client. Subclasses decide how a message reaches the client;
    `deliver` must not block.
    """

    def __init__(self, session_id: str, user_id: Optional[str] = None):
        self.session_id = session_id
        self.user_id = user_id

    def deliver(self, message: Dict[str, Any]) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.session_id}>"


class WebSocketSession(Session):
    """
    Session backed by a websocket running on an asyncio loop.

    Publishes may come from worker threads (sync route handlers), so messages
    are handed to the loop with call_soon_threadsafe and written out by
    `pump()`, which runs as a task next to the receive loop.
    """

    def __init__(self, session_id: str, websocket, loop: asyncio.AbstractEventLoop, user_id: Optional[str] = None):
        super().__init__(session_id, user_id)
        self.websocket = websocket
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def deliver(self, message: Dict[str, Any]) -> None:
        # Nothing drains the queue once pump() has stopped
        if self.closed:
            return
        self.loop.call_soon_threadsafe(self.queue.put_nowait, message)

    async def pump(self) -> None:
        try:
            while True:
                message = await self.queue.get()
                await self.websocket.send_json(message)
        except Exception as e:
            # Transport gone; the receive loop will notice and clean up
            print(f"[REALTIME] {self!r} send loop stopped: {type(e).__name__}")
        finally:
            self.closed = True


class FanOutChannel:
    """Broadcast rooms keyed by project id."""

    def __init__(self):
        self._rooms: Dict[str, Set[Session]] = {}
        self._lock = threading.Lock()

    def join(self, project_id: str, session: Session) -> None:
        """Idempotent: joining a room twice leaves one subscription."""
        with self._lock:
            self._rooms.setdefault(room_name(project_id), set()).add(session)
        if IS_DEV:
            print(f"[REALTIME] {session!r} joined {room_name(project_id)}")

    def leave(self, project_id: str, session: Session) -> None:
        """Idempotent: leaving a room the session is not in is a no-op."""
        name = room_name(project_id)
        with self._lock:
            members = self._rooms.get(name)
            if members is not None:
                members.discard(session)
                if not members:
                    del self._rooms[name]
        if IS_DEV:
            print(f"[REALTIME] {session!r} left {name}")

    def leave_all(self, session: Session) -> None:
        """Drop a session from every room (on disconnect)."""
        with self._lock:
            for name in list(self._rooms):
                members = self._rooms[name]
                members.discard(session)
                if not members:
                    del self._rooms[name]

    def sessions(self, project_id: str) -> Set[Session]:
        with self._lock:
            return set(self._rooms.get(room_name(project_id), ()))

    def evict(self, project_id: str, user_ids: Iterable[str], reason: str = "Access revoked") -> int:
        """
        Remove every session of the given users from a room and tell each one
        with a `left` event. Used when users lose read access to the project.
        """
        name = room_name(project_id)
        targets = set(user_ids)
        with self._lock:
            members = self._rooms.get(name, set())
            evicted = {s for s in members if s.user_id in targets}
            members -= evicted
            if name in self._rooms and not members:
                del self._rooms[name]

        message = {"event": "left", "payload": {"projectId": project_id, "reason": reason}}
        for session in evicted:
            try:
                session.deliver(message)
            except Exception as e:
                print(f"[REALTIME] Delivery to {session!r} failed: {type(e).__name__}: {e}")
        if evicted:
            print(f"[REALTIME] Evicted {len(evicted)} session(s) from {name}")
        return len(evicted)

    def close_room(self, project_id: str) -> int:
        """Drop a room and all its subscriptions (the project is gone)."""
        with self._lock:
            dropped = self._rooms.pop(room_name(project_id), set())
        if IS_DEV:
            print(f"[REALTIME] Closed {room_name(project_id)} ({len(dropped)} session(s))")
        return len(dropped)

    def publish(self, project_id: str, event: str, payload: Any) -> int:
        """
        Fire-and-forget broadcast to every session currently in the room.

        Returns the number of sessions the message was handed to. Failures
        are logged and swallowed.
        """
        message = {"event": event, "payload": payload}
        delivered = 0
        try:
            targets = self.sessions(project_id)
        except Exception as e:
            print(f"[REALTIME] Publish failed for {room_name(project_id)}: {type(e).__name__}: {e}")
            return 0

        for session in targets:
            try:
                session.deliver(message)
                delivered += 1
            except Exception as e:
                print(f"[REALTIME] Delivery to {session!r} failed: {type(e).__name__}: {e}")

        if IS_DEV:
            print(f"[REALTIME] {event} -> {room_name(project_id)} ({delivered} session(s))")
        return delivered
