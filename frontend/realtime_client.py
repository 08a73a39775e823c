"""
frontend/realtime_client.py
Background websocket listener for project rooms.

Streamlit scripts are short-lived reruns, so the socket lives in a daemon
thread owned by a RealtimeListener kept in st.session_state. Incoming events
are queued; the project page drains the queue on each rerun and merges the
events into its ProjectViewState.

Delivery is best effort: events published while disconnected are lost, and
the page re-fetches the project over REST after a reconnect.
"""

from __future__ import annotations

import json
import queue
import threading
from typing import Any, Callable, List, Optional, Set, Tuple
from urllib.parse import quote

from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI, WebSocketException
from websockets.sync.client import connect as ws_connect

from frontend.config import IS_DEV

Event = Tuple[str, Any]


class RealtimeListener:
    def __init__(
        self,
        ws_url: str,
        token: str,
        connect: Callable[..., Any] = ws_connect,
        reconnect_delay: float = 2.0,
    ):
        self.ws_url = ws_url
        self.token = token
        self._connect = connect
        self.reconnect_delay = reconnect_delay

        self.events: "queue.Queue[Event]" = queue.Queue()
        self.rooms: Set[str] = set()
        self.connected = False
        self.reconnects = 0
        self.last_error: Optional[str] = None

        self._ws = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # -----------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------
    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="realtime-listener", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        with self._lock:
            ws = self._ws
        if ws is not None:
            try:
                ws.close()
            except Exception as e:
                print(f"[REALTIME] Close failed: {type(e).__name__}")

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    # -----------------------------------------------------
    # Rooms
    # -----------------------------------------------------
    def join(self, project_id: str) -> None:
        """Remember the room and join it now if connected (re-joined on reconnect)."""
        self.rooms.add(project_id)
        self._send("join", project_id)

    def leave(self, project_id: str) -> None:
        self.rooms.discard(project_id)
        self._send("leave", project_id)

    def _send(self, event: str, project_id: str) -> None:
        with self._lock:
            ws = self._ws
        if ws is None:
            return
        try:
            ws.send(json.dumps({"event": event, "payload": {"projectId": project_id}}))
        except ConnectionClosed:
            # The receive loop will reconnect and re-join from self.rooms
            pass

    # -----------------------------------------------------
    # Events
    # -----------------------------------------------------
    def handle_frame(self, raw: Any) -> Optional[Event]:
        """Parse one server frame and queue it; malformed frames are dropped."""
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            return None
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            return None
        event = (message["event"], message.get("payload"))
        self._forget_closed_room(*event)
        self.events.put(event)
        return event

    def _forget_closed_room(self, event: str, payload: Any) -> None:
        """Stop re-joining rooms the server evicted us from or deleted."""
        if not isinstance(payload, dict):
            return
        if event == "left" and payload.get("reason"):
            self.rooms.discard(payload.get("projectId"))
        elif event == "project:deleted":
            self.rooms.discard(payload.get("id"))

    def drain(self) -> List[Event]:
        """Everything received since the last drain, in arrival order."""
        drained: List[Event] = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained

    # -----------------------------------------------------
    # Receive loop
    # -----------------------------------------------------
    def _run(self) -> None:
        url = f"{self.ws_url}?token={quote(self.token)}"
        while not self._stop.is_set():
            try:
                ws = self._connect(url)
            except InvalidHandshake as e:
                # Token rejected at connect; retrying will not help
                self.last_error = f"Handshake rejected: {type(e).__name__}"
                print(f"[REALTIME] {self.last_error}")
                return
            except InvalidURI as e:
                self.last_error = f"Invalid websocket URL: {e.uri}"
                print(f"[REALTIME] {self.last_error}")
                return
            except (OSError, WebSocketException) as e:
                self.last_error = f"Connect failed: {type(e).__name__}"
                if IS_DEV:
                    print(f"[REALTIME] {self.last_error}, retrying in {self.reconnect_delay}s")
                self._stop.wait(self.reconnect_delay)
                continue

            with self._lock:
                self._ws = ws
            self.connected = True
            self.events.put(("connected", None))
            for project_id in list(self.rooms):
                self._send("join", project_id)

            try:
                while not self._stop.is_set():
                    self.handle_frame(ws.recv())
            except ConnectionClosed as e:
                code = e.rcvd.code if e.rcvd is not None else None
                if IS_DEV:
                    print(f"[REALTIME] Connection closed (code={code})")
            except Exception as e:
                self.last_error = f"Receive failed: {type(e).__name__}"
                print(f"[REALTIME] {self.last_error}, reconnecting")
                ws.close()
            finally:
                with self._lock:
                    self._ws = None
                self.connected = False

            if not self._stop.is_set():
                self.reconnects += 1
                self._stop.wait(self.reconnect_delay)
