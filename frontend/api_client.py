"""
frontend/api_client.py
Centralized API client for all backend requests.

This module ensures:
1. All API calls automatically attach the Authorization header when authenticated
2. Consistent handling of 401 (session expiry) and 403/404 (policy / missing)
3. Centralized API base URL configuration (local/staging/production)
4. One typed helper per backend endpoint, so pages never build URLs
"""

from typing import Any, Dict, List, Literal, Optional

import requests
import streamlit as st

from frontend.auth import clear_auth, get_auth_header
from frontend.config import IS_DEV, get_api_base_url

__all__ = [
    "api_request",
    "register",
    "login",
    "list_projects",
    "get_project",
    "create_project",
    "update_project",
    "delete_project",
    "add_member",
    "remove_member",
    "create_task",
    "update_task",
]

PUBLIC_PATHS = ("/api/users/login", "/api/users/register")


def is_public_endpoint(path: str) -> bool:
    """Public endpoints do not need (and never get) the Authorization header."""
    return path in PUBLIC_PATHS


def api_request(
    method: Literal["GET", "POST", "PUT", "DELETE"],
    path: str,
    json: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, Any]] = None,
    timeout: int = 20,
) -> Optional[requests.Response]:
    """
    Make an API request with automatic auth header attachment and error handling.

    This is the ONLY function that should make backend API calls.

    Security:
    - Never logs or prints tokens/auth headers

    Returns:
        Response object for any HTTP status, None on connection/config error
        or when the session has expired (401 on a protected endpoint)
    """
    try:
        base_url = get_api_base_url()
    except (RuntimeError, ValueError) as e:
        st.error(f"Configuration error: {e}")
        return None

    url = f"{base_url}{path}"
    headers = {"Accept": "application/json"}
    if not is_public_endpoint(path):
        headers.update(get_auth_header())

    try:
        resp = requests.request(method, url, json=json, params=params, headers=headers, timeout=timeout)
    except requests.exceptions.Timeout:
        if IS_DEV:
            print(f"[API] Timeout on {method} {path}")
        st.error(f"Request timed out after {timeout}s. Please try again.")
        return None
    except requests.exceptions.ConnectionError:
        if IS_DEV:
            print(f"[API] Connection error on {method} {path}")
        st.error(f"Cannot connect to backend at {base_url}. Please check your connection.")
        return None

    if resp.status_code == 401 and not is_public_endpoint(path):
        if IS_DEV:
            print(f"[API] 401 on {path}, session expired")
        _handle_session_expired()
        return None

    if resp.status_code == 403 and IS_DEV:
        print(f"[API] 403 Forbidden on {method} {path}")

    return resp


def error_detail(resp: requests.Response) -> str:
    """Backend error message ({"detail": ...}) or the status line."""
    try:
        detail = resp.json().get("detail")
    except ValueError:
        detail = None
    return str(detail) if detail else f"HTTP {resp.status_code}"


def _json_or_error(resp: Optional[requests.Response]) -> Optional[Any]:
    """Parsed body for 2xx responses; shows the backend message otherwise."""
    if resp is None:
        return None
    if 200 <= resp.status_code < 300:
        return resp.json()
    if resp.status_code == 403:
        st.error(f"You don't have permission to do this: {error_detail(resp)}")
    elif resp.status_code == 404:
        st.error(f"Not found: {error_detail(resp)}")
    else:
        st.error(error_detail(resp))
    return None


def _handle_session_expired() -> None:
    st.warning("Your session has expired. Please log in again.")
    clear_auth()
    st.session_state["nav_page"] = "Login"


# --------------------------------------------------------------------
# Endpoint helpers
# --------------------------------------------------------------------

def register(name: str, email: str, password: str) -> Optional[Dict[str, Any]]:
    return _json_or_error(api_request("POST", "/api/users/register", json={"name": name, "email": email, "password": password}))


def login(email: str, password: str) -> Optional[Dict[str, Any]]:
    return _json_or_error(api_request("POST", "/api/users/login", json={"email": email, "password": password}))


def list_projects() -> List[Dict[str, Any]]:
    return _json_or_error(api_request("GET", "/api/projects")) or []


def get_project(project_id: str) -> Optional[Dict[str, Any]]:
    return _json_or_error(api_request("GET", f"/api/projects/{project_id}"))


def create_project(title: str, description: Optional[str] = None, members: Optional[List[str]] = None) -> Optional[Dict[str, Any]]:
    body: Dict[str, Any] = {"title": title}
    if description:
        body["description"] = description
    if members:
        body["members"] = members
    return _json_or_error(api_request("POST", "/api/projects", json=body))


def update_project(project_id: str, title: str, description: Optional[str] = None) -> Optional[Dict[str, Any]]:
    return _json_or_error(api_request("PUT", f"/api/projects/{project_id}", json={"title": title, "description": description}))


def delete_project(project_id: str) -> bool:
    return _json_or_error(api_request("DELETE", f"/api/projects/{project_id}")) is not None


def add_member(project_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    return _json_or_error(api_request("POST", f"/api/projects/{project_id}/members", json={"userId": user_id}))


def remove_member(project_id: str, user_id: str) -> Optional[Dict[str, Any]]:
    return _json_or_error(api_request("DELETE", f"/api/projects/{project_id}/members/{user_id}"))


def create_task(project_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return _json_or_error(api_request("POST", f"/api/projects/{project_id}/tasks", json=fields))


def update_task(task_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Only keys in `changes` are sent; the backend overwrites exactly those."""
    return _json_or_error(api_request("PUT", f"/api/tasks/{task_id}", json=changes))
