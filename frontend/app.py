# frontend/app.py
# Teamboard - team projects and tasks with live updates
#
# Run from repo root: streamlit run frontend/app.py

from __future__ import annotations

from datetime import date, datetime, time as dt_time, timezone
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from frontend import api_client
from frontend.auth import clear_auth, get_current_user, get_token, init_auth_state, is_authenticated, require_auth, set_auth
from frontend.config import BACKEND_URL, ENABLE_DEBUG_UI, IS_DEV, REALTIME_POLL_SECONDS, get_api_base_url, get_ws_url
from frontend.project_state import ProjectViewState
from frontend.realtime_client import RealtimeListener

st.set_page_config(page_title="Teamboard", layout="wide")

STATUS_LABELS = {"pending": "Pending", "in-progress": "In progress", "done": "Done"}
STATUSES = list(STATUS_LABELS)

# --------------------------------------------------------------------
# State helpers
# --------------------------------------------------------------------


def init_state() -> None:
    ss = st.session_state

    # Auth keys first; every other page depends on them
    init_auth_state()

    # Navigation default is chosen in main() from auth state
    ss.setdefault("nav_page", None)
    ss.setdefault("selected_project_id", None)
    ss.setdefault("project_view", None)
    ss.setdefault("realtime", None)


def go_to(page: str) -> None:
    """Single place that changes pages: set nav_page and rerun."""
    st.session_state["nav_page"] = page
    st.rerun()


def open_project(project_id: str) -> None:
    ss = st.session_state
    ss["selected_project_id"] = project_id
    ss["project_view"] = None
    go_to("Project")


# --------------------------------------------------------------------
# Real-time listener (one per browser session)
# --------------------------------------------------------------------


def get_listener() -> Optional[RealtimeListener]:
    """Start the listener lazily after login; None when not authenticated."""
    ss = st.session_state
    token = get_token()
    if not token:
        return None

    listener: Optional[RealtimeListener] = ss.get("realtime")
    if listener is not None and listener.token != token:
        listener.stop()
        listener = None

    if listener is None:
        try:
            ws_url = get_ws_url(get_api_base_url())
        except (RuntimeError, ValueError) as e:
            if IS_DEV:
                print(f"[REALTIME] Disabled: {e}")
            return None
        listener = RealtimeListener(ws_url, token)
        listener.start()
        ss["realtime"] = listener
    return listener


def stop_listener() -> None:
    listener: Optional[RealtimeListener] = st.session_state.get("realtime")
    if listener is not None:
        listener.stop()
    st.session_state["realtime"] = None


def logout() -> None:
    stop_listener()
    clear_auth()
    st.session_state["selected_project_id"] = None
    st.session_state["project_view"] = None
    go_to("Login")


# --------------------------------------------------------------------
# Formatting
# --------------------------------------------------------------------


def user_label(user: Any) -> str:
    if isinstance(user, dict):
        return f"{user.get('name')} <{user.get('email')}>"
    if user:
        return str(user)
    return "Unassigned"


def format_due(value: Optional[str]) -> str:
    if not value:
        return "-"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d")
    except ValueError:
        return value


def due_date_to_iso(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return datetime.combine(value, dt_time.min, tzinfo=timezone.utc).isoformat()


def tasks_dataframe(tasks: List[Dict[str, Any]]) -> pd.DataFrame:
    rows = [
        {
            "Title": t.get("title"),
            "Status": STATUS_LABELS.get(t.get("status"), t.get("status")),
            "Assignee": user_label(t.get("assignedTo")),
            "Due": format_due(t.get("dueDate")),
            "Updated": format_due(t.get("updatedAt")),
        }
        for t in tasks
    ]
    return pd.DataFrame(rows, columns=["Title", "Status", "Assignee", "Due", "Updated"])


def is_project_owner(project: Dict[str, Any]) -> bool:
    user = get_current_user() or {}
    if user.get("role") == "admin":
        return True
    owner = project.get("owner")
    owner_id = owner.get("id") if isinstance(owner, dict) else owner
    return bool(owner_id) and owner_id == user.get("id")


# --------------------------------------------------------------------
# Pages
# --------------------------------------------------------------------


def render_sidebar() -> None:
    ss = st.session_state
    with st.sidebar:
        st.title("Teamboard")

        if is_authenticated():
            user = get_current_user() or {}
            st.caption(f"Signed in as **{user.get('name')}** ({user.get('role')})")
            st.caption("Your user id (share it to be added to projects):")
            st.code(user.get("id") or "", language=None)

            for page in ("Projects", "Create Project"):
                if st.button(page, key=f"nav_{page}", width="stretch"):
                    go_to(page)

            listener: Optional[RealtimeListener] = ss.get("realtime")
            if listener is not None:
                st.caption("Live updates: " + ("connected" if listener.connected else "connecting..."))

            if st.button("Logout"):
                logout()

        if ENABLE_DEBUG_UI:
            with st.expander("Debug"):
                st.text(f"backend: {BACKEND_URL}")
                st.text(f"nav_page: {ss.get('nav_page')}")
                st.text(f"project: {ss.get('selected_project_id')}")


def render_login() -> None:
    st.header("Login")

    with st.form("login_form"):
        email = st.text_input("Email", key="login_email")
        password = st.text_input("Password", type="password", key="login_password")
        submitted = st.form_submit_button("Login")

    if submitted:
        if not email or not password:
            st.error("Please enter email and password.")
            return
        data = api_client.login(email, password)
        if data and data.get("token"):
            token = data.pop("token")
            set_auth(token, data)
            print(f"[AUTH] Logged in user_id={data.get('id')}")
            go_to("Projects")

    st.divider()
    st.subheader("Register")

    with st.form("register_form"):
        name = st.text_input("Name", key="register_name")
        reg_email = st.text_input("Email", key="register_email")
        reg_password = st.text_input("Password (min 6 characters)", type="password", key="register_password")
        reg_submitted = st.form_submit_button("Register")

    if reg_submitted:
        if not name or not reg_email or not reg_password:
            st.error("Please fill in all registration fields.")
            return
        data = api_client.register(name, reg_email, reg_password)
        if data and data.get("token"):
            token = data.pop("token")
            set_auth(token, data)
            print(f"[AUTH] Registered user_id={data.get('id')}")
            go_to("Projects")


def render_projects() -> None:
    if not require_auth():
        return

    st.header("Projects")
    projects = api_client.list_projects()
    if not projects:
        st.info("No projects yet. Create one from the sidebar.")
        return

    for project in projects:
        with st.container(border=True):
            cols = st.columns([4, 2, 1])
            cols[0].markdown(f"**{project.get('title')}**")
            if project.get("description"):
                cols[0].caption(project["description"])
            cols[1].caption(f"Owner: {user_label(project.get('owner'))}")
            cols[1].caption(f"{len(project.get('members') or [])} member(s), {len(project.get('tasks') or [])} task(s)")
            if cols[2].button("Open", key=f"open_{project['id']}"):
                open_project(project["id"])


def render_create_project() -> None:
    if not require_auth():
        return

    st.header("Create Project")
    with st.form("create_project_form"):
        title = st.text_input("Title")
        description = st.text_area("Description")
        members_raw = st.text_input("Member user ids (comma separated)")
        submitted = st.form_submit_button("Create")

    if submitted:
        if not title.strip():
            st.error("Project title is required.")
            return
        members = [m.strip() for m in members_raw.split(",") if m.strip()]
        project = api_client.create_project(title, description, members)
        if project:
            st.success("Project created.")
            open_project(project["id"])


def load_project_view(project_id: str) -> Optional[ProjectViewState]:
    ss = st.session_state
    view: Optional[ProjectViewState] = ss.get("project_view")
    if view is not None and view.project_id == project_id and not view.deleted:
        return view

    project = api_client.get_project(project_id)
    if project is None:
        return None
    view = ProjectViewState(project_id)
    view.load(project)
    ss["project_view"] = view

    listener = get_listener()
    if listener is not None:
        for room in list(listener.rooms):
            if room != project_id:
                listener.leave(room)
        listener.join(project_id)
    return view


def apply_realtime_events(view: ProjectViewState) -> None:
    listener = get_listener()
    if listener is None:
        return
    for event, payload in listener.drain():
        if event == "connected":
            # Anything published while disconnected is lost; resync over REST
            project = api_client.get_project(view.project_id)
            if project is not None:
                view.load(project)
        elif event == "error" and isinstance(payload, dict):
            st.toast(f"Live updates: {payload.get('message')}")
        elif event == "left" and isinstance(payload, dict) and payload.get("reason"):
            st.toast(f"Live updates stopped: {payload['reason']}")
        elif view.apply_event(event, payload) and IS_DEV:
            print(f"[REALTIME] Applied {event} to project_id={view.project_id}")


def render_project() -> None:
    if not require_auth():
        return

    ss = st.session_state
    project_id = ss.get("selected_project_id")
    if not project_id:
        go_to("Projects")
        return

    view = load_project_view(project_id)
    if view is None:
        if st.button("Back to projects"):
            go_to("Projects")
        return

    render_project_live(view)

    if view.project is None:
        return
    project = view.project
    if is_project_owner(project):
        render_project_settings(view)
    render_create_task(view)

    if view.tasks:
        with st.expander("Task table"):
            df = tasks_dataframe(view.tasks)
            st.dataframe(df, width="stretch", hide_index=True)
            st.download_button(
                "Download CSV",
                df.to_csv(index=False).encode("utf-8"),
                file_name=f"{project.get('title') or 'project'}-tasks.csv",
                mime="text/csv",
            )


@st.fragment(run_every=REALTIME_POLL_SECONDS)
def render_project_live(view: ProjectViewState) -> None:
    """Reruns on a timer so queued real-time events show up without interaction."""
    apply_realtime_events(view)

    if view.deleted:
        st.warning("This project was deleted.")
        if st.button("Back to projects", key="deleted_back"):
            st.session_state["project_view"] = None
            go_to("Projects")
        return

    project = view.project or {}
    st.header(project.get("title") or "Project")
    if project.get("description"):
        st.write(project["description"])

    st.caption(f"Owner: {user_label(project.get('owner'))}")
    members = project.get("members") or []
    st.caption("Members: " + (", ".join(user_label(m) for m in members) if members else "none"))

    counts = view.counts_by_status()
    cols = st.columns(len(STATUSES))
    for col, status in zip(cols, STATUSES):
        col.metric(STATUS_LABELS[status], counts[status])

    st.subheader("Tasks")
    if not view.tasks:
        st.info("No tasks yet.")
    for task in view.tasks:
        render_task(view, task, members)


def render_task(view: ProjectViewState, task: Dict[str, Any], members: List[Dict[str, Any]]) -> None:
    task_id = task["id"]
    with st.container(border=True):
        cols = st.columns([4, 2, 2, 1])
        cols[0].markdown(f"**{task.get('title')}**")
        if task.get("description"):
            cols[0].caption(task["description"])
        cols[0].caption(f"Due: {format_due(task.get('dueDate'))}")

        status = task.get("status") or "pending"
        new_status = cols[1].selectbox(
            "Status",
            STATUSES,
            index=STATUSES.index(status) if status in STATUSES else 0,
            format_func=STATUS_LABELS.get,
            key=f"status_{task_id}_{status}",
        )

        assignee = task.get("assignedTo")
        assignee_id = assignee.get("id") if isinstance(assignee, dict) else assignee
        options: List[Optional[str]] = [None] + [m["id"] for m in members if isinstance(m, dict)]
        if assignee_id and assignee_id not in options:
            options.append(assignee_id)
        labels = {m["id"]: user_label(m) for m in members if isinstance(m, dict)}
        new_assignee = cols[2].selectbox(
            "Assignee",
            options,
            index=options.index(assignee_id),
            format_func=lambda uid: labels.get(uid, uid) if uid else "Unassigned",
            key=f"assignee_{task_id}_{assignee_id}",
        )

        changes: Dict[str, Any] = {}
        if new_status != status:
            changes["status"] = new_status
        if new_assignee != assignee_id:
            changes["assignedTo"] = new_assignee
        if changes and cols[3].button("Save", key=f"save_{task_id}"):
            updated = api_client.update_task(task_id, changes)
            if updated:
                view.merge_task(updated)
                st.rerun()


def render_project_settings(view: ProjectViewState) -> None:
    project = view.project or {}
    project_id = view.project_id

    with st.expander("Project settings"):
        with st.form("edit_project_form"):
            title = st.text_input("Title", value=project.get("title") or "")
            description = st.text_area("Description", value=project.get("description") or "")
            if st.form_submit_button("Save"):
                updated = api_client.update_project(project_id, title, description)
                if updated:
                    view.load(updated)
                    st.rerun()

        st.markdown("**Members**")
        for member in project.get("members") or []:
            cols = st.columns([4, 1])
            cols[0].write(user_label(member))
            if cols[1].button("Remove", key=f"remove_member_{member['id']}"):
                updated = api_client.remove_member(project_id, member["id"])
                if updated:
                    view.load(updated)
                    st.rerun()

        with st.form("add_member_form", clear_on_submit=True):
            user_id = st.text_input("User id")
            if st.form_submit_button("Add member") and user_id.strip():
                updated = api_client.add_member(project_id, user_id.strip())
                if updated:
                    view.load(updated)
                    st.rerun()

        st.divider()
        confirm = st.checkbox("I understand this deletes the project and all of its tasks")
        if st.button("Delete project", disabled=not confirm):
            if api_client.delete_project(project_id):
                listener = st.session_state.get("realtime")
                if listener is not None:
                    listener.leave(project_id)
                st.session_state["project_view"] = None
                st.session_state["selected_project_id"] = None
                go_to("Projects")


def render_create_task(view: ProjectViewState) -> None:
    project = view.project or {}
    members = [m for m in project.get("members") or [] if isinstance(m, dict)]

    st.subheader("New task")
    with st.form("create_task_form", clear_on_submit=True):
        title = st.text_input("Title")
        description = st.text_area("Description")
        options: List[Optional[str]] = [None] + [m["id"] for m in members]
        labels = {m["id"]: user_label(m) for m in members}
        assigned_to = st.selectbox(
            "Assignee", options, format_func=lambda uid: labels.get(uid, uid) if uid else "Unassigned"
        )
        set_due = st.checkbox("Set due date")
        due = st.date_input("Due date")
        submitted = st.form_submit_button("Create task")

    if submitted:
        if not title.strip():
            st.error("Task title is required.")
            return
        fields: Dict[str, Any] = {"title": title}
        if description.strip():
            fields["description"] = description
        if assigned_to:
            fields["assignedTo"] = assigned_to
        if set_due:
            fields["dueDate"] = due_date_to_iso(due)
        task = api_client.create_task(view.project_id, fields)
        if task:
            view.merge_task(task)
            st.rerun()


# --------------------------------------------------------------------
# Main
# --------------------------------------------------------------------


def main() -> None:
    init_state()
    ss = st.session_state

    # Logged-out users always land on Login
    if not ss.get("nav_page") or (not is_authenticated() and ss["nav_page"] != "Login"):
        ss["nav_page"] = "Projects" if is_authenticated() else "Login"

    if not is_authenticated():
        stop_listener()

    print(f"[ROUTING] page={ss.get('nav_page')} | token_present={bool(ss.get('auth_token'))}")

    render_sidebar()

    nav_page = ss.get("nav_page", "Login")
    if nav_page == "Login":
        render_login()
    elif nav_page == "Projects":
        render_projects()
    elif nav_page == "Create Project":
        render_create_project()
    elif nav_page == "Project":
        render_project()
    else:
        ss["nav_page"] = "Login"
        render_login()


if __name__ == "__main__":
    main()
