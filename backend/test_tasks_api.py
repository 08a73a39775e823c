"""
Task endpoint tests: creation under a project, field-presence updates and
the task write policy (admin, owner, member or assignee).

Run: pytest backend/test_tasks_api.py -v
"""

import pytest

from backend.documents import new_id
from backend.errors import Forbidden
from backend.models import Actor


def test_create_task_links_into_project(client, register, auth_headers, create_project):
    alice = register("Alice")
    project = create_project(alice)

    resp = client.post(
        f"/api/projects/{project['id']}/tasks",
        json={"title": " Write docs ", "description": "Draft it", "dueDate": "2026-11-01T00:00:00Z"},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 201
    task = resp.json()
    assert task["title"] == "Write docs"
    assert task["status"] == "pending"
    assert task["project"] == project["id"]
    assert task["assignedTo"] is None
    assert task["dueDate"].startswith("2026-11-01")

    expanded = client.get(f"/api/projects/{project['id']}", headers=auth_headers(alice)).json()
    assert [t["id"] for t in expanded["tasks"]] == [task["id"]]
    assert expanded["tasks"][0]["project"] == project["id"]

    stored = client.app.state.store.find_project(project["id"])
    assert stored.tasks == [task["id"]]


def test_project_expands_task_assignee(client, register, auth_headers, create_project, create_task):
    alice = register("Alice")
    bob = register("Bob")
    project = create_project(alice, members=[bob["id"]])
    task = create_task(alice, project["id"], assignedTo=bob["id"])
    assert task["assignedTo"] == bob["id"]

    expanded = client.get(f"/api/projects/{project['id']}", headers=auth_headers(alice)).json()
    assert expanded["tasks"][0]["assignedTo"] == {"id": bob["id"], "name": "Bob", "email": "bob@example.com"}


def test_create_task_access(client, register, auth_headers, create_project):
    alice = register("Alice")
    bob = register("Bob")
    carol = register("Carol")
    project = create_project(alice, members=[bob["id"]])

    by_member = client.post(f"/api/projects/{project['id']}/tasks", json={"title": "T"}, headers=auth_headers(bob))
    assert by_member.status_code == 201

    by_outsider = client.post(f"/api/projects/{project['id']}/tasks", json={"title": "T"}, headers=auth_headers(carol))
    assert by_outsider.status_code == 403

    missing_project = client.post(f"/api/projects/{new_id()}/tasks", json={"title": "T"}, headers=auth_headers(carol))
    assert missing_project.status_code == 404


def test_create_task_validation(client, register, auth_headers, create_project):
    alice = register("Alice")
    project = create_project(alice)
    url = f"/api/projects/{project['id']}/tasks"

    missing = client.post(url, json={}, headers=auth_headers(alice))
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Missing required fields: title"

    blank = client.post(url, json={"title": "   "}, headers=auth_headers(alice))
    assert blank.status_code == 400

    bad_assignee = client.post(url, json={"title": "T", "assignedTo": "bob"}, headers=auth_headers(alice))
    assert bad_assignee.status_code == 400


def test_update_task_field_presence(client, register, auth_headers, create_project, create_task):
    alice = register("Alice")
    bob = register("Bob")
    project = create_project(alice, members=[bob["id"]])
    task = create_task(alice, project["id"], description="Keep me", assignedTo=bob["id"], dueDate="2026-11-01T00:00:00Z")
    url = f"/api/tasks/{task['id']}"

    resp = client.put(url, json={"status": "in-progress"}, headers=auth_headers(alice))
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "in-progress"
    assert data["description"] == "Keep me"
    assert data["assignedTo"] == bob["id"]
    assert data["dueDate"].startswith("2026-11-01")

    resp = client.put(url, json={"description": None, "assignedTo": None, "dueDate": None}, headers=auth_headers(alice))
    assert resp.status_code == 200
    data = resp.json()
    assert data["description"] is None
    assert data["assignedTo"] is None
    assert data["dueDate"] is None
    assert data["status"] == "in-progress"
    assert data["title"] == "Write docs"

    resp = client.put(url, json={"title": "Renamed", "status": "pending"}, headers=auth_headers(alice))
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["status"] == "pending"


@pytest.mark.parametrize("payload", [{"title": ""}, {"title": None}, {"status": None}, {"status": "blocked"}])
def test_update_task_rejects_invalid_values(client, register, auth_headers, create_project, create_task, payload):
    alice = register("Alice")
    project = create_project(alice)
    task = create_task(alice, project["id"])
    resp = client.put(f"/api/tasks/{task['id']}", json=payload, headers=auth_headers(alice))
    assert resp.status_code == 400


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"status": "done"},
        {"title": ""},
        {"status": None},
        {"assignedTo": None},
        {"title": "Hijacked"},
        {"dueDate": "not-a-date"},
        {"title": 123},
        {"status": ["done"]},
        {"description": {"x": 1}},
        ["not", "an", "object"],
    ],
)
def test_outsider_update_is_forbidden_whatever_the_payload(
    client, register, auth_headers, create_project, create_task, payload
):
    alice = register("Alice")
    mallory = register("Mallory")
    project = create_project(alice)
    task = create_task(alice, project["id"])

    resp = client.put(f"/api/tasks/{task['id']}", json=payload, headers=auth_headers(mallory))
    assert resp.status_code == 403

    unchanged = client.app.state.store.find_task(task["id"])
    assert unchanged.title == "Write docs"
    assert unchanged.status.value == "pending"


def test_member_and_assignee_can_update(client, register, auth_headers, create_project, create_task):
    alice = register("Alice")
    bob = register("Bob")
    carol = register("Carol")
    project = create_project(alice, members=[bob["id"]])
    task = create_task(alice, project["id"], assignedTo=carol["id"])

    by_member = client.put(f"/api/tasks/{task['id']}", json={"status": "in-progress"}, headers=auth_headers(bob))
    assert by_member.status_code == 200

    # Carol is only the assignee: she may update the task but not read the project
    by_assignee = client.put(f"/api/tasks/{task['id']}", json={"status": "done"}, headers=auth_headers(carol))
    assert by_assignee.status_code == 200
    assert by_assignee.json()["status"] == "done"
    assert client.get(f"/api/projects/{project['id']}", headers=auth_headers(carol)).status_code == 403


def test_update_missing_task(client, register, auth_headers):
    alice = register("Alice")
    assert client.put(f"/api/tasks/{new_id()}", json={"status": "done"}, headers=auth_headers(alice)).status_code == 404
    assert client.put("/api/tasks/42", json={"status": "done"}, headers=auth_headers(alice)).status_code == 404


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"dueDate": "not-a-date"}, "dueDate"),
        ({"title": 123}, "title"),
        ({"status": ["done"]}, "status"),
        ({"description": {"x": 1}}, "description"),
    ],
)
def test_malformed_update_from_writer_is_rejected(
    client, register, auth_headers, create_project, create_task, payload, field
):
    alice = register("Alice")
    project = create_project(alice)
    task = create_task(alice, project["id"])

    resp = client.put(f"/api/tasks/{task['id']}", json=payload, headers=auth_headers(alice))
    assert resp.status_code == 400
    assert resp.json()["detail"].startswith(f"{field}:")


def test_update_body_must_be_an_object(client, register, auth_headers, create_project, create_task):
    alice = register("Alice")
    project = create_project(alice)
    task = create_task(alice, project["id"])

    resp = client.put(f"/api/tasks/{task['id']}", json=["status", "done"], headers=auth_headers(alice))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Request body must be a JSON object"


def test_malformed_update_on_missing_task_is_not_found(client, register, auth_headers):
    alice = register("Alice")
    resp = client.put(f"/api/tasks/{new_id()}", json={"dueDate": "not-a-date"}, headers=auth_headers(alice))
    assert resp.status_code == 404


def test_service_update_checks_access_before_applying(client, register, create_project, create_task):
    alice = register("Alice")
    mallory = register("Mallory")
    project = create_project(alice)
    task = create_task(alice, project["id"])
    tasks = client.app.state.tasks

    with pytest.raises(Forbidden):
        tasks.update(Actor(id=mallory["id"]), task["id"], {"title": ""})

    updated = tasks.update(Actor(id=alice["id"]), task["id"], {"status": "done"})
    assert updated["status"] == "done"
    assert updated["title"] == "Write docs"
