"""
Project endpoint tests: CRUD, membership, listing and cascade delete.

Access rules under test:
1. Read: admin, owner or member; write/delete/membership: admin or owner
2. Existence is checked before authorization (404 before 403)
3. Deleting a project deletes its tasks

Run: pytest backend/test_projects_api.py -v
"""

import json

import pytest

from backend.documents import new_id


def test_create_project(client, register, auth_headers):
    alice = register("Alice")
    resp = client.post(
        "/api/projects",
        json={"title": "  Sprint 1  ", "description": " First sprint "},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 201
    project = resp.json()
    assert project["title"] == "Sprint 1"
    assert project["description"] == "First sprint"
    assert project["owner"] == {"id": alice["id"], "name": "Alice", "email": "alice@example.com"}
    assert project["members"] == []
    assert project["tasks"] == []


def test_create_project_requires_title(client, register, auth_headers):
    alice = register("Alice")
    missing = client.post("/api/projects", json={"description": "x"}, headers=auth_headers(alice))
    assert missing.status_code == 400
    assert missing.json()["detail"] == "Missing required fields: title"

    blank = client.post("/api/projects", json={"title": "   "}, headers=auth_headers(alice))
    assert blank.status_code == 400


def test_get_project_access(client, register, auth_headers, create_project):
    alice = register("Alice")
    bob = register("Bob")
    project = create_project(alice)

    assert client.get(f"/api/projects/{project['id']}", headers=auth_headers(alice)).status_code == 200

    resp = client.get(f"/api/projects/{project['id']}", headers=auth_headers(bob))
    assert resp.status_code == 403

    added = client.post(
        f"/api/projects/{project['id']}/members",
        json={"userId": bob["id"]},
        headers=auth_headers(alice),
    )
    assert added.status_code == 200

    resp = client.get(f"/api/projects/{project['id']}", headers=auth_headers(bob))
    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()["members"]] == [bob["id"]]


def test_missing_project_is_404_before_403(client, register, auth_headers):
    bob = register("Bob")
    assert client.get(f"/api/projects/{new_id()}", headers=auth_headers(bob)).status_code == 404
    assert client.get("/api/projects/not-an-id", headers=auth_headers(bob)).status_code == 404
    assert client.delete(f"/api/projects/{new_id()}", headers=auth_headers(bob)).status_code == 404
    resp = client.put(f"/api/projects/{new_id()}", json={"title": "x"}, headers=auth_headers(bob))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Project not found"


def test_list_projects_scoped_to_owner_and_member(client, register, auth_headers, create_project):
    alice = register("Alice")
    bob = register("Bob")
    carol = register("Carol")
    admin = register("Root", role="admin")

    owned = create_project(alice, "Alice only")
    shared = create_project(alice, "Shared", members=[bob["id"]])
    bobs = create_project(bob, "Bob's")

    def titles(user):
        resp = client.get("/api/projects", headers=auth_headers(user))
        assert resp.status_code == 200
        return {p["title"] for p in resp.json()}

    assert titles(alice) == {owned["title"], shared["title"]}
    assert titles(bob) == {shared["title"], bobs["title"]}
    assert titles(carol) == set()
    assert titles(admin) == {owned["title"], shared["title"], bobs["title"]}


def test_update_project_field_presence(client, register, auth_headers, create_project):
    alice = register("Alice")
    project = create_project(alice, description="Keep me")

    resp = client.put(f"/api/projects/{project['id']}", json={"title": "Renamed"}, headers=auth_headers(alice))
    assert resp.status_code == 200
    assert resp.json()["title"] == "Renamed"
    assert resp.json()["description"] == "Keep me"

    resp = client.put(
        f"/api/projects/{project['id']}",
        json={"title": "Renamed", "description": None},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 200
    assert resp.json()["description"] is None


def test_update_project_requires_title(client, register, auth_headers, create_project):
    alice = register("Alice")
    project = create_project(alice)
    resp = client.put(f"/api/projects/{project['id']}", json={"description": "x"}, headers=auth_headers(alice))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Missing required fields: title"


def test_update_project_replaces_members(client, register, auth_headers, create_project):
    alice = register("Alice")
    bob = register("Bob")
    carol = register("Carol")
    project = create_project(alice, members=[bob["id"]])

    resp = client.put(
        f"/api/projects/{project['id']}",
        json={"title": project["title"], "members": [carol["id"]]},
        headers=auth_headers(alice),
    )
    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()["members"]] == [carol["id"]]

    # Omitting members keeps them
    resp = client.put(f"/api/projects/{project['id']}", json={"title": "Again"}, headers=auth_headers(alice))
    assert [m["id"] for m in resp.json()["members"]] == [carol["id"]]


def test_member_cannot_update_or_delete(client, register, auth_headers, create_project):
    alice = register("Alice")
    bob = register("Bob")
    project = create_project(alice, members=[bob["id"]])

    resp = client.put(f"/api/projects/{project['id']}", json={"title": "Mine now"}, headers=auth_headers(bob))
    assert resp.status_code == 403
    assert client.delete(f"/api/projects/{project['id']}", headers=auth_headers(bob)).status_code == 403
    resp = client.post(
        f"/api/projects/{project['id']}/members",
        json={"userId": bob["id"]},
        headers=auth_headers(bob),
    )
    assert resp.status_code == 403


def test_admin_can_update_any_project(client, register, auth_headers, create_project):
    alice = register("Alice")
    admin = register("Root", role="admin")
    project = create_project(alice)
    resp = client.put(f"/api/projects/{project['id']}", json={"title": "Moderated"}, headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["title"] == "Moderated"


@pytest.mark.parametrize("shape", ["single", "list", "json"])
def test_members_input_shapes(client, register, auth_headers, shape):
    alice = register("Alice")
    bob = register("Bob")
    members = {
        "single": bob["id"],
        "list": [bob["id"], bob["id"]],
        "json": json.dumps([bob["id"]]),
    }[shape]

    resp = client.post("/api/projects", json={"title": "P", "members": members}, headers=auth_headers(alice))
    assert resp.status_code == 201
    assert [m["id"] for m in resp.json()["members"]] == [bob["id"]]


@pytest.mark.parametrize("members", ["not-an-id", ["nope"], [1, 2], "[1, 2]", "[broken"])
def test_members_input_rejects_malformed(client, register, auth_headers, members):
    alice = register("Alice")
    resp = client.post("/api/projects", json={"title": "P", "members": members}, headers=auth_headers(alice))
    assert resp.status_code == 400


def test_add_member_is_idempotent(client, register, auth_headers, create_project):
    alice = register("Alice")
    bob = register("Bob")
    project = create_project(alice)

    for _ in range(2):
        resp = client.post(
            f"/api/projects/{project['id']}/members",
            json={"userId": bob["id"]},
            headers=auth_headers(alice),
        )
        assert resp.status_code == 200
    assert [m["id"] for m in resp.json()["members"]] == [bob["id"]]


def test_add_member_errors(client, register, auth_headers, create_project):
    alice = register("Alice")
    project = create_project(alice)

    unknown_user = client.post(
        f"/api/projects/{project['id']}/members",
        json={"userId": new_id()},
        headers=auth_headers(alice),
    )
    assert unknown_user.status_code == 404
    assert unknown_user.json()["detail"] == "User not found"

    missing_body = client.post(f"/api/projects/{project['id']}/members", json={}, headers=auth_headers(alice))
    assert missing_body.status_code == 400
    assert missing_body.json()["detail"] == "Missing required fields: userId"

    unknown_project = client.post(
        f"/api/projects/{new_id()}/members",
        json={"userId": alice["id"]},
        headers=auth_headers(alice),
    )
    assert unknown_project.status_code == 404


def test_remove_member(client, register, auth_headers, create_project):
    alice = register("Alice")
    bob = register("Bob")
    project = create_project(alice, members=[bob["id"]])

    resp = client.delete(f"/api/projects/{project['id']}/members/{bob['id']}", headers=auth_headers(alice))
    assert resp.status_code == 200
    assert resp.json()["members"] == []

    # Removing a non-member is a no-op
    resp = client.delete(f"/api/projects/{project['id']}/members/{bob['id']}", headers=auth_headers(alice))
    assert resp.status_code == 200

    assert client.get(f"/api/projects/{project['id']}", headers=auth_headers(bob)).status_code == 403


def test_delete_project_cascades_to_tasks(client, register, auth_headers, create_project, create_task):
    alice = register("Alice")
    project = create_project(alice)
    first = create_task(alice, project["id"], "First")
    second = create_task(alice, project["id"], "Second")

    resp = client.delete(f"/api/projects/{project['id']}", headers=auth_headers(alice))
    assert resp.status_code == 200
    assert resp.json() == {"message": "Project deleted", "id": project["id"]}

    assert client.get(f"/api/projects/{project['id']}", headers=auth_headers(alice)).status_code == 404
    for task in (first, second):
        resp = client.put(f"/api/tasks/{task['id']}", json={"status": "done"}, headers=auth_headers(alice))
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Task not found"

    store = client.app.state.store
    assert store.find_task(first["id"]) is None
    assert store.find_task(second["id"]) is None
