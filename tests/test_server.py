"""
Tests for the Flask JSON API.
"""
import pytest

from taskboard.server import create_app


@pytest.fixture
def client(store):
    app = create_app(store, api_secret="")
    app.config["TESTING"] = True
    return app.test_client()


def _create(client, title, status="todo"):
    r = client.post("/tasks", json={"title": title, "status": status, "workspaceId": "ws-1"})
    assert r.status_code == 201
    return r.get_json()["data"]


def test_health(client):
    assert client.get("/health").get_json() == {"ok": True}


def test_create_and_list(client):
    _create(client, "A")
    b = _create(client, "B")
    assert b["position"] == 1

    body = client.get("/tasks/workspace/ws-1").get_json()
    assert body["success"] is True
    assert [t["title"] for t in body["data"]] == ["A", "B"]


def test_update_returns_task(client):
    a = _create(client, "A")
    r = client.put(f"/tasks/{a['_id']}", json={"position": 0, "status": "done", "version": 1})
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "done"


def test_stale_update_is_409(client):
    a = _create(client, "A")
    client.put(f"/tasks/{a['_id']}", json={"version": 2})
    r = client.put(f"/tasks/{a['_id']}", json={"version": 1})
    assert r.status_code == 409
    error = r.get_json()["error"]
    assert error["error"] == "STALE_WRITE"
    assert error["detail"] == {"version": 1, "latest": 2}


def test_validation_error_is_400(client):
    a = _create(client, "A")
    r = client.put(f"/tasks/{a['_id']}", json={"status": "blocked"})
    assert r.status_code == 400
    assert r.get_json()["success"] is False


def test_non_object_body_is_400(client):
    r = client.post("/tasks", json=["not", "a", "dict"])
    assert r.status_code == 400


def test_delete_compacts(client):
    a = _create(client, "A")
    _create(client, "B")
    assert client.delete(f"/tasks/{a['_id']}").status_code == 200
    data = client.get("/tasks/workspace/ws-1").get_json()["data"]
    assert [(t["title"], t["position"]) for t in data] == [("B", 0)]


def test_delete_missing_is_404(client):
    r = client.delete("/tasks/nope")
    assert r.status_code == 404
    assert r.get_json()["error"]["error"] == "TASK_NOT_FOUND"


class TestApiKey:

    @pytest.fixture
    def secured(self, store):
        app = create_app(store, api_secret="s3cret")
        app.config["TESTING"] = True
        return app.test_client()

    def test_missing_key_is_401(self, secured):
        assert secured.get("/tasks/workspace/ws-1").status_code == 401

    def test_wrong_key_is_403(self, secured):
        r = secured.get("/tasks/workspace/ws-1", headers={"X-API-Key": "wrong"})
        assert r.status_code == 403

    def test_valid_key(self, secured):
        r = secured.get("/tasks/workspace/ws-1", headers={"X-API-Key": "s3cret"})
        assert r.status_code == 200

    def test_health_is_open(self, secured):
        assert secured.get("/health").status_code == 200


def test_create_with_unknown_status_is_400(client):
    r = client.post("/tasks", json={"title": "A", "status": "blocked", "workspaceId": "ws-1"})
    assert r.status_code == 400
    assert r.get_json()["error"]["error"] == "VALIDATION_FAILED"
    assert client.get("/tasks/workspace/ws-1").get_json()["data"] == []
