"""
Tests for the HTTP task service (requests session mocked).
"""
from unittest.mock import MagicMock

import pytest
import requests

from taskboard.errors import PersistenceFailure, StaleWrite
from taskboard.schema import TaskStatus
from taskboard.service import HttpTaskService


def _response(status_code, body):
    r = MagicMock()
    r.status_code = status_code
    r.ok = 200 <= status_code < 400
    r.json.return_value = body
    return r


def _service(response=None, side_effect=None):
    session = MagicMock()
    session.headers = {}
    session.request.return_value = response
    session.request.side_effect = side_effect
    return HttpTaskService("http://api.local/", token="tok", session=session), session


TASK = {
    "_id": "t1",
    "workspaceId": "ws-1",
    "title": "Fix login",
    "status": "in-progress",
    "position": 2,
    "version": 5,
    "priority": "high",
    "assignedTo": ["u1"],
}


class TestHttpTaskService:

    def test_auth_header(self):
        _, session = _service()
        assert session.headers["Authorization"] == "Bearer tok"

    def test_update_sends_put_and_parses_envelope(self):
        service, session = _service(_response(200, {"success": True, "status": 200, "data": TASK}))
        task = service.update_task("t1", {"position": 2, "status": "in-progress", "version": 5})

        session.request.assert_called_once_with(
            "PUT",
            "http://api.local/tasks/t1",
            json={"position": 2, "status": "in-progress", "version": 5},
            timeout=10.0,
        )
        assert task.task_id == "t1"
        assert task.status == TaskStatus.IN_PROGRESS
        assert task.assigned_to == ["u1"]

    def test_list_tasks(self):
        service, session = _service(_response(200, {"success": True, "data": [TASK, dict(TASK, _id="t2")]}))
        tasks = service.list_tasks("ws-1")
        assert [t.task_id for t in tasks] == ["t1", "t2"]
        assert session.request.call_args[0][:2] == ("GET", "http://api.local/tasks/workspace/ws-1")

    def test_conflict_raises_stale_write(self):
        body = {
            "success": False,
            "error": {"error": "STALE_WRITE", "statusCode": 409, "detail": {"version": 3, "latest": 4}},
        }
        service, _ = _service(_response(409, body))
        with pytest.raises(StaleWrite) as exc:
            service.update_task("t1", {"version": 3})
        assert (exc.value.task_id, exc.value.version, exc.value.latest) == ("t1", 3, 4)

    def test_error_envelope_raises_persistence_failure(self):
        body = {
            "success": False,
            "message": "Failed",
            "error": {"message": "Task update failed", "error": "TASK_UPDATE_FAILED", "statusCode": 500},
        }
        service, _ = _service(_response(500, body))
        with pytest.raises(PersistenceFailure) as exc:
            service.update_task("t1", {"version": 1})
        assert str(exc.value) == "Task update failed"
        assert exc.value.status_code == 500
        assert exc.value.code == "TASK_UPDATE_FAILED"

    def test_success_false_with_200_is_a_failure(self):
        service, _ = _service(_response(200, {"success": False, "message": "nope"}))
        with pytest.raises(PersistenceFailure, match="nope"):
            service.delete_task("t1")

    def test_non_json_error_body(self):
        r = _response(502, None)
        r.json.side_effect = ValueError("no json")
        service, _ = _service(r)
        with pytest.raises(PersistenceFailure, match="HTTP 502"):
            service.list_tasks("ws-1")

    def test_success_without_data_is_a_failure(self):
        service, _ = _service(_response(200, {"success": True, "status": 200}))
        with pytest.raises(PersistenceFailure) as exc:
            service.update_task("t1", {"version": 1})
        assert exc.value.code == "BAD_RESPONSE"

    def test_empty_success_body_on_create(self):
        r = _response(201, None)
        r.json.side_effect = ValueError("no json")
        service, _ = _service(r)
        with pytest.raises(PersistenceFailure):
            service.create_task({"title": "A", "workspaceId": "ws-1"})

    def test_list_with_non_list_data(self):
        service, _ = _service(_response(200, {"success": True, "data": TASK}))
        with pytest.raises(PersistenceFailure):
            service.list_tasks("ws-1")

    def test_network_error_becomes_persistence_failure(self):
        service, _ = _service(side_effect=requests.ConnectionError("refused"))
        with pytest.raises(PersistenceFailure):
            service.update_task("t1", {"version": 1})
