"""
Task service: the backing store the board reads from and writes to.

TaskService is the contract; HttpTaskService speaks the REST API:

    POST   /tasks                       create
    PUT    /tasks/<id>                  update (position, status, version, ...)
    GET    /tasks/workspace/<id>        list a workspace
    DELETE /tasks/<id>                  delete

Every response is wrapped in an envelope:

    {"success": bool, "status": int, "message": str,
     "data": ..., "error": {"message": str, "error": CODE, "statusCode": int}}
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from .errors import PersistenceFailure, StaleWrite
from .schema import Task

logger = logging.getLogger(__name__)

STALE_WRITE_CODE = "STALE_WRITE"


class TaskService:
    """Interface the board depends on. Implementations raise PersistenceFailure / StaleWrite."""

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Task:
        raise NotImplementedError

    def list_tasks(self, workspace_id: str) -> List[Task]:
        raise NotImplementedError

    def create_task(self, fields: Dict[str, Any]) -> Task:
        raise NotImplementedError

    def delete_task(self, task_id: str) -> None:
        raise NotImplementedError


class HttpTaskService(TaskService):
    """TaskService over HTTP/JSON using requests."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    # ── endpoints ────────────────────────────────────────────────────────

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Task:
        data = self._request("PUT", f"/tasks/{task_id}", payload=fields)
        return self._task(data, f"PUT /tasks/{task_id}")

    def list_tasks(self, workspace_id: str) -> List[Task]:
        path = f"/tasks/workspace/{workspace_id}"
        data = self._request("GET", path)
        if data is None:
            return []
        if not isinstance(data, list):
            raise PersistenceFailure(f"GET {path}: expected a list of tasks", code="BAD_RESPONSE")
        return [self._task(item, f"GET {path}") for item in data]

    def create_task(self, fields: Dict[str, Any]) -> Task:
        data = self._request("POST", "/tasks", payload=fields)
        return self._task(data, "POST /tasks")

    def delete_task(self, task_id: str) -> None:
        self._request("DELETE", f"/tasks/{task_id}")

    # ── transport ────────────────────────────────────────────────────────

    def _task(self, data: Any, where: str) -> Task:
        if not isinstance(data, dict):
            raise PersistenceFailure(f"{where}: response carried no task", code="BAD_RESPONSE")
        return Task.from_dict(data)

    def _request(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise PersistenceFailure(f"{method} {path} failed: {e}") from e

        try:
            body = r.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"success": r.ok, "data": body}

        error = body.get("error") or {}
        code = error.get("error", "") if isinstance(error, dict) else ""

        if r.status_code == 409 or code == STALE_WRITE_CODE:
            detail = error.get("detail", {}) if isinstance(error, dict) else {}
            raise StaleWrite(
                task_id=path.rsplit("/", 1)[-1],
                version=int(detail.get("version", (payload or {}).get("version", 0))),
                latest=int(detail.get("latest", 0)),
            )

        if not r.ok or body.get("success") is False:
            message = (
                (error.get("message") if isinstance(error, dict) else None)
                or body.get("message")
                or f"HTTP {r.status_code}"
            )
            logger.debug(f"{method} {path} → {r.status_code} {code}: {message}")
            raise PersistenceFailure(message, status_code=r.status_code, code=code)

        return body.get("data")
