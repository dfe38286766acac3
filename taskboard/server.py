#!/usr/bin/env python3
"""
Taskboard Server
----------------
JSON API over the SQLite task store, speaking the same contract as
HttpTaskService.

Usage:
    python -m taskboard.server --port 8080 --db ~/.local/share/taskboard/tasks.db

API:
    POST   /tasks                  → create (appended to its column)
    PUT    /tasks/<id>             → partial update; 409 when version is stale
    GET    /tasks/workspace/<id>   → all tasks of a workspace
    DELETE /tasks/<id>             → delete and compact the column
    GET    /health                 → { ok }

Auth: when TASKBOARD_API_SECRET is set, every /tasks request must carry a
matching X-API-Key header.
"""

import argparse
import hmac
import logging
import os
import sys
from functools import wraps

from flask import Flask, jsonify, request

from .errors import PersistenceFailure, StaleWrite
from .store import SqliteTaskStore

logger = logging.getLogger(__name__)


# ── Envelope ─────────────────────────────────────────────────────────────────

def _ok(data, status: int = 200, message: str = "OK"):
    return jsonify({"success": True, "status": status, "message": message, "data": data}), status


def _fail(status: int, code: str, message: str, detail: dict = None):
    error = {"message": message, "error": code, "statusCode": status}
    if detail:
        error["detail"] = detail
    return jsonify({"success": False, "status": status, "message": message, "error": error}), status


# ── App ──────────────────────────────────────────────────────────────────────

def create_app(store: SqliteTaskStore, api_secret: str = None) -> Flask:
    app = Flask(__name__)
    secret = api_secret if api_secret is not None else os.environ.get("TASKBOARD_API_SECRET", "")

    def require_api_key(f):
        """Decorator: reject requests without a valid X-API-Key header (when a secret is set)."""
        @wraps(f)
        def decorated(*args, **kwargs):
            if secret:
                provided = request.headers.get("X-API-Key", "").strip()
                if not hmac.compare_digest(provided, secret):
                    code = 401 if not provided else 403
                    return _fail(code, "UNAUTHORIZED", "Unauthorized")
            return f(*args, **kwargs)
        return decorated

    @app.errorhandler(StaleWrite)
    def handle_stale(e: StaleWrite):
        return _fail(409, "STALE_WRITE", str(e), {"version": e.version, "latest": e.latest})

    @app.errorhandler(PersistenceFailure)
    def handle_failure(e: PersistenceFailure):
        return _fail(e.status_code or 500, e.code or "TASK_UPDATE_FAILED", str(e))

    @app.route("/health")
    def health():
        return jsonify({"ok": True})

    @app.route("/tasks", methods=["POST"])
    @require_api_key
    def create_task():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return _fail(400, "VALIDATION_FAILED", "JSON object body required")
        task = store.create_task(body)
        return _ok(task.to_dict(), 201, "Task created successfully")

    @app.route("/tasks/<task_id>", methods=["PUT", "PATCH"])
    @require_api_key
    def update_task(task_id):
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return _fail(400, "VALIDATION_FAILED", "JSON object body required")
        task = store.update_task(task_id, body)
        return _ok(task.to_dict(), 200, "Task updated successfully")

    @app.route("/tasks/workspace/<workspace_id>", methods=["GET"])
    @require_api_key
    def list_tasks(workspace_id):
        tasks = store.list_tasks(workspace_id)
        return _ok([t.to_dict() for t in tasks], 200, "Tasks found successfully")

    @app.route("/tasks/<task_id>", methods=["DELETE"])
    @require_api_key
    def delete_task(task_id):
        store.delete_task(task_id)
        return _ok(None, 200, "Task deleted successfully")

    return app


def main():
    parser = argparse.ArgumentParser(description="Taskboard JSON API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--db", default=os.environ.get("TASKBOARD_DB"), help="SQLite database path")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [taskboard-server] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    store = SqliteTaskStore(os.path.expanduser(args.db) if args.db else None)
    logger.info(f"Serving {store.db_path} on http://{args.host}:{args.port}")
    create_app(store).run(host=args.host, port=args.port)


if __name__ == "__main__":
    main()
