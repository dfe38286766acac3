"""
Task storage backend (SQLite).

A TaskService implementation that lives next to the board: used for local
boards, by the JSON server, and in tests. It enforces what a remote backend
is expected to enforce:

- new tasks are appended at position = current column length
- deleting a task compacts the column it leaves
- a write carrying a version not newer than the stored one is rejected
"""
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .errors import PersistenceFailure, StaleWrite
from .reorder import check_invariant
from .schema import Task, TaskPriority, TaskStatus
from .service import TaskService

logger = logging.getLogger(__name__)

# API field name -> column name
UPDATABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "status": "status",
    "position": "position",
    "version": "version",
    "priority": "priority",
    "dueDate": "due_date",
    "assignedTo": "assigned_to",
}


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with WAL mode."""
    conn = sqlite3.connect(db_path, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_task_id() -> str:
    return uuid.uuid4().hex[:24]


class SqliteTaskStore(TaskService):
    """SQLite-backed store for board tasks."""

    def __init__(self, db_path: str = None):
        """Initialize store and create tables if needed."""
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "taskboard" / "tasks.db")
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    task_id TEXT PRIMARY KEY,
                    workspace_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'todo',
                    position INTEGER NOT NULL DEFAULT 0,
                    version INTEGER NOT NULL DEFAULT 0,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    due_date TEXT,
                    assigned_to TEXT,  -- JSON list
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            # No UNIQUE on position: per-task writes land independently and
            # a column is only contiguous once every write of a move has landed
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_tasks_column ON tasks(workspace_id, status, position)"
            )

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = _connect(self.db_path)
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            logger.error(f"SQLite error on {self.db_path}: {e}")
            raise PersistenceFailure(f"Storage error: {e}", status_code=500, code="STORAGE_ERROR") from e
        finally:
            conn.close()

    # ── TaskService ──────────────────────────────────────────────────────

    def create_task(self, fields: Dict[str, Any]) -> Task:
        """Insert a task at the end of its column. Any client position is ignored."""
        self._validate({k: v for k, v in fields.items() if k in ("status", "priority")})
        task = Task.from_dict(fields)
        if not task.title:
            raise PersistenceFailure("Task title is required", status_code=400, code="VALIDATION_FAILED")
        if not task.workspace_id:
            raise PersistenceFailure("workspaceId is required", status_code=400, code="VALIDATION_FAILED")
        if not task.task_id:
            task.task_id = make_task_id()

        with self._transaction() as conn:
            task.position = self._column_length(conn, task.workspace_id, task.status)
            self._insert(conn, task)
        logger.info(f"Created task {task.task_id} in {task.status.value}[{task.position}]")
        return task

    def update_task(self, task_id: str, fields: Dict[str, Any]) -> Task:
        """Apply a partial update. Rejects versions that are not newer than the stored one."""
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise PersistenceFailure(
                f"Unknown fields: {sorted(unknown)}", status_code=400, code="VALIDATION_FAILED"
            )
        values = self._validate(fields)

        with self._transaction() as conn:
            row = conn.execute(
                "SELECT version FROM tasks WHERE task_id = ?", (task_id,)
            ).fetchone()
            if row is None:
                raise PersistenceFailure(
                    f"Task {task_id} not found", status_code=404, code="TASK_NOT_FOUND"
                )
            if "version" in values and values["version"] <= row["version"]:
                raise StaleWrite(task_id, values["version"], row["version"])

            if values:
                assignments = ", ".join(f"{col} = ?" for col in values)
                conn.execute(
                    f"UPDATE tasks SET {assignments}, updated_at = ? WHERE task_id = ?",
                    (*values.values(), _now(), task_id),
                )
            updated = conn.execute("SELECT * FROM tasks WHERE task_id = ?", (task_id,)).fetchone()
        return self._row_to_task(updated)

    def list_tasks(self, workspace_id: str) -> List[Task]:
        """All tasks of a workspace, column by column in position order."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE workspace_id = ? ORDER BY status, position, updated_at",
                (workspace_id,),
            ).fetchall()
        return [self._row_to_task(row) for row in rows]

    def delete_task(self, task_id: str) -> None:
        """Delete a task and close the gap it leaves in its column."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT workspace_id, status FROM tasks WHERE task_id = ?", (task_id,)
            ).fetchone()
            if row is None:
                raise PersistenceFailure(
                    f"Task {task_id} not found", status_code=404, code="TASK_NOT_FOUND"
                )
            conn.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,))
            self._compact(conn, row["workspace_id"], TaskStatus(row["status"]))
        logger.info(f"Deleted task {task_id}")

    # ── extras ───────────────────────────────────────────────────────────

    def get(self, task_id: str) -> Optional[Task]:
        """Retrieve a task by ID."""
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE task_id = ?", (task_id,)).fetchone()
        return self._row_to_task(row) if row else None

    def save(self, task: Task) -> Task:
        """Insert or replace a task as-is (imports, fixtures)."""
        with self._transaction() as conn:
            self._insert(conn, task)
        return task

    def compact(self, workspace_id: str, status: TaskStatus) -> int:
        """Renumber a column to 0..n-1 keeping order. Returns rows changed."""
        with self._transaction() as conn:
            return self._compact(conn, workspace_id, status)

    def check_invariant(self, workspace_id: str) -> None:
        """Raise InvariantViolation if any column of the workspace has gaps or duplicates."""
        check_invariant(self.list_tasks(workspace_id))

    def get_stats(self, workspace_id: str) -> Dict[str, int]:
        """Task counts per column."""
        stats = {status.value: 0 for status in TaskStatus}
        with self._transaction() as conn:
            for row in conn.execute(
                "SELECT status, COUNT(*) FROM tasks WHERE workspace_id = ? GROUP BY status",
                (workspace_id,),
            ):
                stats[row[0]] = row[1]
        return stats

    # ── helpers ──────────────────────────────────────────────────────────

    def _validate(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Map API fields to column values, rejecting bad enum values."""
        values: Dict[str, Any] = {}
        for name, value in fields.items():
            col = UPDATABLE_FIELDS[name]
            if name == "status":
                try:
                    value = TaskStatus(value).value
                except ValueError:
                    raise PersistenceFailure(
                        f"Invalid status: {value}", status_code=400, code="VALIDATION_FAILED"
                    )
            elif name == "priority":
                try:
                    value = TaskPriority(value).value
                except ValueError:
                    raise PersistenceFailure(
                        f"Invalid priority: {value}", status_code=400, code="VALIDATION_FAILED"
                    )
            elif name in ("position", "version"):
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise PersistenceFailure(
                        f"{name} must be a non-negative integer", status_code=400, code="VALIDATION_FAILED"
                    )
            elif name == "assignedTo":
                value = json.dumps(list(dict.fromkeys(str(u) for u in value or [])))
            values[col] = value
        return values

    def _column_length(self, conn: sqlite3.Connection, workspace_id: str, status: TaskStatus) -> int:
        return conn.execute(
            "SELECT COUNT(*) FROM tasks WHERE workspace_id = ? AND status = ?",
            (workspace_id, status.value),
        ).fetchone()[0]

    def _compact(self, conn: sqlite3.Connection, workspace_id: str, status: TaskStatus) -> int:
        rows = conn.execute(
            "SELECT task_id, position FROM tasks WHERE workspace_id = ? AND status = ? "
            "ORDER BY position, updated_at",
            (workspace_id, status.value),
        ).fetchall()
        changed = 0
        for index, row in enumerate(rows):
            if row["position"] != index:
                conn.execute(
                    "UPDATE tasks SET position = ?, updated_at = ? WHERE task_id = ?",
                    (index, _now(), row["task_id"]),
                )
                changed += 1
        return changed

    def _insert(self, conn: sqlite3.Connection, task: Task) -> None:
        data = task.to_dict()
        now = _now()
        conn.execute("""
            INSERT OR REPLACE INTO tasks
            (task_id, workspace_id, title, description, status, position, version,
             priority, due_date, assigned_to, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            data["_id"],
            data["workspaceId"],
            data["title"],
            data["description"],
            data["status"],
            data["position"],
            data["version"],
            data["priority"],
            data["dueDate"],
            json.dumps(data["assignedTo"]),
            now,
            now,
        ))

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        """Convert a database row to a Task."""
        data = dict(row)
        try:
            data["assigned_to"] = json.loads(data.get("assigned_to") or "[]")
        except (json.JSONDecodeError, TypeError):
            data["assigned_to"] = []
        return Task.from_dict(data)
