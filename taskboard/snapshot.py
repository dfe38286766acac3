"""
Versioned in-memory task snapshot.

The snapshot is the single owned copy of the board's task list. Every
component receives it explicitly; every mutation goes through it and bumps
`revision` so readers (search memoization, renderers) can tell when their
view is stale.
"""
import logging
from typing import Dict, Iterable, List, Optional, Set

from .errors import TaskNotFound
from .schema import PositionUpdate, Task, TaskStatus

logger = logging.getLogger(__name__)


class BoardSnapshot:
    """Owned, versioned task list for one workspace."""

    def __init__(self, tasks: Optional[Iterable[Task]] = None, workspace_id: str = ""):
        self.workspace_id = workspace_id
        self._tasks: Dict[str, Task] = {}
        self._dirty: Set[str] = set()
        self._revision = 0
        for task in tasks or []:
            self._tasks[task.task_id] = task

    # ── reads ────────────────────────────────────────────────────────────

    @property
    def revision(self) -> int:
        return self._revision

    def tasks(self) -> List[Task]:
        """Current tasks in insertion order."""
        return list(self._tasks.values())

    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return task

    def column(self, status: TaskStatus) -> List[Task]:
        """Tasks of one status, ordered by position."""
        return sorted(
            (t for t in self._tasks.values() if t.status == status),
            key=lambda t: t.position,
        )

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: str) -> bool:
        return task_id in self._tasks

    # ── writes ───────────────────────────────────────────────────────────

    def apply(self, updates: Dict[str, PositionUpdate]) -> List[Task]:
        """Apply position/status assignments; returns the mutated tasks."""
        changed = []
        for task_id, update in updates.items():
            task = self.require(task_id)
            task.position = update.position
            task.status = update.status
            task.version = update.version
            changed.append(task)
        if changed:
            self._revision += 1
        return changed

    def add(self, task: Task) -> Task:
        self._tasks[task.task_id] = task
        self._revision += 1
        return task

    def remove(self, task_id: str) -> Task:
        task = self.require(task_id)
        del self._tasks[task_id]
        self._dirty.discard(task_id)
        self._revision += 1
        return task

    def update_fields(self, task_id: str, **fields) -> Task:
        """Edit non-ordering fields of a task."""
        task = self.require(task_id)
        for name, value in fields.items():
            if name in ("status", "position", "version", "task_id"):
                raise ValueError(f"Field '{name}' is owned by the reorder engine")
            if not hasattr(task, name):
                raise ValueError(f"Unknown task field: {name}")
            setattr(task, name, value)
        self._revision += 1
        return task

    def replace(self, tasks: Iterable[Task]) -> None:
        """Swap in an authoritative task list (resync). Clears dirty flags."""
        self._tasks = {t.task_id: t for t in tasks}
        self._dirty.clear()
        self._revision += 1
        logger.info(f"Snapshot replaced: {len(self._tasks)} tasks, revision {self._revision}")

    # ── sync state ───────────────────────────────────────────────────────

    def mark_dirty(self, task_id: str) -> None:
        self._dirty.add(task_id)

    def is_dirty(self, task_id: str) -> bool:
        return task_id in self._dirty

    @property
    def dirty(self) -> Set[str]:
        return set(self._dirty)

    @property
    def out_of_sync(self) -> bool:
        """True while any task failed to persist and no resync has landed yet."""
        return bool(self._dirty)
