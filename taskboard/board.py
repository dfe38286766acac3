"""
KanbanBoard: one workspace's board.

Owns the snapshot and wires the reorder engine, the persistence dispatcher,
the event bus and the backing service together. Moves are synchronous and
optimistic; creating, editing and deleting talk to the service first.

    board = KanbanBoard(SqliteTaskStore(path), workspace_id="ws-1")
    await board.load()
    result = board.move_task("todo", 0, 2)
    await board.close()
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .dispatcher import PersistenceDispatcher, RetryPolicy
from .errors import PersistenceFailure
from .events import OUT_OF_SYNC, RESYNCED, BoardEvents
from .grouping import SortKey, group_by_status
from .reorder import MoveResult, ReorderEngine, densify
from .roles import Actor, TaskPolicy
from .schema import STATUSES, Task, TaskPriority, TaskStatus
from .search import TaskSearch
from .snapshot import BoardSnapshot

logger = logging.getLogger(__name__)

# Python attribute -> API field, for detail edits
DETAIL_FIELDS = {
    "title": "title",
    "description": "description",
    "priority": "priority",
    "due_date": "dueDate",
    "assigned_to": "assignedTo",
}


class KanbanBoard:
    """Board for a single workspace."""

    def __init__(
        self,
        service,
        workspace_id: str,
        events: Optional[BoardEvents] = None,
        retry: Optional[RetryPolicy] = None,
        policy: Optional[TaskPolicy] = None,
    ):
        self.service = service
        self.workspace_id = workspace_id
        self.events = events or BoardEvents()
        self.policy = policy or TaskPolicy()
        self.snapshot = BoardSnapshot(workspace_id=workspace_id)
        self.dispatcher = PersistenceDispatcher(
            service, self.snapshot, self.events, retry=retry, resync=self.resync
        )
        self.engine = ReorderEngine(self.snapshot, self.dispatcher, self.events, self.policy)
        self._search = TaskSearch(self.snapshot)

    @classmethod
    def from_config(cls, cfg, events: Optional[BoardEvents] = None) -> "KanbanBoard":
        """HTTP service when api_url is set, local SQLite store otherwise."""
        if cfg.api_url:
            from .service import HttpTaskService
            service = HttpTaskService(cfg.api_url, token=cfg.api_token, timeout=cfg.request_timeout)
        else:
            from .store import SqliteTaskStore
            service = SqliteTaskStore(cfg.db_path)
        return cls(service, cfg.workspace_id, events=events, retry=cfg.retry_policy())

    # ── sync ─────────────────────────────────────────────────────────────

    async def load(self) -> List[Task]:
        """Fetch the workspace from the service and replace the snapshot."""
        tasks = await asyncio.to_thread(self.service.list_tasks, self.workspace_id)
        self.snapshot.replace(tasks)
        return self.snapshot.tasks()

    async def resync(self) -> None:
        """
        Reload after a persistence failure; clears the out-of-sync state.

        A move that only partly landed leaves gaps or duplicates in the
        store. Those columns are re-densified here and the repairs are
        dispatched like any other move.
        """
        logger.info(f"Resyncing workspace {self.workspace_id}")
        tasks = await self.load()
        repaired = self.repair_columns()
        self.events.emit(RESYNCED, count=len(tasks))
        if repaired:
            logger.warning(f"Resync repaired {len(repaired)} task position(s)")

    def repair_columns(self) -> List[Task]:
        """Renumber every column of the snapshot to 0..n-1 and persist the changes."""
        assignments = {}
        for status in STATUSES:
            assignments.update(densify(self.snapshot.column(status), status))
        if not assignments:
            return []
        return self.engine.apply(assignments)

    async def close(self) -> None:
        """Wait for outstanding writes."""
        await self.dispatcher.drain()

    @property
    def out_of_sync(self) -> bool:
        return self.snapshot.out_of_sync

    # ── views ────────────────────────────────────────────────────────────

    def columns(self, sort_key: SortKey = SortKey.POSITION) -> Dict[TaskStatus, List[Task]]:
        return group_by_status(self.snapshot.tasks(), sort_key)

    def search(self, query: str) -> Sequence[Task]:
        return self._search.search(query)

    # ── ordering ─────────────────────────────────────────────────────────

    def move_task(
        self,
        column_status: Union[TaskStatus, str],
        from_index: int,
        to_index: int,
        target_status: Optional[Union[TaskStatus, str]] = None,
        actor: Optional[Actor] = None,
    ) -> MoveResult:
        """Drag-and-drop move. Must run inside the event loop that persists it."""
        return self.engine.move_task(column_status, from_index, to_index, target_status, actor)

    def change_status(
        self, task_id: str, new_status: Union[TaskStatus, str], actor: Optional[Actor] = None
    ) -> MoveResult:
        """Drop a task onto another column: it goes to the end of that column."""
        task = self.snapshot.require(task_id)
        target = new_status if isinstance(new_status, TaskStatus) else TaskStatus(new_status)
        if task.status == target:
            return MoveResult()
        from_index = self.snapshot.column(task.status).index(task)
        to_index = len(self.snapshot.column(target))
        return self.engine.move_task(task.status, from_index, to_index, target, actor)

    # ── lifecycle ────────────────────────────────────────────────────────

    async def add_task(
        self,
        title: str,
        status: Union[TaskStatus, str] = TaskStatus.TODO,
        actor: Optional[Actor] = None,
        **fields: Any,
    ) -> Task:
        """Create a task at the end of its column."""
        self.policy.enforce_create(actor)
        status = status if isinstance(status, TaskStatus) else TaskStatus(status)
        payload = {
            "title": title,
            "status": status.value,
            "workspaceId": self.workspace_id,
            "position": len(self.snapshot.column(status)),
            "assignedTo": [],
        }
        payload.update(self._wire_fields(fields))
        created = await asyncio.to_thread(self.service.create_task, payload)
        self.snapshot.add(created)
        logger.info(f"Added task {created.task_id} to {status.value}[{created.position}]")
        return created

    async def edit_task(self, task_id: str, actor: Optional[Actor] = None, **fields: Any) -> Task:
        """Edit detail fields (not status/position). Applied once the service accepts them."""
        self.policy.enforce_edit_details(actor)
        self.snapshot.require(task_id)
        updated = await asyncio.to_thread(self.service.update_task, task_id, self._wire_fields(fields))
        return self.snapshot.update_fields(
            task_id, **{attr: getattr(updated, attr) for attr in fields}
        )

    async def delete_task(self, task_id: str, actor: Optional[Actor] = None) -> Task:
        """Remove a task and compact its column immediately."""
        self.policy.enforce_delete(actor)
        task = self.snapshot.require(task_id)
        try:
            await asyncio.to_thread(self.service.delete_task, task_id)
        except PersistenceFailure as e:
            if e.code != "TASK_NOT_FOUND":
                raise
            logger.warning(f"Task {task_id} already gone from the store")

        self.snapshot.remove(task_id)
        remaining = self.snapshot.column(task.status)
        self.engine.apply(densify(remaining, task.status))
        return task

    # ── helpers ──────────────────────────────────────────────────────────

    def _wire_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        wire: Dict[str, Any] = {}
        for attr, value in fields.items():
            if attr not in DETAIL_FIELDS:
                raise ValueError(f"Field '{attr}' cannot be edited here")
            if attr == "priority":
                value = value.value if isinstance(value, TaskPriority) else TaskPriority(value).value
            elif attr == "due_date" and value is not None and not isinstance(value, str):
                value = value.isoformat()
            elif attr == "assigned_to":
                value = list(value or [])
            wire[DETAIL_FIELDS[attr]] = value
        return wire

    def on_out_of_sync(self, callback) -> None:
        """Subscribe to the 'out of sync, refresh to continue' signal."""
        self.events.subscribe(OUT_OF_SYNC, callback)

