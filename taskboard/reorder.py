"""
Reorder engine: recomputes column positions after a drag-and-drop move.

Algorithm (one gesture):
  1. Read the current snapshot and build the source column ordered by position.
  2. Bounds-check from_index / to_index. Out of range → rejected no-op.
  3. Splice: remove at from_index, insert at to_index (in the destination
     column for a cross-column move).
  4. Re-densify every touched column: position = index.
  5. Only tasks whose (status, position) actually changed are written back
     and dispatched, so a move costs O(distance moved) writes.

The planning step is pure (`plan_move`); `ReorderEngine.move_task` applies the
plan to the snapshot and hands each changed task to the dispatcher without
waiting for it.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from .errors import InvariantViolation, OutOfRangeIndex, PermissionDenied, TaskboardError
from .events import MOVE_REJECTED, BoardEvents
from .grouping import column
from .roles import Actor, TaskPolicy
from .schema import PositionUpdate, Task, TaskStatus
from .snapshot import BoardSnapshot

logger = logging.getLogger(__name__)

# task_id -> (status, position)
Assignments = Dict[str, Tuple[TaskStatus, int]]


@dataclass
class MovePlan:
    """Assignments computed for one move, before they are applied."""
    moved: Task
    assignments: Assignments = field(default_factory=dict)


@dataclass
class MoveResult:
    """Outcome of a move. `error` is set when the move was refused."""
    changed: List[Task] = field(default_factory=list)
    error: Optional[TaskboardError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _as_status(value: Union[TaskStatus, str]) -> TaskStatus:
    return value if isinstance(value, TaskStatus) else TaskStatus(value)


def densify(sequence: List[Task], status: TaskStatus) -> Assignments:
    """Assign position = index; return only the tasks whose placement changed."""
    changed: Assignments = {}
    for index, task in enumerate(sequence):
        if task.position != index or task.status != status:
            changed[task.task_id] = (status, index)
    return changed


def plan_move(
    tasks: Iterable[Task],
    column_status: Union[TaskStatus, str],
    from_index: int,
    to_index: int,
    target_status: Optional[Union[TaskStatus, str]] = None,
) -> MovePlan:
    """
    Compute the placements produced by moving the task at `from_index` of
    `column_status` to `to_index` of `target_status` (same column if None).

    Raises OutOfRangeIndex without side effects when an index is outside the
    column's bounds. Same-column targets are 0..n-1, cross-column targets are
    0..m where m is the destination length before the insert.
    """
    tasks = list(tasks)
    source_status = _as_status(column_status)
    dest_status = _as_status(target_status) if target_status is not None else source_status

    source = column(tasks, source_status)
    if not 0 <= from_index < len(source):
        raise OutOfRangeIndex(source_status.value, from_index, len(source))

    if dest_status == source_status:
        if not 0 <= to_index < len(source):
            raise OutOfRangeIndex(source_status.value, to_index, len(source), which="to_index")
        moved = source.pop(from_index)
        source.insert(to_index, moved)
        return MovePlan(moved=moved, assignments=densify(source, source_status))

    dest = column(tasks, dest_status)
    if not 0 <= to_index <= len(dest):
        raise OutOfRangeIndex(dest_status.value, to_index, len(dest), which="to_index")
    moved = source.pop(from_index)
    dest.insert(to_index, moved)

    assignments = densify(source, source_status)
    assignments.update(densify(dest, dest_status))
    return MovePlan(moved=moved, assignments=assignments)


def check_invariant(tasks: Iterable[Task]) -> None:
    """Raise InvariantViolation unless every (workspace, status) column is exactly 0..n-1."""
    positions: Dict[Tuple[str, TaskStatus], List[int]] = defaultdict(list)
    for task in tasks:
        positions[(task.workspace_id, task.status)].append(task.position)
    for (workspace_id, status), seen in positions.items():
        if sorted(seen) != list(range(len(seen))):
            raise InvariantViolation(
                f"Column {status.value} in workspace '{workspace_id}' has positions "
                f"{sorted(seen)}, expected 0..{len(seen) - 1}"
            )


class ReorderEngine:
    """Applies moves to a BoardSnapshot and dispatches the changed tasks."""

    def __init__(
        self,
        snapshot: BoardSnapshot,
        dispatcher=None,
        events: Optional[BoardEvents] = None,
        policy: Optional[TaskPolicy] = None,
    ):
        self.snapshot = snapshot
        self.dispatcher = dispatcher
        self.events = events or BoardEvents()
        self.policy = policy or TaskPolicy()

    def move_task(
        self,
        column_status: Union[TaskStatus, str],
        from_index: int,
        to_index: int,
        target_status: Optional[Union[TaskStatus, str]] = None,
        actor: Optional[Actor] = None,
    ) -> MoveResult:
        """
        Move one task within a column or into another column.

        Returns immediately after the snapshot is updated; persistence of the
        changed tasks proceeds in the background. A refused move leaves the
        snapshot untouched and reports the reason in `MoveResult.error`.
        """
        try:
            # Always plan against the live snapshot, never a cached copy
            plan = plan_move(self.snapshot.tasks(), column_status, from_index, to_index, target_status)
            self.policy.enforce_move(actor, plan.moved)
        except (OutOfRangeIndex, PermissionDenied) as e:
            logger.warning(f"Move rejected: {e}")
            self.events.emit(MOVE_REJECTED, error=e)
            return MoveResult(error=e)

        return MoveResult(changed=self.apply(plan.assignments))

    def apply(self, assignments: Assignments) -> List[Task]:
        """Write assignments to the snapshot, bump versions, dispatch each change."""
        updates: Dict[str, PositionUpdate] = {}
        for task_id, (status, position) in assignments.items():
            task = self.snapshot.require(task_id)
            updates[task_id] = PositionUpdate(
                position=position,
                status=status,
                version=self._next_version(task),
            )

        changed = self.snapshot.apply(updates)
        for task in changed:
            logger.debug(
                f"Task {task.task_id} → {task.status.value}[{task.position}] v{task.version}"
            )
            if self.dispatcher is not None:
                self.dispatcher.update_position(task.task_id, updates[task.task_id])
        return changed

    def _next_version(self, task: Task) -> int:
        if self.dispatcher is not None:
            return self.dispatcher.next_version(task.task_id, floor=task.version)
        return task.version + 1
