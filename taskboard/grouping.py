"""
Column grouping for the board and list views.

    group_by_status(tasks, SortKey.POSITION)  → Kanban columns
    group_by_status(tasks, SortKey.PRIORITY)  → list view sections

Both always return every status key, even when a column is empty.
"""
from enum import Enum
from typing import Dict, Iterable, List

from .schema import PRIORITY_RANK, STATUSES, Task, TaskPriority, TaskStatus


class SortKey(Enum):
    POSITION = "position"
    PRIORITY = "priority"

    @classmethod
    def from_str(cls, value: str) -> "SortKey":
        try:
            return cls(value)
        except ValueError:
            return cls.POSITION


def _position_key(task: Task) -> int:
    return task.position or 0


def _priority_key(task: Task) -> int:
    return PRIORITY_RANK.get(task.priority, PRIORITY_RANK[TaskPriority.MEDIUM])


def group_by_status(tasks: Iterable[Task], sort_key: SortKey = SortKey.POSITION) -> Dict[TaskStatus, List[Task]]:
    """Partition tasks by status and sort each column. Never mutates `tasks`."""
    groups: Dict[TaskStatus, List[Task]] = {status: [] for status in STATUSES}
    for task in tasks:
        if task.status in groups:
            groups[task.status].append(task)

    key = _priority_key if sort_key == SortKey.PRIORITY else _position_key
    # sorted() is stable: equal keys keep input order
    return {status: sorted(column, key=key) for status, column in groups.items()}


def column(tasks: Iterable[Task], status: TaskStatus) -> List[Task]:
    """One column, ordered by position."""
    return sorted((t for t in tasks if t.status == status), key=_position_key)
