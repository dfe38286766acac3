"""
Substring search over a task snapshot.
"""
from typing import Optional, Sequence, Tuple

from .schema import Task
from .snapshot import BoardSnapshot


def filter_tasks(tasks: Sequence[Task], query: str) -> Sequence[Task]:
    """
    Case-insensitive substring match on title and description.

    An empty query returns `tasks` itself, unchanged.
    """
    if not query:
        return tasks
    needle = query.lower()
    return [t for t in tasks if t.matches(needle)]


class TaskSearch:
    """Memoizes the last search per (snapshot revision, query)."""

    def __init__(self, snapshot: BoardSnapshot):
        self.snapshot = snapshot
        self._key: Optional[Tuple[int, str]] = None
        self._result: Sequence[Task] = []

    def search(self, query: str) -> Sequence[Task]:
        key = (self.snapshot.revision, query)
        if key != self._key:
            self._result = filter_tasks(self.snapshot.tasks(), query)
            self._key = key
        return self._result

    def invalidate(self) -> None:
        self._key = None
