"""
Task schema for the Kanban board.

Columns:
  todo → in-progress → done

Every task carries a dense, zero-based position within its column.
Within one (workspace_id, status) pair the positions are exactly 0..n-1.
"""
from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Dict, Any


class TaskStatus(Enum):
    """Board columns, in display order."""
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def from_str(cls, value: str) -> "TaskStatus":
        try:
            return cls(value)
        except ValueError:
            try:
                return cls[value.upper().replace("-", "_")]
            except (KeyError, AttributeError):
                return cls.TODO


class TaskPriority(Enum):
    """Task priority. List view sorts high first."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_str(cls, value: Optional[str]) -> "TaskPriority":
        try:
            return cls(value)
        except ValueError:
            return cls.MEDIUM


# Display order of columns; grouping always yields all of them
STATUSES: List[TaskStatus] = [TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE]

PRIORITY_RANK: Dict[TaskPriority, int] = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}


@dataclass
class PositionUpdate:
    """One position/status write for a single task."""
    position: int
    status: TaskStatus
    version: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "status": self.status.value,
            "version": self.version,
        }


@dataclass
class Task:
    """A work item on the board."""

    # Identifiers
    task_id: str
    workspace_id: str = ""

    # Content
    title: str = ""
    description: str = ""

    # Ordering
    status: TaskStatus = TaskStatus.TODO
    position: int = 0
    version: int = 0               # Bumped on every local reorder write

    # Scheduling
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None
    assigned_to: List[str] = field(default_factory=list)

    def is_assigned(self, user_id: Optional[str]) -> bool:
        return bool(user_id) and user_id in self.assigned_to

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match on title and description. `needle` is lowercased."""
        if needle in self.title.lower():
            return True
        return bool(self.description) and needle in self.description.lower()

    def copy(self) -> "Task":
        return Task.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the API's wire names."""
        return {
            "_id": self.task_id,
            "workspaceId": self.workspace_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "position": self.position,
            "version": self.version,
            "priority": self.priority.value,
            "dueDate": self.due_date.isoformat() if self.due_date else None,
            "assignedTo": list(self.assigned_to),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from an API payload or a store row."""
        due = data.get("dueDate", data.get("due_date"))
        if isinstance(due, str) and due:
            try:
                due = datetime.fromisoformat(due.replace("Z", "+00:00"))
            except ValueError:
                due = None
        elif not isinstance(due, datetime):
            due = None

        assigned = data.get("assignedTo", data.get("assigned_to")) or []
        if isinstance(assigned, str):
            assigned = [assigned]

        return cls(
            task_id=str(data.get("_id") or data.get("id") or data.get("task_id") or ""),
            workspace_id=str(data.get("workspaceId") or data.get("workspace_id") or ""),
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=TaskStatus.from_str(data.get("status") or "todo"),
            position=int(data.get("position") or 0),
            version=int(data.get("version") or 0),
            priority=TaskPriority.from_str(data.get("priority")),
            due_date=due,
            # Set semantics, stable order
            assigned_to=list(dict.fromkeys(str(u) for u in assigned)),
        )
