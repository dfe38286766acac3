"""
Workspace roles and task permission checks.

- Manager: create, edit, delete and move any task
- Developer / Designer / QA: move tasks assigned to them, nothing else
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import PermissionDenied
from .schema import Task


class Role(Enum):
    """Closed set of workspace member roles."""
    MANAGER = "manager"
    DEVELOPER = "developer"
    DESIGNER = "designer"
    QA = "qa"

    @classmethod
    def from_str(cls, value: str) -> "Role":
        try:
            return cls(value.lower())
        except (ValueError, AttributeError):
            raise PermissionDenied(f"Unknown role: {value!r}")


@dataclass(frozen=True)
class Actor:
    """Who is performing a board operation."""
    user_id: str
    role: Role

    @property
    def is_manager(self) -> bool:
        return self.role == Role.MANAGER


class TaskPolicy:
    """Enforces task permissions. `None` actor means a trusted system caller."""

    def can_create(self, actor: Optional[Actor]) -> bool:
        return actor is None or actor.is_manager

    def can_delete(self, actor: Optional[Actor]) -> bool:
        return actor is None or actor.is_manager

    def can_edit_details(self, actor: Optional[Actor]) -> bool:
        # Title, description, priority, assignees, due date
        return actor is None or actor.is_manager

    def can_move(self, actor: Optional[Actor], task: Task) -> bool:
        if actor is None or actor.is_manager:
            return True
        return task.is_assigned(actor.user_id)

    def enforce_create(self, actor: Optional[Actor]) -> None:
        if not self.can_create(actor):
            raise PermissionDenied("Only managers can create tasks")

    def enforce_delete(self, actor: Optional[Actor]) -> None:
        if not self.can_delete(actor):
            raise PermissionDenied("Only managers can delete tasks")

    def enforce_edit_details(self, actor: Optional[Actor]) -> None:
        if not self.can_edit_details(actor):
            raise PermissionDenied("Only managers can edit task details")

    def enforce_move(self, actor: Optional[Actor], task: Task) -> None:
        if not self.can_move(actor, task):
            raise PermissionDenied(
                f"Task {task.task_id} is not assigned to {actor.user_id}; "
                "only assigned users and managers can move it"
            )
