"""Shared test fixtures for taskboard tests."""

import tempfile
from pathlib import Path

import pytest

from taskboard.schema import Task, TaskPriority, TaskStatus
from taskboard.store import SqliteTaskStore


def make_task(task_id, status="todo", position=0, **kwargs) -> Task:
    """Build a Task with short positional arguments."""
    return Task(
        task_id=task_id,
        workspace_id=kwargs.pop("workspace_id", "ws-1"),
        title=kwargs.pop("title", f"Task {task_id}"),
        status=TaskStatus(status),
        position=position,
        priority=TaskPriority(kwargs.pop("priority", "medium")),
        **kwargs,
    )


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as tmp:
        yield str(Path(tmp) / "tasks.db")


@pytest.fixture
def store(db_path):
    return SqliteTaskStore(db_path)
