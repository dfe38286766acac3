"""
Error kinds raised and reported by the taskboard core.
"""


class TaskboardError(Exception):
    """Base class for all taskboard errors."""
    pass


class OutOfRangeIndex(TaskboardError):
    """A column index is outside the column's current bounds."""

    def __init__(self, status: str, index: int, length: int, which: str = "from_index"):
        self.status = status
        self.index = index
        self.length = length
        self.which = which
        super().__init__(
            f"{which}={index} out of range for column '{status}' (length {length})"
        )


class PersistenceFailure(TaskboardError):
    """A task update could not be written to the backing service."""

    def __init__(self, message: str, status_code: int = 0, code: str = ""):
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class StaleWrite(TaskboardError):
    """An update carries a version behind the latest known one for its task."""

    def __init__(self, task_id: str, version: int, latest: int):
        self.task_id = task_id
        self.version = version
        self.latest = latest
        super().__init__(
            f"Stale write for task {task_id}: version {version} <= latest {latest}"
        )


class InvariantViolation(TaskboardError):
    """Column positions are not exactly {0, ..., n-1}."""
    pass


class PermissionDenied(TaskboardError):
    """The acting role may not perform this operation."""
    pass


class TaskNotFound(TaskboardError):
    """No task with the given id."""
    pass


class ConfigError(TaskboardError):
    """Raised when configuration is invalid or incomplete."""
    pass
