"""
Board event bus.

The dispatcher and the board publish here; UI layers and callers subscribe.

    task_updated   task=Task                 backing store confirmed a write
    update_failed  task_id, error, attempt   one attempt failed (will retry)
    stale_write    task_id, version, latest  an outdated write was dropped
    out_of_sync    task_id, error            retries exhausted; refresh to continue
    resynced       count                     snapshot replaced from the store
    move_rejected  error                     a move was refused (bounds, permission)
"""
import logging
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

TASK_UPDATED = "task_updated"
UPDATE_FAILED = "update_failed"
STALE_WRITE = "stale_write"
OUT_OF_SYNC = "out_of_sync"
RESYNCED = "resynced"
MOVE_REJECTED = "move_rejected"


class BoardEvents:
    """Routes board signals to subscribed callbacks."""

    def __init__(self):
        self.subscribers: Dict[str, List[Callable]] = {}  # event_type -> callbacks

    def subscribe(self, event_type: str, callback: Callable) -> None:
        """Register a callback for an event type."""
        if event_type not in self.subscribers:
            self.subscribers[event_type] = []
        self.subscribers[event_type].append(callback)

    def unsubscribe(self, event_type: str, callback: Callable) -> None:
        callbacks = self.subscribers.get(event_type, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event_type: str, **kwargs) -> None:
        """Emit an event to all subscribers. A failing subscriber does not stop the others."""
        for callback in list(self.subscribers.get(event_type, [])):
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error(f"Error in {event_type} callback: {e}")
