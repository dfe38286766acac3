"""
Persistence dispatcher: writes changed task positions to the backing service.

Each task has its own work slot. A worker drains the slot, sending the newest
pending update; an update that arrives while an older one is still queued
replaces it. Every update carries a per-task monotonic version, and anything
not newer than the latest confirmed version is dropped as stale, so an older
gesture can never overwrite a newer one.

Failed writes retry with bounded exponential backoff. When retries run out,
when the service answers with a permanent 4xx, or when it rejects a write as
stale, the task is marked dirty in the snapshot, `out_of_sync` is emitted and
a resync of the workspace is scheduled.

update_position() never blocks: it must be called from code running inside
an asyncio event loop, and returns as soon as the write is queued.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Union

from .errors import PersistenceFailure, StaleWrite
from .events import OUT_OF_SYNC, STALE_WRITE, TASK_UPDATED, UPDATE_FAILED, BoardEvents
from .schema import PositionUpdate
from .snapshot import BoardSnapshot

logger = logging.getLogger(__name__)

ResyncCallback = Callable[[], Union[None, Awaitable[None]]]

# Resyncs in a row without a confirmed write before the dispatcher stops trying
MAX_RESYNC_STREAK = 3


@dataclass
class RetryPolicy:
    """Bounded exponential backoff: base, base*factor, ... capped at max_delay."""
    max_attempts: int = 4
    base_delay: float = 0.25
    factor: float = 2.0
    max_delay: float = 5.0

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        return min(self.max_delay, self.base_delay * (self.factor ** (attempt - 1)))

    def should_retry(self, error: PersistenceFailure) -> bool:
        """Transport errors, 5xx, 408 and 429 are retried; other 4xx are permanent."""
        status = error.status_code or 0
        return not (400 <= status < 500) or status in (408, 429)


class PersistenceDispatcher:
    """Per-task asynchronous writer with retry and stale-write protection."""

    def __init__(
        self,
        service,
        snapshot: BoardSnapshot,
        events: Optional[BoardEvents] = None,
        retry: Optional[RetryPolicy] = None,
        resync: Optional[ResyncCallback] = None,
    ):
        self.service = service
        self.snapshot = snapshot
        self.events = events or BoardEvents()
        self.retry = retry or RetryPolicy()
        self.resync = resync

        self._versions: Dict[str, int] = {}           # last version handed out
        self._acked: Dict[str, int] = {}              # last version the store confirmed
        self._pending: Dict[str, PositionUpdate] = {}
        self._workers: Dict[str, asyncio.Task] = {}
        self._resync_task: Optional[asyncio.Task] = None
        self._resync_streak = 0
        self._resync_again = False
        self._resync_fetching = False

    # ── versions ─────────────────────────────────────────────────────────

    def next_version(self, task_id: str, floor: int = 0) -> int:
        """Allocate the next monotonic version for a task."""
        version = max(self._versions.get(task_id, 0), floor) + 1
        self._versions[task_id] = version
        return version

    def latest_version(self, task_id: str) -> int:
        """Newest version known for a task, confirmed or queued."""
        pending = self._pending.get(task_id)
        latest = self._acked.get(task_id, 0)
        if pending is not None:
            latest = max(latest, pending.version)
        return latest

    # ── dispatch ─────────────────────────────────────────────────────────

    def update_position(self, task_id: str, update: PositionUpdate) -> None:
        """Queue a write and return immediately."""
        latest = self.latest_version(task_id)
        if update.version <= latest:
            self._drop_stale(StaleWrite(task_id, update.version, latest))
            return

        if task_id in self._pending:
            logger.debug(
                f"Task {task_id}: v{self._pending[task_id].version} superseded by v{update.version}"
            )
        self._pending[task_id] = update

        worker = self._workers.get(task_id)
        if worker is None or worker.done():
            loop = asyncio.get_running_loop()
            self._workers[task_id] = loop.create_task(self._run(task_id))

    @property
    def in_flight(self) -> int:
        return sum(1 for w in self._workers.values() if not w.done())

    async def drain(self) -> None:
        """Wait until every queued write and any scheduled resync has finished."""
        while True:
            pending = [w for w in self._workers.values() if not w.done()]
            if self._resync_task is not None and not self._resync_task.done():
                pending.append(self._resync_task)
            if not pending:
                return
            results = await asyncio.gather(*pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"Dispatcher worker crashed: {result!r}")

    # ── workers ──────────────────────────────────────────────────────────

    async def _run(self, task_id: str) -> None:
        try:
            while task_id in self._pending:
                update = self._pending.pop(task_id)
                await self._send(task_id, update)
        finally:
            self._workers.pop(task_id, None)

    async def _send(self, task_id: str, update: PositionUpdate) -> None:
        payload = update.to_payload()
        for attempt in range(1, self.retry.max_attempts + 1):
            newer = self._pending.get(task_id)
            if newer is not None and newer.version > update.version:
                logger.debug(f"Task {task_id}: skipping v{update.version}, v{newer.version} queued")
                return

            try:
                result = await asyncio.to_thread(self.service.update_task, task_id, payload)
            except StaleWrite as e:
                # The store holds a newer version than this board has seen
                self._drop_stale(e)
                self._mark_out_of_sync(task_id, e)
                return
            except PersistenceFailure as e:
                logger.warning(
                    f"Update for task {task_id} v{update.version} failed "
                    f"(attempt {attempt}/{self.retry.max_attempts}): {e}"
                )
                self.events.emit(UPDATE_FAILED, task_id=task_id, error=e, attempt=attempt)
                if not self.retry.should_retry(e):
                    logger.error(f"Task {task_id}: permanent failure, not retrying: {e}")
                    self._mark_out_of_sync(task_id, e)
                    return
                if attempt < self.retry.max_attempts:
                    await asyncio.sleep(self.retry.delay(attempt))
                    continue
                logger.error(f"Task {task_id} out of sync after {attempt} attempts: {e}")
                self._mark_out_of_sync(task_id, e)
                return

            self._acked[task_id] = max(self._acked.get(task_id, 0), update.version)
            self._resync_streak = 0
            logger.debug(f"Task {task_id} v{update.version} persisted")
            self.events.emit(TASK_UPDATED, task=result, version=update.version)
            return

    def _drop_stale(self, error: StaleWrite) -> None:
        logger.info(f"Dropped stale write: {error}")
        self.events.emit(
            STALE_WRITE, task_id=error.task_id, version=error.version, latest=error.latest
        )

    def _mark_out_of_sync(self, task_id: str, error: Exception) -> None:
        self.snapshot.mark_dirty(task_id)
        self.events.emit(OUT_OF_SYNC, task_id=task_id, error=error)
        self.schedule_resync()

    def schedule_resync(self) -> None:
        """Start a resync unless one is already running."""
        if self.resync is None:
            return
        if self._resync_task is not None and not self._resync_task.done():
            # A failure after the fetch began is not reflected in it
            if self._resync_fetching:
                self._resync_again = True
            return
        if self._resync_streak >= MAX_RESYNC_STREAK:
            logger.error(
                f"{self._resync_streak} resyncs without a confirmed write; "
                "board stays out of sync until reloaded"
            )
            return
        self._resync_streak += 1
        self._resync_task = asyncio.get_running_loop().create_task(self._run_resync())

    async def _run_resync(self) -> None:
        while True:
            # Let writes already queued settle so the fetch reflects them
            others = [w for w in self._workers.values() if not w.done()]
            if others:
                await asyncio.gather(*others, return_exceptions=True)

            self._resync_again = False
            self._resync_fetching = True
            try:
                result = self.resync()
                if asyncio.iscoroutine(result):
                    await result
            except PersistenceFailure as e:
                logger.error(f"Resync failed, board stays out of sync: {e}")
                return
            finally:
                self._resync_fetching = False

            if not self._resync_again or self._resync_streak >= MAX_RESYNC_STREAK:
                return
            self._resync_streak += 1
