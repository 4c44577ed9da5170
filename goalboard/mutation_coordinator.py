"""
Optimistic Mutation Coordinator.

The UI shows a change immediately and the write to the store runs in the
background. Per goal the coordinator tracks:

    SYNCED  -> nothing in flight, the store value is authoritative
    PENDING -> a write is in flight; local_value is what the UI shows
    ERROR   -> the last write failed; last_error says why

Only the most recently tracked write of a goal may settle its state. An
older write is never cancelled, its outcome is just ignored. Failures are
reported through a notifier; nothing is retried or rolled back.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from goalboard.config_manager import config
from goalboard.exceptions import PersistenceFailure, error_title
from goalboard.hierarchy import GoalSnapshot
from goalboard.logger import get_logger
from goalboard.notifiers import BaseNotifier, LogNotifier, Notification, NotificationPriority

logger = get_logger("mutations")


class SyncState(Enum):
    SYNCED = "synced"
    PENDING = "pending"
    ERROR = "error"


@dataclass
class GoalSyncStatus:
    state: SyncState = SyncState.SYNCED
    local_value: Any = None
    last_error: Optional[PersistenceFailure] = None
    task: Optional[asyncio.Task] = None


class MutationCoordinator:
    def __init__(self, notifier: Optional[BaseNotifier] = None, notify_failures: Optional[bool] = None):
        self.notifier = notifier or LogNotifier()
        self.notify_failures = config.NOTIFY_PERSISTENCE_FAILURES if notify_failures is None else notify_failures
        self._status: Dict[str, GoalSyncStatus] = {}

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------
    def track(self, goal_id: str, awaitable: Awaitable[Any], local_value: Any = None) -> asyncio.Task:
        """
        Start (or adopt) a background write for goal_id.

        Must be called from a running event loop. Returns the task so the
        caller may await it; awaiting is optional.
        """
        task = asyncio.ensure_future(awaitable)
        self._status[goal_id] = GoalSyncStatus(state=SyncState.PENDING, local_value=local_value, task=task)
        task.add_done_callback(lambda t: self._settle(goal_id, t))
        return task

    async def run(self, goal_id: str, awaitable: Awaitable[Any], local_value: Any = None) -> bool:
        """Track a write and wait for it. True when it succeeded."""
        task = self.track(goal_id, awaitable, local_value)
        await asyncio.wait({task})
        return not task.cancelled() and task.exception() is None

    def _settle(self, goal_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            error: Optional[BaseException] = PersistenceFailure("Write was cancelled before it finished")
        else:
            error = task.exception()

        current = self._status.get(goal_id)
        if current is None or current.task is not task:
            if error is not None:
                logger.debug("Ignoring outcome of superseded write for %s: %s", goal_id, error)
            return

        if error is None:
            self._status.pop(goal_id, None)
            return

        failure = PersistenceFailure.wrap(error)
        self._status[goal_id] = GoalSyncStatus(
            state=SyncState.ERROR,
            local_value=current.local_value,
            last_error=failure,
        )
        logger.warning("Write for goal %s failed: %s", goal_id, failure.message)
        if self.notify_failures:
            self.notifier.send(
                Notification(
                    title=error_title(failure),
                    message=failure.get_user_message(),
                    priority=NotificationPriority.HIGH,
                    goal_id=goal_id,
                )
            )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def sync_state(self, goal_id: str) -> SyncState:
        status = self._status.get(goal_id)
        return status.state if status else SyncState.SYNCED

    def is_pending(self, goal_id: str) -> bool:
        return self.sync_state(goal_id) == SyncState.PENDING

    def optimistic_value(self, goal_id: str, default: Any = None) -> Any:
        """The locally applied value while a write is pending or has failed."""
        status = self._status.get(goal_id)
        if status is None:
            return default
        return status.local_value

    def last_error(self, goal_id: str) -> Optional[PersistenceFailure]:
        status = self._status.get(goal_id)
        return status.last_error if status else None

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    def reconcile(self, snapshot: GoalSnapshot) -> None:
        """
        Authoritative data arrived: every goal in it is synced.

        A write still in flight keeps its task, so its own failure is still
        reported when it settles.
        """
        for goal_id in snapshot.goal_ids:
            status = self._status.get(goal_id)
            if status is None:
                continue
            if status.task is not None:
                self._status[goal_id] = GoalSyncStatus(task=status.task)
            else:
                del self._status[goal_id]
            logger.debug("Reconciled %s from store snapshot", goal_id)

    def attach(self, store) -> Callable[[], None]:
        """Subscribe reconcile() to a GoalStore; returns the unsubscribe function."""
        return store.subscribe(self.reconcile)
