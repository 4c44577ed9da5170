import asyncio

from goalboard.exceptions import PersistenceFailure
from goalboard.hierarchy import GoalSnapshot
from goalboard.models import Goal, GoalDepth
from goalboard.mutation_coordinator import MutationCoordinator, SyncState
from goalboard.notifiers import CollectingNotifier, NotificationPriority


async def _write(gate: asyncio.Event, error: Exception = None):
    await gate.wait()
    if error is not None:
        raise error


def test_pending_then_synced():
    async def scenario():
        coordinator = MutationCoordinator(notifier=CollectingNotifier())
        gate = asyncio.Event()
        task = coordinator.track("d1", _write(gate), local_value=True)

        assert coordinator.is_pending("d1")
        assert coordinator.optimistic_value("d1") is True

        gate.set()
        await task
        await asyncio.sleep(0)
        return coordinator

    coordinator = asyncio.run(scenario())
    assert coordinator.sync_state("d1") == SyncState.SYNCED
    assert coordinator.optimistic_value("d1") is None
    assert coordinator.last_error("d1") is None


def test_failure_sets_error_and_notifies():
    notifier = CollectingNotifier()

    async def scenario():
        coordinator = MutationCoordinator(notifier=notifier, notify_failures=True)
        gate = asyncio.Event()
        gate.set()
        ok = await coordinator.run("d1", _write(gate, RuntimeError("disk full")), local_value=True)
        return coordinator, ok

    coordinator, ok = asyncio.run(scenario())
    assert ok is False
    assert coordinator.sync_state("d1") == SyncState.ERROR
    # no rollback: the local value is still what the UI shows
    assert coordinator.optimistic_value("d1") is True

    error = coordinator.last_error("d1")
    assert isinstance(error, PersistenceFailure)
    assert isinstance(error.cause, RuntimeError)

    assert len(notifier.sent) == 1
    assert notifier.sent[0].priority == NotificationPriority.HIGH
    assert notifier.sent[0].title == "System Error"
    assert notifier.sent[0].goal_id == "d1"


def test_failure_notification_can_be_disabled():
    notifier = CollectingNotifier()

    async def scenario():
        coordinator = MutationCoordinator(notifier=notifier, notify_failures=False)
        gate = asyncio.Event()
        gate.set()
        return await coordinator.run("d1", _write(gate, RuntimeError("boom")))

    assert asyncio.run(scenario()) is False
    assert notifier.sent == []


def test_superseded_failure_is_ignored():
    notifier = CollectingNotifier()

    async def scenario():
        coordinator = MutationCoordinator(notifier=notifier)
        slow, fast = asyncio.Event(), asyncio.Event()
        first = coordinator.track("d1", _write(slow, RuntimeError("stale")), local_value=True)
        second = coordinator.track("d1", _write(fast), local_value=False)

        fast.set()
        await second
        slow.set()
        await asyncio.wait({first})
        await asyncio.sleep(0)
        return coordinator

    coordinator = asyncio.run(scenario())
    assert coordinator.sync_state("d1") == SyncState.SYNCED
    assert notifier.sent == []


def test_superseded_success_does_not_clear_newer_error():
    async def scenario():
        coordinator = MutationCoordinator(notifier=CollectingNotifier())
        slow, fast = asyncio.Event(), asyncio.Event()
        first = coordinator.track("d1", _write(slow), local_value=True)
        second = coordinator.track("d1", _write(fast, RuntimeError("rejected")), local_value=False)

        fast.set()
        await asyncio.wait({second})
        slow.set()
        await first
        await asyncio.sleep(0)
        return coordinator

    coordinator = asyncio.run(scenario())
    assert coordinator.sync_state("d1") == SyncState.ERROR
    assert coordinator.optimistic_value("d1") is False


def test_reconcile_marks_goals_synced():
    async def scenario():
        coordinator = MutationCoordinator(notifier=CollectingNotifier())
        gate = asyncio.Event()
        gate.set()
        await coordinator.run("d1", _write(gate, RuntimeError("boom")), local_value=True)
        return coordinator

    coordinator = asyncio.run(scenario())
    assert coordinator.sync_state("d1") == SyncState.ERROR

    coordinator.reconcile(GoalSnapshot([Goal("d1", "Outline", GoalDepth.DAILY, 2024, 2)]))
    assert coordinator.sync_state("d1") == SyncState.SYNCED
    assert coordinator.last_error("d1") is None


def test_failure_after_reconcile_is_still_reported():
    notifier = CollectingNotifier()

    async def scenario():
        coordinator = MutationCoordinator(notifier=notifier, notify_failures=True)
        gate = asyncio.Event()
        task = coordinator.track("d1", _write(gate, RuntimeError("disk full")), local_value=True)

        coordinator.reconcile(GoalSnapshot([Goal("d1", "Outline", GoalDepth.DAILY, 2024, 2)]))
        synced_before = coordinator.sync_state("d1")

        gate.set()
        await asyncio.wait({task})
        await asyncio.sleep(0)
        return coordinator, synced_before

    coordinator, synced_before = asyncio.run(scenario())
    assert synced_before == SyncState.SYNCED
    assert coordinator.sync_state("d1") == SyncState.ERROR
    assert isinstance(coordinator.last_error("d1").cause, RuntimeError)
    assert len(notifier.sent) == 1
    assert notifier.sent[0].goal_id == "d1"
