import asyncio

import pytest

from goalboard.config_manager import SystemConfig
from goalboard.exceptions import PersistenceFailure
from goalboard.goal_service import GoalService
from goalboard.models import Goal, GoalDepth, GoalState, TimePeriod
from goalboard.mutation_coordinator import MutationCoordinator, SyncState
from goalboard.notifiers import CollectingNotifier
from goalboard.store import InMemoryGoalStore

USER = "user_1"
W13 = TimePeriod(2024, 1, 13)
W15 = TimePeriod(2024, 2, 15)
W16 = TimePeriod(2024, 2, 16)


class CountingStore(InMemoryGoalStore):
    def __init__(self, path=None, fail=False):
        super().__init__(path)
        self.batches = []
        self.fail = fail

    async def apply_batch(self, user_id, batch):
        self.batches.append(batch)
        if self.fail:
            raise PersistenceFailure("store offline")
        await super().apply_batch(user_id, batch)


def _seed(store, week=W15, starred=True):
    store.add_goal(
        USER,
        Goal("q1", "Ship v2", GoalDepth.QUARTERLY, week.year, week.quarter),
        GoalState("q1", week, is_starred=starred),
    )
    store.add_goal(
        USER,
        Goal("w1", "Write docs", GoalDepth.WEEKLY, week.year, week.quarter, parent_id="q1", week_number=week.week_number),
        GoalState("w1", week),
    )
    for day, goal_id in ((1, "d1"), (2, "d2"), (3, "d3")):
        store.add_goal(
            USER,
            Goal(goal_id, f"Task {goal_id}", GoalDepth.DAILY, week.year, week.quarter,
                 parent_id="w1", week_number=week.week_number, day_of_week=day),
            GoalState(goal_id, week.on_day(day), is_complete=(goal_id == "d3")),
        )
    return store


def _service(store, **config):
    notifier = CollectingNotifier()
    service = GoalService(
        store,
        USER,
        coordinator=MutationCoordinator(notifier=notifier),
        config=SystemConfig(**config),
    )
    return service, notifier


def test_toggle_daily_goal_persists_goal_and_parent():
    store = _seed(CountingStore())
    service, _ = _service(store)

    asyncio.run(service.toggle_daily_goal("d1", W15, True))
    asyncio.run(service.toggle_daily_goal("d2", W15, True))

    assert store.get_state(USER, "d1", W15).is_complete
    assert store.get_state(USER, "w1", W15).is_complete
    assert len(store.batches) == 2
    assert service.coordinator.sync_state("d2") == SyncState.SYNCED


def test_confirmation_and_cascade_flow():
    store = _seed(CountingStore())
    service, _ = _service(store)

    result = asyncio.run(service.toggle_weekly_goal("w1", W15, True))
    assert result.requires_confirmation
    assert store.batches == []

    asyncio.run(service.complete_weekly_goal("w1", W15, cascade_to_children=True))
    weekly = store.get_state(USER, "w1", W15)
    assert weekly.is_hard_complete and weekly.is_complete
    assert all(store.get_state(USER, g, W15).is_complete for g in ("d1", "d2", "d3"))
    assert len(store.batches) == 1

    # unchecking any child drops the manual completion
    asyncio.run(service.toggle_daily_goal("d2", W15, False))
    weekly = store.get_state(USER, "w1", W15)
    assert not weekly.is_hard_complete and not weekly.is_complete


def test_failed_write_is_reported():
    store = _seed(CountingStore(fail=True))
    service, notifier = _service(store)

    effect = asyncio.run(service.toggle_daily_goal("d1", W15, True))
    assert effect.daily_state.is_complete
    assert service.coordinator.sync_state("d1") == SyncState.ERROR
    assert service.coordinator.optimistic_value("d1") is True
    assert not store.get_state(USER, "d1", W15).is_complete
    assert len(notifier.sent) == 1


def test_commit_transfer_moves_incomplete_goals_in_one_batch():
    store = _seed(CountingStore())
    service, _ = _service(store)

    preview = asyncio.run(service.preview_transfer(W15, W16))
    assert sorted(preview.moved_ids) == ["d1", "d2"]
    assert store.batches == []

    result = asyncio.run(service.commit_transfer(W15, W16, shown_plan=preview))
    assert result.committed and result.conflict is None
    assert len(store.batches) == 1

    assert store.get_state(USER, "d1", W16).period == W16.on_day(1)
    assert store.get_goal(USER, "d1").parent_id == "w1"
    assert store.get_state(USER, "d3", W15).is_complete
    assert store.get_state(USER, "w1", W16).carry_over.num_weeks == 1
    assert store.get_state(USER, "q1", W16).is_starred


def test_commit_never_moves_goal_completed_after_preview():
    store = _seed(CountingStore())
    service, _ = _service(store)

    preview = asyncio.run(service.preview_transfer(W15, W16))
    asyncio.run(service.toggle_daily_goal("d1", W15, True))

    result = asyncio.run(service.commit_transfer(W15, W16, shown_plan=preview))
    assert result.conflict is not None
    assert result.conflict.dropped_ids == {"d1"}
    assert store.get_state(USER, "d1", W15).is_complete
    assert store.get_state(USER, "d1", W16) is None
    assert store.get_state(USER, "d2", W16) is not None


def test_empty_preview_and_empty_commit():
    store = _seed(CountingStore())
    service, _ = _service(store)

    preview = asyncio.run(service.preview_transfer(W16, W15))
    assert preview.is_empty

    result = asyncio.run(service.commit_transfer(W16, W15, shown_plan=preview))
    assert not result.committed
    assert store.batches == []


def test_drag_status_move_and_duplicate():
    store = _seed(CountingStore())
    service, _ = _service(store)

    asyncio.run(service.drag_status("q1", W15, W16, duplicate=True))
    assert store.get_state(USER, "q1", W15).is_starred
    assert store.get_state(USER, "q1", W16).is_starred

    asyncio.run(service.drag_status("q1", W16, TimePeriod(2024, 2, 17)))
    assert not store.get_state(USER, "q1", W16).is_starred
    assert store.get_state(USER, "q1", TimePeriod(2024, 2, 17)).is_starred


def test_priority_toggles_through_service():
    store = _seed(CountingStore(), starred=False)
    service, _ = _service(store)

    assert asyncio.run(service.toggle_pinned("q1", W15)).is_pinned
    assert asyncio.run(service.toggle_starred("q1", W15)).is_starred
    state = store.get_state(USER, "q1", W15)
    assert state.is_starred and not state.is_pinned

    asyncio.run(service.clear_status("q1", W15))
    assert not store.get_state(USER, "q1", W15).has_priority


def test_find_last_non_empty_week():
    store = _seed(CountingStore(), week=W13)
    service, _ = _service(store, LAST_NON_EMPTY_WEEK_LOOKBACK=13)
    assert asyncio.run(service.find_last_non_empty_week(W16)) == W13

    short, _ = _service(store, LAST_NON_EMPTY_WEEK_LOOKBACK=2)
    assert asyncio.run(short.find_last_non_empty_week(W16)) is None


def test_pull_from_last_non_empty_week():
    store = _seed(CountingStore(), week=W13)
    service, _ = _service(store)

    result = asyncio.run(service.pull_from_last_non_empty_week(W16.on_day(4)))
    assert result.committed
    assert store.get_state(USER, "d1", W16).period == W16.on_day(1)


def test_commit_transfer_propagates_store_failure():
    store = _seed(CountingStore(fail=True))
    service, _ = _service(store)
    with pytest.raises(PersistenceFailure):
        asyncio.run(service.commit_transfer(W15, W16))


def test_commit_transfer_rederives_weekly_completion():
    store = _seed(CountingStore())
    store.add_goal(
        USER,
        Goal("d9", "Task d9", GoalDepth.DAILY, W16.year, W16.quarter,
             parent_id="w1", week_number=W16.week_number, day_of_week=5),
        GoalState("d9", W16.on_day(5), is_complete=True, completed_at=1000),
    )
    store.add_goal(USER, store.get_goal(USER, "w1"), GoalState("w1", W16, is_complete=True, completed_at=1000))
    service, _ = _service(store)

    asyncio.run(service.commit_transfer(W15, W16))

    # d3 is the only goal left in the source week and it is done
    assert store.get_state(USER, "w1", W15).is_complete
    # unfinished d1 and d2 arrived next to the finished d9
    target = store.get_state(USER, "w1", W16)
    assert not target.is_complete and target.completed_at is None


def test_weekly_goal_without_daily_goals_is_pulled():
    store = CountingStore()
    store.add_goal(USER, Goal("q1", "Ship v2", GoalDepth.QUARTERLY, 2024, 1), GoalState("q1", W13))
    store.add_goal(
        USER,
        Goal("w2", "Plan launch", GoalDepth.WEEKLY, 2024, 1, parent_id="q1", week_number=13),
        GoalState("w2", W13),
    )
    service, _ = _service(store, LAST_NON_EMPTY_WEEK_LOOKBACK=13)

    assert asyncio.run(service.find_last_non_empty_week(W16)) == W13
    result = asyncio.run(service.pull_from_last_non_empty_week(W16))
    assert result.committed
    assert store.get_state(USER, "w2", W16).carry_over.previous_week == W13.key
