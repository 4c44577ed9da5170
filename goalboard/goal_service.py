"""
Goal application service.

The seam a UI shell calls into: every operation loads fresh data from the
store, asks an engine for a pure effect, and writes the effect as one
WriteBatch through the mutation coordinator.
"""
from dataclasses import dataclass
from typing import Optional

from goalboard.config_manager import SystemConfig, config as default_config
from goalboard.engine import completion, priority, transfer
from goalboard.exceptions import TransferConflictError
from goalboard.hierarchy import GoalSnapshot
from goalboard.logger import get_logger
from goalboard.models import GoalState, TimePeriod
from goalboard.mutation_coordinator import MutationCoordinator
from goalboard.periods import previous_week
from goalboard.schemas import WriteBatch
from goalboard.store import GoalStore

logger = get_logger("goal_service")


@dataclass
class TransferResult:
    plan: transfer.TransferPlan
    committed: bool
    conflict: Optional[TransferConflictError] = None


class GoalService:
    """Application service for one user's goal dashboard."""

    def __init__(
        self,
        store: GoalStore,
        user_id: str,
        coordinator: Optional[MutationCoordinator] = None,
        config: Optional[SystemConfig] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.config = config or default_config
        self.coordinator = coordinator or MutationCoordinator()
        self._unsubscribe = self.coordinator.attach(store)

    def close(self) -> None:
        self._unsubscribe()

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    async def load(self, period: TimePeriod) -> GoalSnapshot:
        return await self.store.load_period(self.user_id, period)

    async def _load_pair(self, first: TimePeriod, second: TimePeriod) -> GoalSnapshot:
        snapshot = await self.load(first)
        if second.key == first.key and second.day_of_week == first.day_of_week:
            return snapshot
        return snapshot.merge(await self.load(second))

    async def _commit(self, goal_id: str, batch: WriteBatch, local_value=None) -> bool:
        if batch.is_empty:
            return True
        return await self.coordinator.run(
            goal_id, self.store.apply_batch(self.user_id, batch), local_value
        )

    # ---------------------------------------------------------------------
    # Completion
    # ---------------------------------------------------------------------
    async def toggle_daily_goal(self, goal_id: str, week: TimePeriod, value: bool) -> completion.WeeklyGoalEffect:
        snapshot = await self.load(week.week)
        effect = completion.toggle_daily_goal(snapshot, goal_id, value)
        await self._commit(goal_id, effect.to_batch(), value)
        return effect

    async def toggle_weekly_goal(self, goal_id: str, week: TimePeriod, value: bool) -> completion.WeeklyToggleResult:
        """Returns requires_confirmation=True without writing when children are open."""
        snapshot = await self.load(week.week)
        result = completion.toggle_weekly_goal(snapshot, goal_id, value, week=week)
        await self._commit(goal_id, result.to_batch(), value)
        return result

    async def complete_weekly_goal(
        self, goal_id: str, week: TimePeriod, cascade_to_children: bool
    ) -> completion.WeeklyCompletionEffect:
        """Second step after the user answered the confirmation prompt."""
        snapshot = await self.load(week.week)
        effect = completion.complete_weekly_goal(snapshot, goal_id, cascade_to_children, week=week)
        await self._commit(goal_id, effect.to_batch(), True)
        return effect

    async def toggle_goal_completion(self, goal_id: str, week: TimePeriod, value: bool) -> GoalState:
        snapshot = await self.load(week.week)
        effect = completion.toggle_goal_completion(snapshot, goal_id, value, week=week)
        await self._commit(goal_id, effect.to_batch(), value)
        return effect.state

    # ---------------------------------------------------------------------
    # Priority status
    # ---------------------------------------------------------------------
    async def toggle_starred(self, goal_id: str, week: TimePeriod) -> GoalState:
        state = priority.toggle_starred(await self.load(week.week), goal_id, week)
        await self._commit(goal_id, WriteBatch.of_states(state), "starred" if state.is_starred else None)
        return state

    async def toggle_pinned(self, goal_id: str, week: TimePeriod) -> GoalState:
        state = priority.toggle_pinned(await self.load(week.week), goal_id, week)
        await self._commit(goal_id, WriteBatch.of_states(state), "pinned" if state.is_pinned else None)
        return state

    async def clear_status(self, goal_id: str, week: TimePeriod) -> GoalState:
        state = priority.clear_status(await self.load(week.week), goal_id, week)
        await self._commit(goal_id, WriteBatch.of_states(state))
        return state

    async def drag_status(
        self,
        goal_id: str,
        source_week: TimePeriod,
        target_week: TimePeriod,
        duplicate: bool = False,
    ) -> transfer.StatusDragPlan:
        snapshot = await self._load_pair(source_week.week, target_week.week)
        plan = transfer.plan_status_drag(snapshot, goal_id, source_week, target_week, duplicate)
        await self._commit(goal_id, plan.to_batch())
        return plan

    # ---------------------------------------------------------------------
    # Period transfer
    # ---------------------------------------------------------------------
    def _transfer_options(self, move_only_incomplete: Optional[bool], include_adhoc: Optional[bool]):
        if move_only_incomplete is None:
            move_only_incomplete = self.config.MOVE_ONLY_INCOMPLETE
        if include_adhoc is None:
            include_adhoc = self.config.PULL_ADHOC_GOALS
        return move_only_incomplete, include_adhoc

    async def preview_transfer(
        self,
        from_period: TimePeriod,
        to_period: TimePeriod,
        move_only_incomplete: Optional[bool] = None,
        include_adhoc: Optional[bool] = None,
    ) -> transfer.TransferPlan:
        """Read-only preview shown in the confirmation dialog."""
        only_incomplete, adhoc = self._transfer_options(move_only_incomplete, include_adhoc)
        snapshot = await self._load_pair(from_period.week, to_period.week)
        return transfer.plan_transfer(snapshot, from_period, to_period, only_incomplete, adhoc)

    async def commit_transfer(
        self,
        from_period: TimePeriod,
        to_period: TimePeriod,
        shown_plan: Optional[transfer.TransferPlan] = None,
        move_only_incomplete: Optional[bool] = None,
        include_adhoc: Optional[bool] = None,
    ) -> TransferResult:
        """
        Re-derive the plan from current data and write it as one batch.

        The shown plan is only used to detect a conflict; the goals moved are
        the ones still movable now. PersistenceFailure propagates.
        """
        plan = await self.preview_transfer(from_period, to_period, move_only_incomplete, include_adhoc)

        conflict = transfer.find_conflict(shown_plan, plan) if shown_plan is not None else None
        if conflict is not None:
            logger.warning("Transfer %s -> %s: %s", from_period.label(), to_period.label(), conflict.message)

        if plan.is_empty:
            logger.info("Nothing to move from %s to %s", from_period.label(), to_period.label())
            return TransferResult(plan=plan, committed=False, conflict=conflict)

        await self.store.apply_batch(self.user_id, plan.to_batch())
        logger.info(
            "Moved goals from %s to %s: %s",
            from_period.label(), to_period.label(), plan.summary(),
        )
        return TransferResult(plan=plan, committed=True, conflict=conflict)

    async def find_last_non_empty_week(self, current_week: TimePeriod) -> Optional[TimePeriod]:
        """Closest earlier week that still has goals to pull into current_week."""
        week = current_week.week
        for _ in range(self.config.LAST_NON_EMPTY_WEEK_LOOKBACK):
            week = previous_week(week)
            plan = await self.preview_transfer(week, current_week.week)
            if plan.daily_moves or plan.adhoc_moves or plan.weekly_carry_overs:
                return week
        return None

    async def pull_from_last_non_empty_week(
        self,
        current_week: TimePeriod,
        shown_plan: Optional[transfer.TransferPlan] = None,
    ) -> Optional[TransferResult]:
        source = await self.find_last_non_empty_week(current_week)
        if source is None:
            logger.info(
                "No week with unfinished goals in the last %d weeks before %s",
                self.config.LAST_NON_EMPTY_WEEK_LOOKBACK, current_week.label(),
            )
            return None
        return await self.commit_transfer(source, current_week.week, shown_plan)
