# Engines: pure transforms from a GoalSnapshot to state changes.
# Each returns an effect or plan with to_batch(); none of them touches the store.

from goalboard.engine.completion import (
    WeeklyCompletionEffect,
    WeeklyGoalEffect,
    WeeklyToggleResult,
    complete_weekly_goal,
    derive_weekly_completion,
    hard_complete_weekly_goal,
    toggle_daily_goal,
    toggle_goal_completion,
    toggle_weekly_goal,
)
from goalboard.engine.priority import (
    clear_status,
    set_pinned,
    set_starred,
    sort_by_priority,
    toggle_pinned,
    toggle_starred,
)
from goalboard.engine.transfer import TransferPlan, find_conflict, plan_status_drag, plan_transfer

__all__ = [
    "WeeklyCompletionEffect",
    "WeeklyGoalEffect",
    "WeeklyToggleResult",
    "complete_weekly_goal",
    "derive_weekly_completion",
    "hard_complete_weekly_goal",
    "toggle_daily_goal",
    "toggle_goal_completion",
    "toggle_weekly_goal",
    "clear_status",
    "set_pinned",
    "set_starred",
    "sort_by_priority",
    "toggle_pinned",
    "toggle_starred",
    "TransferPlan",
    "find_conflict",
    "plan_status_drag",
    "plan_transfer",
]
