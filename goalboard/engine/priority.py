"""
Priority Status Engine: starred / pinned flags on quarterly goals.

Status is per week. Starring clears pinned and vice versa, so a state is
at most one of the two. A missing week state is created on write.
"""
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from goalboard.exceptions import InvalidTransitionError
from goalboard.hierarchy import GoalSnapshot
from goalboard.models import GoalDepth, GoalState, TimePeriod

T = TypeVar("T")


def _week_state(snapshot: GoalSnapshot, goal_id: str, week: TimePeriod) -> GoalState:
    goal = snapshot.require_goal(goal_id)
    if goal.depth != GoalDepth.QUARTERLY:
        raise InvalidTransitionError(
            f"Only quarterly goals can be starred or pinned, {goal_id} is {goal.depth.name.lower()}",
            goal_id=goal_id,
        )
    week = week.week
    return snapshot.state_for(goal_id, week) or GoalState(goal_id=goal_id, period=week)


def set_starred(snapshot: GoalSnapshot, goal_id: str, week: TimePeriod) -> GoalState:
    state = _week_state(snapshot, goal_id, week)
    return replace(state, is_starred=True, is_pinned=False)


def set_pinned(snapshot: GoalSnapshot, goal_id: str, week: TimePeriod) -> GoalState:
    state = _week_state(snapshot, goal_id, week)
    return replace(state, is_starred=False, is_pinned=True)


def clear_status(snapshot: GoalSnapshot, goal_id: str, week: TimePeriod) -> GoalState:
    state = _week_state(snapshot, goal_id, week)
    return replace(state, is_starred=False, is_pinned=False)


def toggle_starred(snapshot: GoalSnapshot, goal_id: str, week: TimePeriod) -> GoalState:
    """Star the goal, or clear the star if it is already starred."""
    state = _week_state(snapshot, goal_id, week)
    if state.is_starred:
        return replace(state, is_starred=False, is_pinned=False)
    return replace(state, is_starred=True, is_pinned=False)


def toggle_pinned(snapshot: GoalSnapshot, goal_id: str, week: TimePeriod) -> GoalState:
    state = _week_state(snapshot, goal_id, week)
    if state.is_pinned:
        return replace(state, is_starred=False, is_pinned=False)
    return replace(state, is_starred=False, is_pinned=True)


def apply_status(state: GoalState, is_starred: bool, is_pinned: bool) -> GoalState:
    """Copy status flags onto a state; starred wins when both are set."""
    return replace(state, is_starred=is_starred, is_pinned=is_pinned and not is_starred)


# ---------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------
def priority_rank(state: Optional[GoalState]) -> int:
    """0 = starred, 1 = pinned, 2 = neither."""
    if state is None:
        return 2
    if state.is_starred:
        return 0
    if state.is_pinned:
        return 1
    return 2


def priority_sort_key(title: str, state: Optional[GoalState]) -> Tuple[int, str]:
    return priority_rank(state), title.casefold()


def sort_by_priority(
    items: Iterable[T],
    title: Callable[[T], str],
    state: Callable[[T], Optional[GoalState]],
) -> List[T]:
    """
    The one ordering used by every view: starred, then pinned, then title.

    Example:
        sort_by_priority(pairs, title=lambda p: p[0].title, state=lambda p: p[1])
    """
    return sorted(items, key=lambda item: priority_sort_key(title(item), state(item)))
