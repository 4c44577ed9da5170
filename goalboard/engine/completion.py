"""
Completion Propagation Engine.

Rules:
- a daily goal's is_complete is set directly and never derived;
- a weekly goal's soft is_complete is derived from its daily children in
  that week (true iff there is at least one and all are complete);
- is_hard_complete is a manual override on weekly goals. Clearing a child's
  completion always re-validates the parent's hard flag
  (clear_stale_hard_complete), so unchecking any child clears it.

Every function is a pure transform over a GoalSnapshot; callers persist
the returned effect with effect.to_batch().
"""
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Tuple

from goalboard.exceptions import InvalidTransitionError
from goalboard.hierarchy import GoalSnapshot
from goalboard.logger import get_logger
from goalboard.models import Goal, GoalDepth, GoalState, TimePeriod
from goalboard.schemas import WriteBatch

logger = get_logger("completion")


@dataclass
class WeeklyGoalEffect:
    """Result of toggling a daily goal: the leaf and its recomputed parent."""
    daily_state: GoalState
    weekly_state: GoalState
    hard_complete_cleared: bool = False

    def to_batch(self) -> WriteBatch:
        return WriteBatch.of_states(self.daily_state, self.weekly_state)


@dataclass
class WeeklyToggleResult:
    """
    Result of a weekly checkbox click.

    When requires_confirmation is set nothing changed; the caller must ask
    the user and then call complete_weekly_goal().
    """
    requires_confirmation: bool
    resulting_state: GoalState
    changed: bool = False

    def to_batch(self) -> WriteBatch:
        if not self.changed:
            return WriteBatch()
        return WriteBatch.of_states(self.resulting_state)


@dataclass
class WeeklyCompletionEffect:
    weekly_state: GoalState
    daily_states: List[GoalState] = field(default_factory=list)

    def to_batch(self) -> WriteBatch:
        return WriteBatch.of_states(self.weekly_state, *self.daily_states)


@dataclass
class GoalCompletionEffect:
    state: GoalState

    def to_batch(self) -> WriteBatch:
        return WriteBatch.of_states(self.state)


# ---------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------
def derive_weekly_completion(daily_states: Iterable[GoalState]) -> bool:
    """Soft completion of a weekly goal from its daily children's states."""
    states = list(daily_states)
    return bool(states) and all(s.is_complete for s in states)


def clear_stale_hard_complete(weekly_state: GoalState, child_value: bool) -> Tuple[GoalState, bool]:
    """Unchecking a child drops the parent's manual-complete marker."""
    if child_value or not weekly_state.is_hard_complete:
        return weekly_state, False
    return replace(weekly_state, is_hard_complete=False), True


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _require_depth(goal: Goal, depth: GoalDepth, operation: str) -> None:
    if goal.depth != depth:
        raise InvalidTransitionError(
            f"{operation} expects a {depth.name.lower()} goal, "
            f"got {goal.depth.name.lower()} goal {goal.id}",
            goal_id=goal.id,
        )


def _weekly_context(
    snapshot: GoalSnapshot, goal_id: str, week: Optional[TimePeriod], operation: str
) -> Tuple[Goal, TimePeriod, GoalState, List[Tuple[Goal, GoalState]]]:
    goal = snapshot.require_goal(goal_id)
    _require_depth(goal, GoalDepth.WEEKLY, operation)
    week = (week or goal.home_period)
    if week is None:
        raise InvalidTransitionError(f"Weekly goal {goal_id} has no week", goal_id=goal_id)
    week = week.week
    state = snapshot.state_for(goal_id, week) or GoalState(goal_id=goal_id, period=week)
    children = snapshot.daily_children(goal_id, week)
    return goal, week, state, children


# ---------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------
def toggle_daily_goal(
    snapshot: GoalSnapshot,
    goal_id: str,
    new_value: bool,
    now: Optional[int] = None,
) -> WeeklyGoalEffect:
    """Set a daily goal's completion and recompute its weekly parent."""
    goal = snapshot.require_goal(goal_id)
    _require_depth(goal, GoalDepth.DAILY, "toggle_daily_goal")

    daily_state = snapshot.daily_state(goal_id)
    if daily_state is None:
        raise InvalidTransitionError(f"Daily goal {goal_id} is not scheduled in any loaded week", goal_id=goal_id)
    week = daily_state.period.week

    parent = snapshot.require_goal(goal.parent_id) if goal.parent_id else None
    if parent is None:
        raise InvalidTransitionError(f"Daily goal {goal_id} has no weekly parent", goal_id=goal_id)
    _require_depth(parent, GoalDepth.WEEKLY, "toggle_daily_goal parent")

    new_daily = daily_state.with_completion(new_value, now)

    siblings = [
        new_daily if child.id == goal_id else child_state
        for child, child_state in snapshot.daily_children(parent.id, week)
    ]
    weekly_state = snapshot.state_for(parent.id, week) or GoalState(goal_id=parent.id, period=week)
    new_weekly = weekly_state.with_completion(derive_weekly_completion(siblings), now)
    new_weekly, cleared = clear_stale_hard_complete(new_weekly, new_value)

    if cleared:
        logger.debug("Cleared hard completion of %s after unchecking %s", parent.id, goal_id)

    return WeeklyGoalEffect(daily_state=new_daily, weekly_state=new_weekly, hard_complete_cleared=cleared)


def toggle_weekly_goal(
    snapshot: GoalSnapshot,
    goal_id: str,
    requested_value: bool,
    week: Optional[TimePeriod] = None,
    now: Optional[int] = None,
) -> WeeklyToggleResult:
    """
    Hard-complete workflow for a weekly goal checkbox.

    week defaults to the goal's own week; pass it for carried-over weeks.
    """
    _, week, state, children = _weekly_context(snapshot, goal_id, week, "toggle_weekly_goal")

    if not requested_value:
        if not state.is_hard_complete:
            return WeeklyToggleResult(requires_confirmation=False, resulting_state=state)
        return WeeklyToggleResult(
            requires_confirmation=False,
            resulting_state=replace(state, is_hard_complete=False),
            changed=True,
        )

    if state.is_hard_complete:
        return WeeklyToggleResult(requires_confirmation=False, resulting_state=state)

    if any(not child_state.is_complete for _, child_state in children):
        logger.debug("Weekly goal %s has incomplete children; confirmation required", goal_id)
        return WeeklyToggleResult(requires_confirmation=True, resulting_state=state)

    resulting = hard_complete_weekly_goal(snapshot, goal_id, week=week, now=now)
    return WeeklyToggleResult(requires_confirmation=False, resulting_state=resulting, changed=True)


def hard_complete_weekly_goal(
    snapshot: GoalSnapshot,
    goal_id: str,
    week: Optional[TimePeriod] = None,
    now: Optional[int] = None,
) -> GoalState:
    """
    Low-level hard completion.

    Refuses when any daily child is incomplete: that case needs the
    confirmation step and complete_weekly_goal().
    """
    _, week, state, children = _weekly_context(snapshot, goal_id, week, "hard_complete_weekly_goal")

    incomplete = [child.id for child, child_state in children if not child_state.is_complete]
    if incomplete:
        raise InvalidTransitionError(
            f"Weekly goal {goal_id} has {len(incomplete)} incomplete daily goals; confirmation required",
            goal_id=goal_id,
        )

    soft = derive_weekly_completion(s for _, s in children)
    return replace(state.with_completion(soft, now), is_hard_complete=True)


def complete_weekly_goal(
    snapshot: GoalSnapshot,
    goal_id: str,
    cascade_to_children: bool,
    week: Optional[TimePeriod] = None,
    now: Optional[int] = None,
) -> WeeklyCompletionEffect:
    """
    Confirmed hard completion.

    With cascade_to_children every daily child is completed too and soft
    completion is recomputed. Without it only the hard flag is set, leaving
    is_hard_complete=True, is_complete=False when children are incomplete.
    """
    _, week, state, children = _weekly_context(snapshot, goal_id, week, "complete_weekly_goal")

    changed_children: List[GoalState] = []
    child_states = []
    for _, child_state in children:
        if cascade_to_children and not child_state.is_complete:
            child_state = child_state.with_completion(True, now)
            changed_children.append(child_state)
        child_states.append(child_state)

    new_state = replace(state, is_hard_complete=True)
    if cascade_to_children:
        new_state = new_state.with_completion(derive_weekly_completion(child_states), now)

    logger.debug(
        "Hard-completed weekly goal %s (cascade=%s, children changed=%d)",
        goal_id, cascade_to_children, len(changed_children),
    )
    return WeeklyCompletionEffect(weekly_state=new_state, daily_states=changed_children)


def toggle_goal_completion(
    snapshot: GoalSnapshot,
    goal_id: str,
    value: bool,
    week: Optional[TimePeriod] = None,
    now: Optional[int] = None,
) -> GoalCompletionEffect:
    """
    Direct completion for quarterly and adhoc goals.

    Quarterly goals are completed per week (week is required); adhoc goals
    use their single state.
    """
    goal = snapshot.require_goal(goal_id)

    if goal.depth == GoalDepth.QUARTERLY:
        if week is None:
            raise InvalidTransitionError(f"Quarterly goal {goal_id} needs a week to complete", goal_id=goal_id)
        week = week.week
        state = snapshot.state_for(goal_id, week) or GoalState(goal_id=goal_id, period=week)
    elif goal.depth == GoalDepth.ADHOC:
        state = snapshot.daily_state(goal_id)
        if state is None:
            period = goal.home_period
            if period is None:
                raise InvalidTransitionError(f"Adhoc goal {goal_id} has no week", goal_id=goal_id)
            state = GoalState(goal_id=goal_id, period=period)
    else:
        raise InvalidTransitionError(
            f"Use toggle_daily_goal/toggle_weekly_goal for {goal.depth.name.lower()} goal {goal_id}",
            goal_id=goal_id,
        )

    return GoalCompletionEffect(state=state.with_completion(value, now))
