"""
Period Transfer Engine.

Moves ("pulls") unfinished goals from one week or day into another:

    plan = plan_transfer(snapshot, from_period, to_period)   # preview, pure
    batch = plan.to_batch()                                  # one atomic write

The plan is always derived from a snapshot; committing re-derives it from
fresh data (see GoalService.commit_transfer) and find_conflict() compares
what was shown with what was acted on.

The snapshot must hold both periods: states already present in the target
week decide whether weekly parents need a carry-over state, and the soft
completion of a weekly parent is re-derived in both weeks after its daily
goals move.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional

from goalboard.engine.completion import derive_weekly_completion
from goalboard.engine.priority import apply_status
from goalboard.exceptions import InvalidTransitionError, TransferConflictError
from goalboard.hierarchy import GoalSnapshot
from goalboard.logger import get_logger
from goalboard.models import CarryOver, Goal, GoalDepth, GoalState, TimePeriod
from goalboard.periods import day_timestamp
from goalboard.schemas import PeriodModel, PeriodReassignment, StateMutation, WriteBatch

logger = get_logger("transfer")


@dataclass(frozen=True)
class DailyMove:
    goal_id: str
    title: str
    from_period: TimePeriod
    to_period: TimePeriod
    date_timestamp: Optional[int]
    weekly_goal_id: Optional[str] = None
    weekly_title: Optional[str] = None
    quarterly_goal_id: Optional[str] = None
    quarterly_title: Optional[str] = None
    quarterly_starred: bool = False
    quarterly_pinned: bool = False


@dataclass(frozen=True)
class AdhocMove:
    goal_id: str
    title: str
    from_period: TimePeriod
    to_period: TimePeriod
    date_timestamp: Optional[int]


@dataclass(frozen=True)
class WeeklyCarryOver:
    """A weekly parent that gets a state in the target week."""
    goal_id: str
    title: str
    state: GoalState


@dataclass(frozen=True)
class WeeklyUpdate:
    """An existing weekly state whose soft completion changes with the move."""
    goal_id: str
    title: str
    state: GoalState


@dataclass(frozen=True)
class StatusUpdate:
    """A quarterly goal's starred/pinned status copied into the target week."""
    goal_id: str
    title: str
    state: GoalState


@dataclass(frozen=True)
class SkippedGoal:
    goal_id: str
    title: str
    reason: str


@dataclass
class TransferPlan:
    from_period: TimePeriod
    to_period: TimePeriod
    daily_moves: List[DailyMove] = field(default_factory=list)
    weekly_carry_overs: List[WeeklyCarryOver] = field(default_factory=list)
    weekly_updates: List[WeeklyUpdate] = field(default_factory=list)
    status_updates: List[StatusUpdate] = field(default_factory=list)
    adhoc_moves: List[AdhocMove] = field(default_factory=list)
    skipped: List[SkippedGoal] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.daily_moves
            or self.weekly_carry_overs
            or self.weekly_updates
            or self.status_updates
            or self.adhoc_moves
        )

    @property
    def moved_ids(self) -> List[str]:
        """Ids of goals whose period changes, daily first."""
        return [m.goal_id for m in self.daily_moves] + [m.goal_id for m in self.adhoc_moves]

    def summary(self) -> Dict[str, int]:
        return {
            "daily": len(self.daily_moves),
            "adhoc": len(self.adhoc_moves),
            "carried_weekly": len(self.weekly_carry_overs),
            "weekly_updates": len(self.weekly_updates),
            "status": len(self.status_updates),
            "skipped": len(self.skipped),
        }

    def to_batch(self) -> WriteBatch:
        reassignments = [
            PeriodReassignment(
                goal_id=move.goal_id,
                from_period=PeriodModel.from_period(move.from_period),
                to_period=PeriodModel.from_period(move.to_period),
                date_timestamp=move.date_timestamp,
            )
            for move in [*self.daily_moves, *self.adhoc_moves]
        ]
        mutations = [StateMutation.from_state(c.state) for c in self.weekly_carry_overs]
        mutations.extend(StateMutation.from_state(u.state) for u in self.weekly_updates)
        mutations.extend(StateMutation.from_state(u.state) for u in self.status_updates)
        return WriteBatch(state_mutations=mutations, reassignments=reassignments)


@dataclass
class StatusDragPlan:
    """States to write after dragging a quarterly goal's status between weeks."""
    goal_id: str
    states: List[GoalState] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.states

    def to_batch(self) -> WriteBatch:
        return WriteBatch.of_states(*self.states)


# ---------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------
def _target_period(to_period: TimePeriod, source: TimePeriod) -> TimePeriod:
    """Target week; the day comes from to_period, else the goal keeps its own day."""
    day = to_period.day_of_week or source.day_of_week
    week = to_period.week
    return week.on_day(day) if day is not None else week


def _timestamp_for(period: TimePeriod) -> Optional[int]:
    return day_timestamp(period) if period.is_day else None


def _has_incomplete_weekly_work(snapshot: GoalSnapshot, quarterly_id: str, week: TimePeriod) -> bool:
    for weekly in snapshot.children_of(quarterly_id, week):
        if weekly.depth != GoalDepth.WEEKLY:
            continue
        state = snapshot.state_for(weekly.id, week)
        if not (state.is_complete or state.is_hard_complete):
            return True
    return False


def _daily_move(snapshot: GoalSnapshot, goal: Goal, state: GoalState, to_period: TimePeriod) -> DailyMove:
    target = _target_period(to_period, state.period)
    weekly = snapshot.get_goal(goal.parent_id) if goal.parent_id else None
    quarterly = snapshot.quarterly_ancestor_of(goal.id)
    quarterly_state = snapshot.state_for(quarterly.id, state.period.week) if quarterly else None
    return DailyMove(
        goal_id=goal.id,
        title=goal.title,
        from_period=state.period,
        to_period=target,
        date_timestamp=_timestamp_for(target),
        weekly_goal_id=weekly.id if weekly else None,
        weekly_title=weekly.title if weekly else None,
        quarterly_goal_id=quarterly.id if quarterly else None,
        quarterly_title=quarterly.title if quarterly else None,
        quarterly_starred=bool(quarterly_state and quarterly_state.is_starred),
        quarterly_pinned=bool(quarterly_state and quarterly_state.is_pinned),
    )


def _carry_over(snapshot: GoalSnapshot, weekly_id: str, from_week: TimePeriod, to_week: TimePeriod) -> Optional[WeeklyCarryOver]:
    weekly = snapshot.get_goal(weekly_id)
    if weekly is None or snapshot.state_for(weekly_id, to_week) is not None:
        return None
    source_state = snapshot.state_for(weekly_id, from_week)
    previous = source_state.carry_over if source_state else None
    carry = CarryOver(
        num_weeks=previous.num_weeks + 1 if previous else 1,
        previous_week=from_week.key,
        root_goal_id=previous.root_goal_id if previous else weekly_id,
    )
    state = GoalState(goal_id=weekly_id, period=to_week, carry_over=carry)
    return WeeklyCarryOver(goal_id=weekly_id, title=weekly.title, state=state)


def _with_derived_completion(state: GoalState, child_states: Iterable[GoalState]) -> GoalState:
    """Soft completion from the children; the hard flag is left alone."""
    child_states = list(child_states)
    soft = derive_weekly_completion(child_states)
    if soft == state.is_complete:
        return state
    if not soft:
        return replace(state, is_complete=False, completed_at=None)
    stamps = [s.completed_at for s in child_states if s.completed_at is not None]
    return replace(state, is_complete=True, completed_at=max(stamps) if stamps else None)


def _plan_weekly_parent(
    plan: TransferPlan,
    snapshot: GoalSnapshot,
    weekly_id: str,
    moved_states: List[GoalState],
    from_week: TimePeriod,
    to_week: TimePeriod,
) -> None:
    """Carry the parent into the target week and re-derive its completion in both weeks."""
    weekly = snapshot.get_goal(weekly_id)
    if weekly is None:
        return
    moved_ids = {s.goal_id for s in moved_states}

    source_state = snapshot.state_for(weekly_id, from_week)
    if source_state is not None:
        staying = [s for g, s in snapshot.daily_children(weekly_id, from_week) if g.id not in moved_ids]
        updated = _with_derived_completion(source_state, staying)
        if updated != source_state:
            plan.weekly_updates.append(WeeklyUpdate(weekly_id, weekly.title, updated))

    arriving = [s for _, s in snapshot.daily_children(weekly_id, to_week)] + moved_states
    carry = _carry_over(snapshot, weekly_id, from_week, to_week)
    if carry is not None:
        plan.weekly_carry_overs.append(replace(carry, state=_with_derived_completion(carry.state, arriving)))
        return

    target_state = snapshot.state_for(weekly_id, to_week)
    updated = _with_derived_completion(target_state, arriving)
    if updated != target_state:
        plan.weekly_updates.append(WeeklyUpdate(weekly_id, weekly.title, updated))


def plan_transfer(
    snapshot: GoalSnapshot,
    from_period: TimePeriod,
    to_period: TimePeriod,
    move_only_incomplete: bool = True,
    include_adhoc: bool = True,
) -> TransferPlan:
    """
    Preview moving goals from one period into another.

    A week-level from_period pulls the whole week; a day-level one pulls
    only that day. Pure: calling it twice on the same snapshot gives equal
    plans and nothing is written.
    """
    plan = TransferPlan(from_period=from_period, to_period=to_period)
    if from_period == to_period:
        return plan

    from_week, to_week = from_period.week, to_period.week
    crosses_weeks = from_week.key != to_week.key

    for goal, state in snapshot.goals_in(from_period, GoalDepth.DAILY):
        if move_only_incomplete and state.is_complete:
            plan.skipped.append(SkippedGoal(goal.id, goal.title, "complete"))
            continue
        move = _daily_move(snapshot, goal, state, to_period)
        if move.to_period == move.from_period:
            plan.skipped.append(SkippedGoal(goal.id, goal.title, "already in target period"))
            continue
        plan.daily_moves.append(move)

    if crosses_weeks:
        moved_by_parent: Dict[str, List[GoalState]] = {}
        for move in plan.daily_moves:
            if move.weekly_goal_id:
                moved_by_parent.setdefault(move.weekly_goal_id, []).append(
                    snapshot.state_for(move.goal_id, from_week)
                )
        for weekly_id, moved_states in moved_by_parent.items():
            _plan_weekly_parent(plan, snapshot, weekly_id, moved_states, from_week, to_week)

        # Unfinished weekly goals without daily goals follow whole-week pulls
        if not from_period.is_day:
            for goal, state in snapshot.goals_in(from_week, GoalDepth.WEEKLY):
                if goal.id in moved_by_parent or state.is_complete or state.is_hard_complete:
                    continue
                if snapshot.daily_children(goal.id, from_week):
                    continue
                carry = _carry_over(snapshot, goal.id, from_week, to_week)
                if carry is not None:
                    plan.weekly_carry_overs.append(carry)

    # Status only follows whole-week pulls
    if crosses_weeks and not from_period.is_day:
        for goal, state in snapshot.goals_in(from_week, GoalDepth.QUARTERLY):
            if not state.has_priority:
                continue
            if not _has_incomplete_weekly_work(snapshot, goal.id, from_week):
                continue
            target = snapshot.state_for(goal.id, to_week) or GoalState(goal_id=goal.id, period=to_week)
            updated = apply_status(target, state.is_starred, state.is_pinned)
            if updated != target:
                plan.status_updates.append(StatusUpdate(goal.id, goal.title, updated))

    if include_adhoc:
        for goal, state in snapshot.goals_in(from_period, GoalDepth.ADHOC):
            if state.is_complete:
                plan.skipped.append(SkippedGoal(goal.id, goal.title, "complete"))
                continue
            target = _target_period(to_period, state.period)
            if target == state.period:
                continue
            plan.adhoc_moves.append(
                AdhocMove(goal.id, goal.title, state.period, target, _timestamp_for(target))
            )

    logger.debug(
        "Planned transfer %s -> %s: %s",
        from_period.label(), to_period.label(), plan.summary(),
    )
    return plan


def find_conflict(shown_plan: TransferPlan, fresh_plan: TransferPlan) -> Optional[TransferConflictError]:
    """Conflict when the goals acted on differ from the goals previewed."""
    shown = set(shown_plan.moved_ids)
    acted = set(fresh_plan.moved_ids)
    if shown == acted:
        return None
    return TransferConflictError(shown, acted)


def plan_status_drag(
    snapshot: GoalSnapshot,
    goal_id: str,
    source_week: TimePeriod,
    target_week: TimePeriod,
    duplicate: bool = False,
) -> StatusDragPlan:
    """
    Drag a quarterly goal's status from one week to another.

    The target always receives the source status. Without duplicate (the
    modifier key) a starred or pinned source is cleared.
    """
    goal = snapshot.require_goal(goal_id)
    if goal.depth != GoalDepth.QUARTERLY:
        raise InvalidTransitionError(f"Only quarterly goal status can be dragged, got {goal_id}", goal_id=goal_id)

    source_week, target_week = source_week.week, target_week.week
    plan = StatusDragPlan(goal_id=goal_id)
    if source_week.key == target_week.key:
        return plan

    source = snapshot.state_for(goal_id, source_week) or GoalState(goal_id=goal_id, period=source_week)
    target = snapshot.state_for(goal_id, target_week) or GoalState(goal_id=goal_id, period=target_week)
    plan.states.append(apply_status(target, source.is_starred, source.is_pinned))

    if not duplicate and source.has_priority:
        plan.states.append(apply_status(source, False, False))
    return plan
