"""
GoalSnapshot: read model over goals and their period-scoped states.

Engines receive a snapshot, never a store. Nothing here mutates.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from goalboard.exceptions import GoalNotFoundError
from goalboard.models import Goal, GoalDepth, GoalState, TimePeriod, WeekKey

StateKey = Tuple[str, WeekKey]


class GoalSnapshot:
    """Goals plus the states loaded for one or more periods."""

    def __init__(self, goals: Iterable[Goal] = (), states: Iterable[GoalState] = ()):
        self._goals: Dict[str, Goal] = {g.id: g for g in goals}
        self._states: Dict[StateKey, GoalState] = {(s.goal_id, s.week_key): s for s in states}

    def __len__(self) -> int:
        return len(self._goals)

    def __contains__(self, goal_id: str) -> bool:
        return goal_id in self._goals

    @property
    def goals(self) -> List[Goal]:
        return list(self._goals.values())

    @property
    def states(self) -> List[GoalState]:
        return list(self._states.values())

    @property
    def goal_ids(self) -> List[str]:
        return list(self._goals)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._goals.get(goal_id)

    def require_goal(self, goal_id: str) -> Goal:
        goal = self._goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(goal_id)
        return goal

    def state_for(self, goal_id: str, week: TimePeriod) -> Optional[GoalState]:
        return self._states.get((goal_id, week.key))

    def states_of(self, goal_id: str) -> List[GoalState]:
        return [s for (gid, _), s in self._states.items() if gid == goal_id]

    def daily_state(self, goal_id: str) -> Optional[GoalState]:
        """The single state of a daily (or adhoc) goal, wherever it currently lives."""
        states = self.states_of(goal_id)
        return states[0] if states else None

    # ------------------------------------------------------------------
    # Tree navigation
    # ------------------------------------------------------------------
    def children_of(self, goal_id: str, week: Optional[TimePeriod] = None) -> List[Goal]:
        """Direct children; with a week, only children that have a state in it."""
        children = [g for g in self._goals.values() if g.parent_id == goal_id]
        if week is None:
            return children
        return [g for g in children if (g.id, week.key) in self._states]

    def daily_children(self, weekly_goal_id: str, week: TimePeriod) -> List[Tuple[Goal, GoalState]]:
        """Daily goals under a weekly goal that are scheduled in the given week."""
        result = []
        for child in self.children_of(weekly_goal_id, week):
            if child.depth != GoalDepth.DAILY:
                continue
            result.append((child, self._states[(child.id, week.key)]))
        return result

    def ancestors_of(self, goal_id: str) -> List[Goal]:
        """Parent first, root last. Stops at a parent missing from the snapshot."""
        ancestors = []
        seen = {goal_id}
        goal = self.require_goal(goal_id)
        while goal.parent_id and goal.parent_id not in seen:
            parent = self._goals.get(goal.parent_id)
            if parent is None:
                break
            ancestors.append(parent)
            seen.add(parent.id)
            goal = parent
        return ancestors

    def quarterly_ancestor_of(self, goal_id: str) -> Optional[Goal]:
        for ancestor in self.ancestors_of(goal_id):
            if ancestor.depth == GoalDepth.QUARTERLY:
                return ancestor
        return None

    # ------------------------------------------------------------------
    # Period membership
    # ------------------------------------------------------------------
    def states_in(self, period: TimePeriod) -> List[GoalState]:
        """States inside a week, or inside a single day when the period is a day."""
        return [s for s in self._states.values() if period.contains(s.period)]

    def goals_in(self, period: TimePeriod, depth: Optional[GoalDepth] = None) -> List[Tuple[Goal, GoalState]]:
        result = []
        for state in self.states_in(period):
            goal = self._goals.get(state.goal_id)
            if goal is None:
                continue
            if depth is not None and goal.depth != depth:
                continue
            result.append((goal, state))
        return result

    def merge(self, other: "GoalSnapshot") -> "GoalSnapshot":
        """Union of two snapshots; entries from other win."""
        merged = GoalSnapshot(self.goals, self.states)
        merged._goals.update(other._goals)
        merged._states.update(other._states)
        return merged
