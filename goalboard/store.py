"""
Store boundary.

GoalStore is the contract the engine needs from persistence: load the
goals and states of a period, apply one WriteBatch atomically, and push
changed goals to subscribers. InMemoryGoalStore is the reference adapter,
optionally persisted to a JSON file.
"""
import json
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from goalboard.exceptions import PersistenceFailure
from goalboard.hierarchy import GoalSnapshot
from goalboard.logger import get_logger
from goalboard.models import Goal, GoalDepth, GoalState, TimePeriod, WeekKey
from goalboard.paths import DATA_DIR
from goalboard.schemas import StateMutation, WriteBatch

logger = get_logger("store")

STORE_PATH = DATA_DIR / "goal_store.json"

SnapshotCallback = Callable[[GoalSnapshot], None]


class GoalStore(ABC):
    """Async persistence contract for goals and their week-scoped states."""

    def __init__(self):
        self._subscribers: List[SnapshotCallback] = []

    @abstractmethod
    async def load_period(self, user_id: str, period: TimePeriod) -> GoalSnapshot:
        """
        Goals of the period's quarter (with ancestry), adhoc goals of the
        week, and the states of the week (or of the day plus the week-level
        states when period is a day).
        """

    @abstractmethod
    async def apply_batch(self, user_id: str, batch: WriteBatch) -> None:
        """Apply every change or none; raises PersistenceFailure."""

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register for snapshots of changed goals. Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, snapshot: GoalSnapshot) -> None:
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Store subscriber %r failed", callback)


# ---------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------
def _goal_to_dict(g: Goal) -> dict:
    return {
        "id": g.id,
        "title": g.title,
        "depth": int(g.depth),
        "year": g.year,
        "quarter": g.quarter,
        "parent_id": g.parent_id,
        "details": g.details,
        "week_number": g.week_number,
        "day_of_week": int(g.day_of_week) if g.day_of_week is not None else None,
        "date_timestamp": g.date_timestamp,
        "due_date": g.due_date,
        "domain_id": g.domain_id,
        "created_at": g.created_at,
    }


def _dict_to_goal(d: dict) -> Goal:
    return Goal(
        id=d["id"],
        title=d["title"],
        depth=GoalDepth(d["depth"]),
        year=d["year"],
        quarter=d["quarter"],
        parent_id=d.get("parent_id"),
        details=d.get("details"),
        week_number=d.get("week_number"),
        day_of_week=d.get("day_of_week"),
        date_timestamp=d.get("date_timestamp"),
        due_date=d.get("due_date"),
        domain_id=d.get("domain_id"),
        created_at=d.get("created_at"),
    )


class _UserData:
    def __init__(self):
        self.goals: Dict[str, Goal] = {}
        self.states: Dict[Tuple[str, WeekKey], GoalState] = {}

    def copy(self) -> "_UserData":
        clone = _UserData()
        clone.goals = {gid: replace(g) for gid, g in self.goals.items()}
        clone.states = {key: replace(s) for key, s in self.states.items()}
        return clone


class InMemoryGoalStore(GoalStore):
    """
    Dict-backed store.

    With a path, every applied batch is written to a JSON file before it
    becomes visible; without one the store lives only in memory.
    """

    def __init__(self, path: Optional[Path] = None):
        super().__init__()
        self._path = path
        self._users: Dict[str, _UserData] = {}
        self._load()

    @classmethod
    def at_default_path(cls) -> "InMemoryGoalStore":
        return cls(STORE_PATH)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
            for user_id, payload in data.get("users", {}).items():
                user = _UserData()
                for d in payload.get("goals", []):
                    goal = _dict_to_goal(d)
                    user.goals[goal.id] = goal
                for d in payload.get("states", []):
                    state = StateMutation.model_validate(d).to_state()
                    user.states[(state.goal_id, state.week_key)] = state
                self._users[user_id] = user
        except (json.JSONDecodeError, OSError, KeyError, ValidationError) as e:
            logger.warning("Could not load goal store %s, starting empty: %s", self._path, e)
            self._users = {}

    def _save(self, users: Dict[str, _UserData]) -> None:
        if self._path is None:
            return
        payload = {
            "users": {
                user_id: {
                    "goals": [_goal_to_dict(g) for g in user.goals.values()],
                    "states": [StateMutation.from_state(s).model_dump() for s in user.states.values()],
                }
                for user_id, user in users.items()
            }
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

    def _user(self, user_id: str) -> _UserData:
        return self._users.setdefault(user_id, _UserData())

    # ------------------------------------------------------------------
    # Seeding / inspection (synchronous)
    # ------------------------------------------------------------------
    def add_goal(self, user_id: str, goal: Goal, state: Optional[GoalState] = None) -> None:
        user = self._user(user_id)
        user.goals[goal.id] = goal
        if state is not None:
            user.states[(state.goal_id, state.week_key)] = state
        self._save(self._users)

    def get_goal(self, user_id: str, goal_id: str) -> Optional[Goal]:
        return self._user(user_id).goals.get(goal_id)

    def get_state(self, user_id: str, goal_id: str, week: TimePeriod) -> Optional[GoalState]:
        return self._user(user_id).states.get((goal_id, week.key))

    def snapshot(self, user_id: str) -> GoalSnapshot:
        """Everything the user has."""
        user = self._user(user_id)
        return GoalSnapshot(user.goals.values(), user.states.values())

    # ------------------------------------------------------------------
    # GoalStore
    # ------------------------------------------------------------------
    async def load_period(self, user_id: str, period: TimePeriod) -> GoalSnapshot:
        user = self._user(user_id)

        states = [
            s for s in user.states.values()
            if period.contains(s.period) or (not s.period.is_day and s.week_key == period.key)
        ]
        goal_ids: Set[str] = {s.goal_id for s in states}
        goal_ids.update(
            g.id for g in user.goals.values()
            if g.depth == GoalDepth.QUARTERLY and g.year == period.year and g.quarter == period.quarter
        )

        # ancestry
        pending = list(goal_ids)
        while pending:
            goal = user.goals.get(pending.pop())
            if goal is not None and goal.parent_id and goal.parent_id not in goal_ids:
                goal_ids.add(goal.parent_id)
                pending.append(goal.parent_id)

        goals = [user.goals[gid] for gid in goal_ids if gid in user.goals]
        return GoalSnapshot(goals, states)

    async def apply_batch(self, user_id: str, batch: Union[WriteBatch, dict]) -> None:
        if not isinstance(batch, WriteBatch):
            try:
                batch = WriteBatch.model_validate(batch)
            except ValidationError as e:
                raise PersistenceFailure(f"Invalid write batch: {e}", cause=e)

        if batch.is_empty:
            return

        staged = self._user(user_id).copy()
        self._stage(staged, batch)

        users = dict(self._users)
        users[user_id] = staged
        try:
            self._save(users)
        except OSError as e:
            raise PersistenceFailure(f"Could not write goal store {self._path}: {e}", cause=e)
        self._users = users

        changed = batch.goal_ids()
        logger.info(
            "Applied batch for %s: %d state changes, %d moves",
            user_id, len(batch.state_mutations), len(batch.reassignments),
        )
        self._publish(GoalSnapshot(
            [g for gid, g in staged.goals.items() if gid in changed],
            [s for s in staged.states.values() if s.goal_id in changed],
        ))

    @staticmethod
    def _stage(user: _UserData, batch: WriteBatch) -> None:
        """Apply a batch to a copy; raises PersistenceFailure on the first bad entry."""
        for move in batch.reassignments:
            goal = user.goals.get(move.goal_id)
            if goal is None:
                raise PersistenceFailure(f"Cannot move unknown goal {move.goal_id}")
            source = move.from_period.to_period()
            state = user.states.pop((move.goal_id, source.key), None)
            if state is None:
                raise PersistenceFailure(f"Goal {move.goal_id} has no state in {source.label()}")

            target = move.to_period.to_period()
            user.states[(move.goal_id, target.key)] = replace(state, period=target)
            user.goals[move.goal_id] = replace(
                goal,
                year=target.year,
                quarter=target.quarter,
                week_number=target.week_number,
                day_of_week=target.day_of_week,
                date_timestamp=move.date_timestamp,
            )

        for mutation in batch.state_mutations:
            if mutation.goal_id not in user.goals:
                raise PersistenceFailure(f"Cannot update state of unknown goal {mutation.goal_id}")
            state = mutation.to_state()
            user.states[(state.goal_id, state.week_key)] = state
