"""
Core data models for goalboard.

Quarterly -> Weekly -> Daily goal tree plus standalone adhoc goals, and the
week-scoped state records attached to them. Dataclasses so engines can use
dataclasses.replace() to produce updated copies.
"""
import time
from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Optional, Tuple

from goalboard.exceptions import InvalidPeriodError

WeekKey = Tuple[int, int, int]  # (year, quarter, week_number)


class GoalDepth(IntEnum):
    ADHOC = -1
    QUARTERLY = 0
    WEEKLY = 1
    DAILY = 2


class DayOfWeek(IntEnum):
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6
    SUNDAY = 7

    def day_name(self) -> str:
        return self.name.capitalize()

    def day_name_short(self) -> str:
        return self.name[:3].capitalize()


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TimePeriod:
    """
    A week, or a day within a week when day_of_week is set.

    week_number is the ISO week number; quarter is the quarter the week
    belongs to for the user's planning.
    """
    year: int
    quarter: int
    week_number: int
    day_of_week: Optional[DayOfWeek] = None

    def __post_init__(self):
        if not 1 <= self.quarter <= 4:
            raise InvalidPeriodError(f"Quarter must be 1-4, got {self.quarter}")
        if not 1 <= self.week_number <= 53:
            raise InvalidPeriodError(f"Week number must be 1-53, got {self.week_number}")
        if self.day_of_week is not None:
            try:
                object.__setattr__(self, "day_of_week", DayOfWeek(self.day_of_week))
            except ValueError:
                raise InvalidPeriodError(f"Day of week must be 1-7, got {self.day_of_week}")

    @property
    def key(self) -> WeekKey:
        return (self.year, self.quarter, self.week_number)

    @property
    def is_day(self) -> bool:
        return self.day_of_week is not None

    @property
    def week(self) -> "TimePeriod":
        if self.day_of_week is None:
            return self
        return replace(self, day_of_week=None)

    def on_day(self, day_of_week: int) -> "TimePeriod":
        return replace(self, day_of_week=DayOfWeek(day_of_week))

    def contains(self, other: "TimePeriod") -> bool:
        """True when other falls inside this period (same week, and same day if this is a day)."""
        if self.key != other.key:
            return False
        return self.day_of_week is None or self.day_of_week == other.day_of_week

    def label(self) -> str:
        text = f"{self.year} Q{self.quarter} W{self.week_number}"
        if self.day_of_week is not None:
            text += f" {self.day_of_week.day_name_short()}"
        return text


@dataclass
class Goal:
    """
    Node in the goal hierarchy.

    parent_id is None only for quarterly and adhoc goals. details is opaque
    rich text. due_date is independent of the period assignment.
    """
    id: str
    title: str
    depth: GoalDepth
    year: int
    quarter: int
    parent_id: Optional[str] = None
    details: Optional[str] = None
    week_number: Optional[int] = None
    day_of_week: Optional[DayOfWeek] = None
    date_timestamp: Optional[int] = None
    due_date: Optional[int] = None
    domain_id: Optional[str] = None
    created_at: Optional[int] = None

    def __post_init__(self):
        self.depth = GoalDepth(self.depth)
        if self.day_of_week is not None:
            self.day_of_week = DayOfWeek(self.day_of_week)
        if self.created_at is None:
            self.created_at = now_ms()

    @property
    def is_quarterly(self) -> bool:
        return self.depth == GoalDepth.QUARTERLY

    @property
    def is_weekly(self) -> bool:
        return self.depth == GoalDepth.WEEKLY

    @property
    def is_daily(self) -> bool:
        return self.depth == GoalDepth.DAILY

    @property
    def is_adhoc(self) -> bool:
        return self.depth == GoalDepth.ADHOC

    @property
    def home_period(self) -> Optional[TimePeriod]:
        """The week (or day) the goal is anchored to; None for quarterly goals."""
        if self.week_number is None:
            return None
        return TimePeriod(self.year, self.quarter, self.week_number, self.day_of_week)


@dataclass(frozen=True)
class CarryOver:
    """Marks a weekly goal state that was carried forward from an earlier week."""
    num_weeks: int
    previous_week: WeekKey
    root_goal_id: str


@dataclass
class GoalState:
    """
    Period-scoped status of a goal.

    Quarterly and weekly goals have one state per week; a daily goal has a
    single state whose period carries its day. is_hard_complete is only
    used by weekly goals, is_starred/is_pinned only by quarterly goals.
    """
    goal_id: str
    period: TimePeriod
    is_complete: bool = False
    is_hard_complete: bool = False
    is_starred: bool = False
    is_pinned: bool = False
    completed_at: Optional[int] = None
    carry_over: Optional[CarryOver] = None

    @property
    def week_key(self) -> WeekKey:
        return self.period.key

    @property
    def has_priority(self) -> bool:
        return self.is_starred or self.is_pinned

    def with_completion(self, value: bool, now: Optional[int] = None) -> "GoalState":
        """Copy with is_complete set; completed_at follows the transition."""
        if value == self.is_complete:
            return replace(self)
        completed_at = (now if now is not None else now_ms()) if value else None
        return replace(self, is_complete=value, completed_at=completed_at)
