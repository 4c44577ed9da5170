"""
Write-batch schema for the store boundary.

Engines describe every change as one WriteBatch; the store validates and
applies it as a single unit.
"""
from typing import List, Optional, Set, Tuple

from pydantic import BaseModel, Field, model_validator

from goalboard.models import CarryOver, DayOfWeek, GoalState, TimePeriod


class PeriodModel(BaseModel):
    year: int
    quarter: int = Field(ge=1, le=4)
    week_number: int = Field(ge=1, le=53)
    day_of_week: Optional[int] = Field(default=None, ge=1, le=7)

    @classmethod
    def from_period(cls, period: TimePeriod) -> "PeriodModel":
        return cls(
            year=period.year,
            quarter=period.quarter,
            week_number=period.week_number,
            day_of_week=int(period.day_of_week) if period.day_of_week is not None else None,
        )

    def to_period(self) -> TimePeriod:
        day = DayOfWeek(self.day_of_week) if self.day_of_week is not None else None
        return TimePeriod(self.year, self.quarter, self.week_number, day)


class CarryOverModel(BaseModel):
    num_weeks: int = Field(ge=1)
    previous_week: Tuple[int, int, int]
    root_goal_id: str


class StateMutation(BaseModel):
    """Upsert of one goal's state for one week (full replacement)."""
    goal_id: str
    period: PeriodModel
    is_complete: bool = False
    is_hard_complete: bool = False
    is_starred: bool = False
    is_pinned: bool = False
    completed_at: Optional[int] = None
    carry_over: Optional[CarryOverModel] = None

    @model_validator(mode="after")
    def _star_and_pin_exclusive(self) -> "StateMutation":
        if self.is_starred and self.is_pinned:
            raise ValueError(f"Goal {self.goal_id} cannot be both starred and pinned")
        return self

    @classmethod
    def from_state(cls, state: GoalState) -> "StateMutation":
        carry_over = None
        if state.carry_over is not None:
            carry_over = CarryOverModel(
                num_weeks=state.carry_over.num_weeks,
                previous_week=state.carry_over.previous_week,
                root_goal_id=state.carry_over.root_goal_id,
            )
        return cls(
            goal_id=state.goal_id,
            period=PeriodModel.from_period(state.period),
            is_complete=state.is_complete,
            is_hard_complete=state.is_hard_complete,
            is_starred=state.is_starred,
            is_pinned=state.is_pinned,
            completed_at=state.completed_at,
            carry_over=carry_over,
        )

    def to_state(self) -> GoalState:
        carry_over = None
        if self.carry_over is not None:
            carry_over = CarryOver(
                num_weeks=self.carry_over.num_weeks,
                previous_week=tuple(self.carry_over.previous_week),
                root_goal_id=self.carry_over.root_goal_id,
            )
        return GoalState(
            goal_id=self.goal_id,
            period=self.period.to_period(),
            is_complete=self.is_complete,
            is_hard_complete=self.is_hard_complete,
            is_starred=self.is_starred,
            is_pinned=self.is_pinned,
            completed_at=self.completed_at,
            carry_over=carry_over,
        )


class PeriodReassignment(BaseModel):
    """Moves a daily or adhoc goal (and its state) to another week/day."""
    goal_id: str
    from_period: PeriodModel
    to_period: PeriodModel
    date_timestamp: Optional[int] = None


class WriteBatch(BaseModel):
    state_mutations: List[StateMutation] = Field(default_factory=list)
    reassignments: List[PeriodReassignment] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.state_mutations and not self.reassignments

    def goal_ids(self) -> Set[str]:
        ids = {m.goal_id for m in self.state_mutations}
        ids.update(r.goal_id for r in self.reassignments)
        return ids

    @classmethod
    def of_states(cls, *states: GoalState) -> "WriteBatch":
        return cls(state_mutations=[StateMutation.from_state(s) for s in states])
