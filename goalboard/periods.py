"""
ISO week and quarter arithmetic.

A week belongs to the quarter (and year) that contains its Thursday, the
same rule ISO 8601 uses to assign weeks to years.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from goalboard.exceptions import InvalidPeriodError
from goalboard.models import TimePeriod


def quarter_of(day: date) -> int:
    return (day.month - 1) // 3 + 1


def quarter_date_range(year: int, quarter: int) -> Tuple[date, date]:
    """First and last calendar day of a quarter."""
    if not 1 <= quarter <= 4:
        raise InvalidPeriodError(f"Quarter must be 1-4, got {quarter}")
    start = date(year, 3 * (quarter - 1) + 1, 1)
    if quarter == 4:
        end = date(year, 12, 31)
    else:
        end = date(year, 3 * quarter + 1, 1) - timedelta(days=1)
    return start, end


def weeks_in_year(year: int) -> int:
    """52 or 53; Dec 28 always lies in the last ISO week of its year."""
    return date(year, 12, 28).isocalendar()[1]


def quarter_weeks(year: int, quarter: int) -> List[int]:
    """ISO week numbers whose Thursday falls inside the quarter."""
    start, end = quarter_date_range(year, quarter)
    monday = start - timedelta(days=start.isoweekday() - 1)
    weeks = []
    while monday <= end:
        thursday = monday + timedelta(days=3)
        if start <= thursday <= end:
            weeks.append(thursday.isocalendar()[1])
        monday += timedelta(weeks=1)
    return weeks


def week_period(year: int, week_number: int, day_of_week: Optional[int] = None) -> TimePeriod:
    """Build a TimePeriod for an ISO week, deriving its quarter."""
    if not 1 <= week_number <= weeks_in_year(year):
        raise InvalidPeriodError(f"{year} has no ISO week {week_number}")
    thursday = date.fromisocalendar(year, week_number, 4)
    return TimePeriod(year, quarter_of(thursday), week_number, day_of_week)


def previous_week(period: TimePeriod) -> TimePeriod:
    """The week before, rolling over quarter and year boundaries."""
    if period.week_number > 1:
        return week_period(period.year, period.week_number - 1)
    year = period.year - 1
    return week_period(year, weeks_in_year(year))


def next_week(period: TimePeriod) -> TimePeriod:
    if period.week_number < weeks_in_year(period.year):
        return week_period(period.year, period.week_number + 1)
    return week_period(period.year + 1, 1)


def day_date(period: TimePeriod) -> date:
    if period.day_of_week is None:
        raise InvalidPeriodError(f"{period.label()} is a week, not a day")
    try:
        return date.fromisocalendar(period.year, period.week_number, int(period.day_of_week))
    except ValueError as e:
        raise InvalidPeriodError(str(e))


def day_timestamp(period: TimePeriod) -> int:
    """Unix milliseconds at UTC midnight of the period's day."""
    d = day_date(period)
    return int(datetime(d.year, d.month, d.day, tzinfo=timezone.utc).timestamp() * 1000)


def current_period(now: Optional[datetime] = None) -> TimePeriod:
    """Day period for now (local time unless a datetime is given)."""
    if now is None:
        now = datetime.now()
    iso_year, week, weekday = now.date().isocalendar()
    return week_period(iso_year, week, weekday)


def week_options(current: TimePeriod) -> List[Dict[str, Any]]:
    """
    Weeks of the current quarter, labelled relative to the current week.

    Example label: "Week 42 (next)".
    """
    weeks = quarter_weeks(current.year, current.quarter)
    following = next((w for w in weeks if w > current.week_number), None)

    options = []
    for week in weeks:
        suffix = ""
        if week == current.week_number:
            suffix = " (current)"
        elif following is not None and week == following:
            suffix = " (next)"
        elif week < current.week_number:
            suffix = " (past)"
        options.append(
            {
                "year": current.year,
                "quarter": current.quarter,
                "week_number": week,
                "label": f"Week {week}{suffix}",
            }
        )
    return options
