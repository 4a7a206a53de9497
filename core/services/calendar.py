"""Map (week number, day of week) coordinates onto calendar dates.

Day of week is always 1=Monday .. 7=Sunday and is only ever derived from a
date via :func:`day_of_week`. Week 1 may be partial when the plan starts
mid-week; every later week is a full Monday-Sunday block anchored on the first
Monday on/after the plan start.
"""

from __future__ import annotations

from datetime import date, timedelta

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def day_of_week(value: date) -> int:
    return value.isoweekday()


def day_name(day_number: int) -> str:
    if not 1 <= int(day_number) <= 7:
        return "Unknown"
    return DAY_NAMES[int(day_number) - 1]


def week_start(value: date) -> date:
    """Monday on or before ``value``."""
    return value - timedelta(days=value.isoweekday() - 1)


def week_end(value: date) -> date:
    """Sunday on or after ``value``."""
    return value + timedelta(days=7 - value.isoweekday())


def first_monday_on_or_after(value: date) -> date:
    weekday = value.isoweekday()
    if weekday == 1:
        return value
    return value + timedelta(days=8 - weekday)


def days_in_first_week(plan_start: date) -> int:
    return 8 - day_of_week(plan_start)


def first_week_day_numbers(plan_start: date) -> list[int]:
    return list(range(day_of_week(plan_start), 8))


def date_for_coordinate(
    plan_start: date,
    week_number: int,
    day_number: int,
    allow_partial_first_week: bool = False,
) -> date:
    if week_number < 1:
        raise ValueError(f"week_number must be >= 1, got {week_number}")
    if not 1 <= day_number <= 7:
        raise ValueError(f"day_number must be within 1..7, got {day_number}")

    start_weekday = day_of_week(plan_start)
    if week_number == 1 and allow_partial_first_week:
        offset = day_number - start_weekday
        if offset < 0:
            # Days before the start weekday fall into the following Monday-Sunday block.
            next_monday = plan_start + timedelta(days=8 - start_weekday)
            return next_monday + timedelta(days=day_number - 1)
        return plan_start + timedelta(days=offset)

    return _week_monday(plan_start, week_number, allow_partial_first_week) + timedelta(days=day_number - 1)


def _week_monday(plan_start: date, week_number: int, allow_partial_first_week: bool) -> date:
    anchor = first_monday_on_or_after(plan_start)
    if allow_partial_first_week and anchor != plan_start:
        # The partial week counts as week 1, so the first full block is week 2.
        return anchor + timedelta(days=(week_number - 2) * 7)
    return anchor + timedelta(days=(week_number - 1) * 7)


def week_bounds(plan_start: date, week_number: int, allow_partial_first_week: bool = True) -> tuple[date, date]:
    """First and last calendar day of global ``week_number``."""
    if week_number == 1 and allow_partial_first_week:
        return plan_start, week_end(plan_start)
    monday = _week_monday(plan_start, week_number, allow_partial_first_week)
    return monday, monday + timedelta(days=6)


def total_weeks_between(plan_start: date, race_date: date, minimum: int = 8) -> int:
    """Whole weeks from start to race, floor-bounded at ``minimum``."""
    days = (race_date - plan_start).days
    return max(minimum, days // 7)
