from datetime import date

import pytest

from core.services.calendar import (
    date_for_coordinate,
    day_name,
    day_of_week,
    days_in_first_week,
    first_monday_on_or_after,
    first_week_day_numbers,
    total_weeks_between,
    week_bounds,
    week_end,
    week_start,
)

MONDAY = date(2026, 1, 5)
WEDNESDAY = date(2026, 1, 7)


def test_day_of_week_is_monday_based():
    assert day_of_week(MONDAY) == 1
    assert day_of_week(WEDNESDAY) == 3
    assert day_of_week(date(2026, 1, 11)) == 7


def test_day_name():
    assert day_name(1) == "Monday"
    assert day_name(7) == "Sunday"
    assert day_name(9) == "Unknown"


def test_week_start_and_end():
    assert week_start(WEDNESDAY) == MONDAY
    assert week_end(WEDNESDAY) == date(2026, 1, 11)
    assert week_end(date(2026, 1, 11)) == date(2026, 1, 11)


def test_first_monday_on_or_after():
    assert first_monday_on_or_after(MONDAY) == MONDAY
    assert first_monday_on_or_after(WEDNESDAY) == date(2026, 1, 12)


def test_first_week_day_numbers_mid_week_start():
    assert first_week_day_numbers(WEDNESDAY) == [3, 4, 5, 6, 7]
    assert days_in_first_week(WEDNESDAY) == 5


def test_first_week_day_numbers_monday_start():
    assert first_week_day_numbers(MONDAY) == [1, 2, 3, 4, 5, 6, 7]
    assert days_in_first_week(MONDAY) == 7


def test_partial_first_week_dates():
    assert date_for_coordinate(WEDNESDAY, 1, 3, allow_partial_first_week=True) == WEDNESDAY
    assert date_for_coordinate(WEDNESDAY, 1, 7, allow_partial_first_week=True) == date(2026, 1, 11)


def test_later_weeks_anchor_on_first_monday_after_partial_week():
    assert date_for_coordinate(WEDNESDAY, 2, 1, allow_partial_first_week=True) == date(2026, 1, 12)
    assert date_for_coordinate(WEDNESDAY, 3, 7, allow_partial_first_week=True) == date(2026, 1, 25)


def test_without_partial_week_week_one_is_first_full_week():
    assert date_for_coordinate(WEDNESDAY, 1, 1) == date(2026, 1, 12)
    assert date_for_coordinate(WEDNESDAY, 2, 1) == date(2026, 1, 19)


def test_monday_start_is_identical_in_both_modes():
    for week in (1, 2, 5):
        for dow in (1, 4, 7):
            assert date_for_coordinate(MONDAY, week, dow, True) == date_for_coordinate(MONDAY, week, dow, False)
    assert date_for_coordinate(MONDAY, 2, 1) == date(2026, 1, 12)


def test_derived_day_of_week_matches_coordinate():
    for week in (1, 2, 3):
        for dow in range(3 if week == 1 else 1, 8):
            assert day_of_week(date_for_coordinate(WEDNESDAY, week, dow, True)) == dow


@pytest.mark.parametrize("week,dow", [(0, 1), (1, 0), (1, 8)])
def test_date_for_coordinate_rejects_out_of_range(week, dow):
    with pytest.raises(ValueError):
        date_for_coordinate(WEDNESDAY, week, dow)


def test_week_bounds():
    assert week_bounds(WEDNESDAY, 1) == (WEDNESDAY, date(2026, 1, 11))
    assert week_bounds(WEDNESDAY, 2) == (date(2026, 1, 12), date(2026, 1, 18))
    assert week_bounds(MONDAY, 1) == (MONDAY, date(2026, 1, 11))


def test_total_weeks_between_has_floor():
    assert total_weeks_between(WEDNESDAY, date(2026, 4, 29)) == 16
    assert total_weeks_between(WEDNESDAY, date(2026, 2, 1)) == 8
    assert total_weeks_between(WEDNESDAY, date(2026, 2, 1), minimum=2) == 3


def test_monday_of_partial_first_week_rolls_to_week_two():
    # Day 1 of a week that starts on a Wednesday has already passed.
    assert date_for_coordinate(WEDNESDAY, 1, 1, True) == date(2026, 1, 12)
