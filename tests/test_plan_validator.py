import copy
from datetime import date

import pytest

from conftest import PLAN_START, day, lap, plan_json, week_json
from core.errors import OrderError, SchemaViolation
from core.services.plan_validator import (
    parse_generated_json,
    validate_plan_structure,
    validate_week_structure,
)

MONDAY = date(2026, 1, 5)


def test_valid_plan_round_trips_to_payload():
    validated = validate_plan_structure(plan_json(), PLAN_START, 16)
    assert validated.total_weeks == 16
    assert [p.name for p in validated.phases] == ["base", "build", "peak", "taper"]
    assert [d.day_number for d in validated.week.days] == [3, 4, 5, 6, 7]
    assert validated.week.miles == 20.0
    assert validated.as_payload()["week"]["days"][0]["workout"][0]["paceGoal"] == "8:00"


def test_phases_out_of_order():
    candidate = plan_json()
    candidate["phases"][1], candidate["phases"][2] = candidate["phases"][2], candidate["phases"][1]
    with pytest.raises(OrderError):
        validate_plan_structure(candidate, PLAN_START, 16)


def test_missing_phase_is_order_error():
    candidate = plan_json()
    candidate["phases"] = candidate["phases"][:3]
    with pytest.raises(OrderError):
        validate_plan_structure(candidate, PLAN_START)


def test_unknown_phase_name():
    candidate = plan_json()
    candidate["phases"][1]["name"] = "speed"
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "phases[1].name"


def test_phase_week_count_must_be_positive_int():
    candidate = plan_json()
    candidate["phases"][0]["weekCount"] = "4"
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "phases[0].weekCount"


def test_phase_weeks_must_sum_to_total():
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(plan_json(counts=(4, 6, 3, 2)), PLAN_START, 16)
    assert exc.value.field == "phases.weekCount"
    assert exc.value.expected == 16
    assert exc.value.actual == 15


def test_week_one_day_count_must_match_start():
    # A Monday start needs all seven days.
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(plan_json(start=PLAN_START), MONDAY, 16)
    assert exc.value.field == "week.days"
    assert exc.value.expected == 7
    assert exc.value.actual == 5


def test_week_one_day_numbers_must_match_start():
    candidate = plan_json()
    candidate["week"] = week_json(1, [1, 2, 3, 4, 5])
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.days.dayNumber"
    assert exc.value.expected == [3, 4, 5, 6, 7]


def test_week_one_must_be_numbered_one():
    candidate = plan_json()
    candidate["week"]["weekNumber"] = 2
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.weekNumber"


def test_days_are_sorted_by_day_number():
    candidate = plan_json()
    candidate["week"]["days"].reverse()
    validated = validate_plan_structure(candidate, PLAN_START, 16)
    assert [d.day_number for d in validated.week.days] == [3, 4, 5, 6, 7]


def test_duplicate_day_numbers():
    candidate = plan_json()
    candidate["week"]["days"][1]["dayNumber"] = 3
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.days.dayNumber"


def test_lap_index_must_be_sequential():
    candidate = plan_json()
    candidate["week"]["days"][0]["workout"] = [lap(1), lap(3)]
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.days[0].workout[1].lapIndex"
    assert exc.value.expected == 2


def test_lap_distance_must_be_positive():
    candidate = plan_json()
    candidate["week"]["days"][2]["workout"] = [lap(1, miles=0)]
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.days[2].workout[0].distanceMiles"


def test_lap_pace_goal_formats():
    candidate = plan_json()
    candidate["week"]["days"][0]["workout"] = [lap(1, pace="7:30-7:45"), lap(2, pace=None), lap(3, pace="")]
    validated = validate_plan_structure(candidate, PLAN_START, 16)
    paces = [item.pace_goal for item in validated.week.days[0].workout]
    assert paces == ["7:30-7:45", None, None]

    candidate["week"]["days"][0]["workout"] = [lap(1, pace="fast")]
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.days[0].workout[0].paceGoal"


def test_numeric_hr_goal_is_kept_as_text():
    candidate = plan_json()
    candidate["week"]["days"][0]["workout"] = [lap(1, hr=150)]
    validated = validate_plan_structure(candidate, PLAN_START, 16)
    assert validated.week.days[0].workout[0].hr_goal == "150"


def test_missing_lap_section():
    candidate = plan_json()
    del candidate["week"]["days"][0]["cooldown"]
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.days[0].cooldown"
    assert exc.value.actual == "missing"


def test_weeks_list_must_hold_exactly_one_week():
    candidate = plan_json()
    week = candidate.pop("week")
    candidate["weeks"] = [week]
    assert validate_plan_structure(candidate, PLAN_START, 16).week.week_number == 1

    candidate["weeks"] = [week, copy.deepcopy(week)]
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "weeks"


def test_week_embedded_in_phase_is_salvaged():
    candidate = plan_json()
    candidate["phases"][0]["weeks"] = [candidate.pop("week")]
    validated = validate_plan_structure(candidate, PLAN_START, 16)
    assert len(validated.week.days) == 5
    assert "weeks" not in validated.as_payload()["phases"][0]


def test_missing_week():
    candidate = plan_json()
    del candidate["week"]
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week"


def test_plan_must_be_object():
    with pytest.raises(SchemaViolation):
        validate_plan_structure([], PLAN_START)
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure({"phases": []}, PLAN_START)
    assert exc.value.field == "phases"


def test_parse_generated_json_strips_fences_and_trailing_commas():
    text = '```json\n{"phases": [{"name": "base", "weekCount": 4},], "week": {"weekNumber": 1,}}\n```'
    data = parse_generated_json(text)
    assert data["phases"][0]["name"] == "base"
    assert data["week"] == {"weekNumber": 1}


def test_parse_generated_json_ignores_surrounding_prose():
    assert parse_generated_json('Here is your plan: {"a": 1} Good luck!') == {"a": 1}


@pytest.mark.parametrize("text", ["", "no json here", "{not: valid}"])
def test_parse_generated_json_rejects_non_json(text):
    with pytest.raises(SchemaViolation) as exc:
        parse_generated_json(text)
    assert exc.value.field == "response"


def test_validate_week_structure_accepts_wrapper():
    spec = validate_week_structure({"week": week_json(2, [1, 3, 5])}, 2)
    assert spec.week_number == 2
    assert [d.day_number for d in spec.days] == [1, 3, 5]
    assert spec.miles == 12.0


def test_validate_week_structure_number_mismatch():
    with pytest.raises(SchemaViolation) as exc:
        validate_week_structure(week_json(3, [1]), 2)
    assert exc.value.field == "week.weekNumber"


def test_validate_week_structure_needs_days():
    with pytest.raises(SchemaViolation) as exc:
        validate_week_structure({"weekNumber": 2, "days": []}, 2)
    assert exc.value.field == "week.days"


def test_validate_week_structure_checks_laps():
    bad_day = day(1)
    bad_day["warmup"] = [{"lapIndex": 1, "distanceMiles": -1}]
    with pytest.raises(SchemaViolation) as exc:
        validate_week_structure({"weekNumber": 2, "days": [bad_day]}, 2)
    assert exc.value.field == "week.days[0].warmup[0].distanceMiles"


def test_full_week_for_mid_week_start_is_day_count_violation():
    candidate = plan_json()
    candidate["week"] = week_json(1, [1, 2, 3, 4, 5, 6, 7])
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.days"
    assert exc.value.expected == 5
    assert exc.value.actual == 7


def test_day_count_is_checked_before_laps():
    candidate = plan_json()
    candidate["week"] = week_json(1, [1, 2, 3, 4, 5, 6, 7])
    candidate["week"]["days"][0]["workout"] = [lap(2)]
    with pytest.raises(SchemaViolation) as exc:
        validate_plan_structure(candidate, PLAN_START, 16)
    assert exc.value.field == "week.days"
