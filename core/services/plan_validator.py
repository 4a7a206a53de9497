"""Structural gate for generated training plans.

Generated JSON is untrusted. Nothing reaches the data model until it has been
turned into the frozen ``ValidatedPlan`` / ``WeekSpec`` types below.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Optional

from core.errors import SchemaViolation
from core.services.calendar import first_week_day_numbers
from core.services.pace import is_pace_string
from core.services.phases import PHASE_ORDER, ensure_order

LAP_SECTIONS = ("warmup", "workout", "cooldown")

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


@dataclass(frozen=True)
class LapSpec:
    lap_index: int
    distance_miles: float
    pace_goal: Optional[str] = None
    hr_goal: Optional[str] = None

    def as_record(self) -> dict[str, Any]:
        return {
            "lap_index": self.lap_index,
            "distance_miles": self.distance_miles,
            "pace_goal": self.pace_goal,
            "hr_goal": self.hr_goal,
        }

    def as_payload(self) -> dict[str, Any]:
        return {
            "lapIndex": self.lap_index,
            "distanceMiles": self.distance_miles,
            "paceGoal": self.pace_goal,
            "hrGoal": self.hr_goal,
        }


@dataclass(frozen=True)
class DaySpec:
    day_number: int
    warmup: tuple[LapSpec, ...]
    workout: tuple[LapSpec, ...]
    cooldown: tuple[LapSpec, ...]
    notes: Optional[str] = None

    @property
    def miles(self) -> float:
        return round(sum(lap.distance_miles for lap in self.warmup + self.workout + self.cooldown), 2)

    def as_payload(self) -> dict[str, Any]:
        return {
            "dayNumber": self.day_number,
            "warmup": [lap.as_payload() for lap in self.warmup],
            "workout": [lap.as_payload() for lap in self.workout],
            "cooldown": [lap.as_payload() for lap in self.cooldown],
            "notes": self.notes,
        }


@dataclass(frozen=True)
class WeekSpec:
    week_number: int
    days: tuple[DaySpec, ...]

    @property
    def miles(self) -> float:
        return round(sum(day.miles for day in self.days), 2)

    def as_payload(self) -> dict[str, Any]:
        return {"weekNumber": self.week_number, "days": [day.as_payload() for day in self.days]}


@dataclass(frozen=True)
class PhaseSpec:
    name: str
    week_count: int


@dataclass(frozen=True)
class ValidatedPlan:
    phases: tuple[PhaseSpec, ...]
    week: WeekSpec

    @property
    def total_weeks(self) -> int:
        return sum(p.week_count for p in self.phases)

    def as_payload(self) -> dict[str, Any]:
        return {
            "phases": [{"name": p.name, "weekCount": p.week_count} for p in self.phases],
            "week": self.week.as_payload(),
        }


def _type_name(value: Any) -> str:
    return "null" if value is None else type(value).__name__


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_generated_json(text: str) -> dict[str, Any]:
    """Extract the JSON object from a model response.

    Markdown fences are stripped, the outermost ``{...}`` is isolated and
    trailing commas before a closing bracket are removed.
    """
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", (text or "").strip()))
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end < start:
        raise SchemaViolation("response", "JSON object", cleaned[:80], "Response did not contain a JSON object")
    body = _TRAILING_COMMA.sub(r"\1", cleaned[start : end + 1])
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise SchemaViolation("response", "valid JSON", str(exc), f"Response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SchemaViolation("response", "JSON object", _type_name(data))
    return data


def _valid_pace_goal(value: str) -> bool:
    parts = [p.strip() for p in value.split("-")]
    return 1 <= len(parts) <= 2 and all(is_pace_string(p) for p in parts)


def _lap_specs(raw: Any, field: str) -> tuple[LapSpec, ...]:
    if not isinstance(raw, list):
        raise SchemaViolation(field, "list", _type_name(raw))
    laps: list[LapSpec] = []
    for position, lap in enumerate(raw, start=1):
        lap_field = f"{field}[{position - 1}]"
        if not isinstance(lap, Mapping):
            raise SchemaViolation(lap_field, "object", _type_name(lap))

        index = lap.get("lapIndex")
        if not _is_int(index) or index != position:
            raise SchemaViolation(f"{lap_field}.lapIndex", position, index)

        distance = lap.get("distanceMiles")
        if not _is_number(distance) or distance <= 0:
            raise SchemaViolation(f"{lap_field}.distanceMiles", "positive number", distance)

        pace_goal = lap.get("paceGoal")
        if pace_goal in (None, ""):
            pace_goal = None
        elif not isinstance(pace_goal, str) or not _valid_pace_goal(pace_goal):
            raise SchemaViolation(f"{lap_field}.paceGoal", "M:SS", pace_goal)

        hr_goal = lap.get("hrGoal")
        hr_goal = None if hr_goal in (None, "") else str(hr_goal)

        laps.append(LapSpec(lap_index=index, distance_miles=float(distance), pace_goal=pace_goal, hr_goal=hr_goal))
    return tuple(laps)


def _day_spec(raw: Mapping[str, Any], number: int, field: str) -> DaySpec:
    for section in LAP_SECTIONS:
        if section not in raw:
            raise SchemaViolation(f"{field}.{section}", "list", "missing")
    notes = raw.get("notes")
    return DaySpec(
        day_number=number,
        warmup=_lap_specs(raw["warmup"], f"{field}.warmup"),
        workout=_lap_specs(raw["workout"], f"{field}.workout"),
        cooldown=_lap_specs(raw["cooldown"], f"{field}.cooldown"),
        notes=None if notes is None else str(notes),
    )


def _day_numbers(raw_days: list[Any], field: str) -> list[int]:
    numbers: list[int] = []
    for i, raw in enumerate(raw_days):
        day_field = f"{field}.days[{i}]"
        if not isinstance(raw, Mapping):
            raise SchemaViolation(day_field, "object", _type_name(raw))
        number = raw.get("dayNumber")
        if not _is_int(number) or not 1 <= number <= 7:
            raise SchemaViolation(f"{day_field}.dayNumber", "integer 1-7", number)
        numbers.append(number)
    if len(set(numbers)) != len(numbers):
        raise SchemaViolation(f"{field}.days.dayNumber", "unique day numbers", numbers)
    return numbers


def _week_spec(
    raw: Mapping[str, Any],
    week_number: int,
    field: str,
    expected_days: Optional[list[int]] = None,
) -> WeekSpec:
    """Build a week; day count and day set are checked before any lap."""
    actual = raw.get("weekNumber")
    if actual != week_number or not _is_int(actual):
        raise SchemaViolation(f"{field}.weekNumber", week_number, actual)
    raw_days = raw.get("days")
    if not isinstance(raw_days, list):
        raise SchemaViolation(f"{field}.days", "list", _type_name(raw_days))

    numbers = _day_numbers(raw_days, field)
    if expected_days is not None:
        if len(numbers) != len(expected_days):
            raise SchemaViolation(
                f"{field}.days",
                len(expected_days),
                len(numbers),
                f"Week {week_number} must contain exactly {len(expected_days)} days "
                f"(day {expected_days[0]} to {expected_days[-1]})",
            )
        if sorted(numbers) != expected_days:
            raise SchemaViolation(f"{field}.days.dayNumber", expected_days, sorted(numbers))

    days = tuple(_day_spec(day, n, f"{field}.days[{i}]") for i, (day, n) in enumerate(zip(raw_days, numbers)))
    return WeekSpec(week_number=week_number, days=tuple(sorted(days, key=lambda d: d.day_number)))


def _phase_spec(raw: Any, position: int) -> PhaseSpec:
    field = f"phases[{position}]"
    if not isinstance(raw, Mapping):
        raise SchemaViolation(field, "object", _type_name(raw))
    name = raw.get("name")
    if name not in PHASE_ORDER:
        raise SchemaViolation(f"{field}.name", list(PHASE_ORDER), name)
    count = raw.get("weekCount", raw.get("week_count"))
    if not _is_int(count) or count < 1:
        raise SchemaViolation(f"{field}.weekCount", "positive integer", count)
    return PhaseSpec(name=name, week_count=count)


def _salvage_first_week(raw_phases: list[Any]) -> Optional[Mapping[str, Any]]:
    for raw in raw_phases:
        embedded = raw.get("weeks") if isinstance(raw, Mapping) else None
        if not isinstance(embedded, list):
            continue
        for week in embedded:
            if isinstance(week, Mapping) and week.get("weekNumber") == 1:
                return week
    return None


def _single_week(candidate: Mapping[str, Any], salvaged: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    week = candidate.get("week")
    if week is None:
        weeks = candidate.get("weeks")
        if isinstance(weeks, list):
            if len(weeks) != 1:
                raise SchemaViolation("weeks", 1, len(weeks), f"Expected exactly one week, got {len(weeks)}")
            week = weeks[0]
        else:
            week = salvaged
    if not isinstance(week, Mapping):
        raise SchemaViolation("week", "object", _type_name(week))
    return week


def validate_plan_structure(
    candidate: Any,
    plan_start: date,
    total_weeks: Optional[int] = None,
) -> ValidatedPlan:
    """Validate a generated plan (phases plus week 1) against ``plan_start``.

    Checks run in order and the first failure raises ``SchemaViolation``
    (``OrderError`` for phase ordering).
    """
    if not isinstance(candidate, Mapping):
        raise SchemaViolation("plan", "object", _type_name(candidate))

    raw_phases = candidate.get("phases")
    if not isinstance(raw_phases, list) or not raw_phases:
        raise SchemaViolation("phases", "non-empty list", _type_name(raw_phases))
    salvaged = _salvage_first_week(raw_phases)
    phases = tuple(_phase_spec(raw, i) for i, raw in enumerate(raw_phases))

    ensure_order(phases)

    if total_weeks is not None:
        declared = sum(p.week_count for p in phases)
        if declared != total_weeks:
            raise SchemaViolation(
                "phases.weekCount",
                total_weeks,
                declared,
                f"Phase week counts sum to {declared}, plan has {total_weeks} weeks",
            )

    week = _week_spec(_single_week(candidate, salvaged), 1, "week", first_week_day_numbers(plan_start))

    return ValidatedPlan(phases=phases, week=week)


def validate_week_structure(candidate: Any, week_number: int) -> WeekSpec:
    """Validate a single generated week (2..N)."""
    if isinstance(candidate, Mapping) and isinstance(candidate.get("week"), Mapping):
        candidate = candidate["week"]
    if not isinstance(candidate, Mapping):
        raise SchemaViolation("week", "object", _type_name(candidate))
    week = _week_spec(candidate, week_number, "week")
    if not week.days:
        raise SchemaViolation("week.days", "at least one day", 0)
    return week
