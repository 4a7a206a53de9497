"""Score an executed workout against its planned day and adapt the reference pace."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from statistics import mean
from typing import Any, Iterable, Mapping, Optional

from core.services.pace import mps_to_pace_seconds, meters_to_miles, pace_string_to_seconds

DEFAULT_PLANNED_PACE = "8:00"
DEFAULT_WEEK_TREND = 75.0
QUALITY_WEIGHT = 0.8
TREND_WEIGHT = 0.2
# Seconds per mile gained at a perfect quality score.
MAX_IMPROVEMENT_SECONDS = 0.8
MAX_IMPROVEMENT_SHARE = 0.10

_HR_RANGE = re.compile(r"^\s*(\d{2,3})\s*-\s*(\d{2,3})\s*$")


@dataclass(frozen=True)
class PlannedTargets:
    target_pace: Optional[str]
    hr_range: Optional[str]
    mileage: float

    def as_snapshot(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WorkoutScore:
    pace_variance: float
    hr_zone_hit_percent: float
    mileage_variance: float
    workout_quality_score: float
    week_trend_score: float
    overall_score: float

    def as_dict(self) -> dict[str, float]:
        return {k: round(v, 4) for k, v in asdict(self).items()}


def _lap_value(lap: Mapping[str, Any], snake: str, camel: str) -> Any:
    return lap.get(snake, lap.get(camel))


def _section(day: Any, name: str) -> list[Mapping[str, Any]]:
    laps = day.get(name) if isinstance(day, Mapping) else getattr(day, name, None)
    return [lap for lap in (laps or []) if isinstance(lap, Mapping)]


def parse_hr_range(value: Optional[str]) -> Optional[tuple[int, int]]:
    """``"140-150"`` -> ``(140, 150)``. Zone labels such as ``"Z2"`` have no numeric range."""
    if not value:
        return None
    match = _HR_RANGE.match(str(value))
    if not match:
        return None
    low, high = int(match.group(1)), int(match.group(2))
    return (low, high) if low <= high else (high, low)


def planned_targets(day: Any) -> PlannedTargets:
    """Targets for scoring, taken from a planned day's laps.

    Pace comes from the first lap carrying a pace goal, searching the main
    workout before warm-up and cool-down.
    """
    sections = {name: _section(day, name) for name in ("warmup", "workout", "cooldown")}

    paces = [
        _lap_value(lap, "pace_goal", "paceGoal")
        for name in ("workout", "warmup", "cooldown")
        for lap in sections[name]
    ]
    target_pace = next((p for p in paces if p), None)

    hr_range = None
    for lap in sections["workout"] + sections["warmup"] + sections["cooldown"]:
        candidate = _lap_value(lap, "hr_goal", "hrGoal")
        if parse_hr_range(candidate):
            hr_range = str(candidate).replace(" ", "")
            break

    mileage = sum(
        float(_lap_value(lap, "distance_miles", "distanceMiles") or 0)
        for laps in sections.values()
        for lap in laps
    )
    return PlannedTargets(target_pace=target_pace, hr_range=hr_range, mileage=round(mileage, 2))


def planned_pace_seconds(planned: Mapping[str, Any]) -> float:
    pace = planned.get("target_pace") or planned.get("pace_range") or DEFAULT_PLANNED_PACE
    return float(pace_string_to_seconds(str(pace).split("-")[0].strip()))


def pace_variance(planned_seconds: float, actual_seconds: Optional[float]) -> float:
    if actual_seconds is None or planned_seconds <= 0:
        return 0.0
    return abs(actual_seconds - planned_seconds) / planned_seconds


def hr_hit_percent(hr_range: Optional[str], average_hr: Optional[float]) -> float:
    bounds = parse_hr_range(hr_range)
    if bounds is None or not average_hr:
        return 0.0
    low, high = bounds
    if low <= average_hr <= high:
        return 100.0
    half_width = (high - low) / 2
    if half_width <= 0:
        return 0.0
    distance = min(abs(average_hr - low), abs(average_hr - high))
    return max(0.0, 100.0 - (distance / half_width) * 100.0)


def mileage_variance(planned_miles: float, actual_miles: float) -> float:
    if not planned_miles or planned_miles <= 0:
        return 0.0
    return abs(actual_miles - planned_miles) / planned_miles


def quality_score(pace_var: float, hr_percent: float, mileage_var: float) -> float:
    return mean([max(0.0, 100.0 - pace_var * 100.0), hr_percent, max(0.0, 100.0 - mileage_var * 100.0)])


def week_trend_score(other_quality_scores: Iterable[float]) -> float:
    scores = [float(s) for s in other_quality_scores if s is not None]
    return mean(scores) if scores else DEFAULT_WEEK_TREND


def compute_score(
    planned: Mapping[str, Any],
    *,
    average_speed: Optional[float],
    average_heart_rate: Optional[float],
    distance_m: Optional[float],
    week_trend: Optional[float] = None,
) -> WorkoutScore:
    """Composite score for one executed workout.

    ``planned`` is a ``PlannedTargets`` snapshot. Without a recorded speed the
    actual pace is taken to equal the planned pace.
    """
    planned_seconds = planned_pace_seconds(planned)
    actual_seconds = mps_to_pace_seconds(average_speed or 0) or planned_seconds

    pv = pace_variance(planned_seconds, actual_seconds)
    hr = hr_hit_percent(planned.get("hr_range"), average_heart_rate)
    mv = mileage_variance(float(planned.get("mileage") or 0), meters_to_miles(distance_m))
    quality = quality_score(pv, hr, mv)
    trend = DEFAULT_WEEK_TREND if week_trend is None else float(week_trend)

    return WorkoutScore(
        pace_variance=pv,
        hr_zone_hit_percent=hr,
        mileage_variance=mv,
        workout_quality_score=quality,
        week_trend_score=trend,
        overall_score=QUALITY_WEIGHT * quality + TREND_WEIGHT * trend,
    )


def adapt_reference_pace(current_seconds: float, quality: float) -> float:
    """Nudge the reference pace faster in proportion to workout quality.

    A single update never improves the pace by more than 10%.
    """
    quality = min(100.0, max(0.0, float(quality)))
    improvement = (quality / 100.0) * MAX_IMPROVEMENT_SECONDS
    return max(current_seconds - improvement, current_seconds * (1 - MAX_IMPROVEMENT_SHARE))
