from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence, Union

from core.errors import OrderError, PrerequisiteError
from core.services.calendar import week_bounds

PHASE_ORDER: tuple[str, ...] = ("base", "build", "peak", "taper")

# Taper absorbs whatever is left after the floored shares.
PHASE_SHARES: dict[str, float] = {"base": 0.25, "build": 0.35, "peak": 0.20}


@dataclass(frozen=True)
class PhaseAllocation:
    name: str
    week_count: int


@dataclass(frozen=True)
class PhaseSpan:
    name: str
    week_count: int
    start_date: date
    end_date: date


PhaseLike = Union[PhaseAllocation, PhaseSpan, Mapping[str, object]]


def _name(phase: PhaseLike) -> str:
    if isinstance(phase, Mapping):
        return str(phase.get("name", ""))
    return phase.name


def _week_count(phase: PhaseLike) -> int:
    if isinstance(phase, Mapping):
        return int(phase.get("week_count", phase.get("weekCount", 0)) or 0)
    return int(phase.week_count)


def split_weeks(total_weeks: int) -> list[PhaseAllocation]:
    if total_weeks < len(PHASE_ORDER):
        raise ValueError(f"total_weeks must be at least {len(PHASE_ORDER)}, got {total_weeks}")
    counts = {name: max(1, int(total_weeks * share)) for name, share in PHASE_SHARES.items()}
    counts["taper"] = total_weeks - sum(counts.values())
    return [PhaseAllocation(name=name, week_count=counts[name]) for name in PHASE_ORDER]


def phase_target_miles(weekly_mileage: Optional[float], week_count: int) -> Optional[float]:
    """Phase mileage target at the athlete's current weekly volume."""
    if weekly_mileage is None:
        return None
    return round(float(weekly_mileage) * week_count, 1)


def validate_order(phases: Iterable[PhaseLike]) -> bool:
    return tuple(_name(p) for p in phases) == PHASE_ORDER


def ensure_order(phases: Sequence[PhaseLike]) -> None:
    names = [_name(p) for p in phases]
    if tuple(names) != PHASE_ORDER:
        raise OrderError("phases", list(PHASE_ORDER), names)


def sort_phases(phases: Iterable[PhaseLike]) -> list[PhaseLike]:
    def index(phase: PhaseLike) -> int:
        try:
            return PHASE_ORDER.index(_name(phase))
        except ValueError as exc:
            raise OrderError("phases.name", list(PHASE_ORDER), _name(phase)) from exc

    return sorted(phases, key=index)


def phase_date_spans(
    plan_start: date,
    phases: Sequence[PhaseLike],
    allow_partial_first_week: bool = True,
) -> list[PhaseSpan]:
    """Absolute date span of each phase.

    Spans follow the calendar weeks produced by ``week_bounds``: a phase ends
    on the Sunday closing its last week and the next phase starts the Monday
    after. With a partial first week the first phase starts on the plan start
    itself; otherwise it starts on the first Monday on/after the plan start.
    """
    spans: list[PhaseSpan] = []
    next_week = 1
    for phase in phases:
        count = _week_count(phase)
        if count < 1:
            raise ValueError(f"Phase {_name(phase)!r} must span at least one week")
        start, _ = week_bounds(plan_start, next_week, allow_partial_first_week)
        _, end = week_bounds(plan_start, next_week + count - 1, allow_partial_first_week)
        spans.append(PhaseSpan(name=_name(phase), week_count=count, start_date=start, end_date=end))
        next_week += count
    return spans


def phase_for_week(phases: Sequence[PhaseLike], week_number: int) -> PhaseLike:
    """Return the phase containing global ``week_number``."""
    first_week = 1
    for phase in phases:
        last_week = first_week + _week_count(phase) - 1
        if first_week <= week_number <= last_week:
            return phase
        first_week = last_week + 1
    raise PrerequisiteError(
        f"Week {week_number} is beyond the plan's {first_week - 1} weeks",
        missing=[f"phase for week {week_number}"],
    )
