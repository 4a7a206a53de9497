"""Pace arithmetic for per-mile training paces.

Paces are stored as whole or fractional seconds per mile and displayed as
``M:SS``. Race goal times are parsed according to the race's distance class:
half marathon and longer read a two-part value as ``H:MM``, shorter races
read it as ``MM:SS``.
"""

from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Union

from core.config import DEFAULT_RACE_PACE_OFFSETS
from core.errors import FormatError

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34
LONG_RACE_MIN_MILES = 13.0

RACE_MILES: dict[str, float] = {
    "5k": 3.1,
    "10k": 6.2,
    "10m": 10.0,
    "half": 13.1,
    "marathon": 26.2,
}

_RACE_TYPE_ALIASES: dict[str, str] = {
    "5k": "5k",
    "5km": "5k",
    "10k": "10k",
    "10km": "10k",
    "10m": "10m",
    "10 mile": "10m",
    "10-mile": "10m",
    "10mi": "10m",
    "half": "half",
    "half marathon": "half",
    "13.1": "half",
    "marathon": "marathon",
    "26.2": "marathon",
}

MIN_GOAL_SECONDS = 60
MAX_GOAL_SECONDS = 86400
_USUAL_PACE_RANGE = (180, 1200)


def normalize_race_type(race_type: str) -> str:
    key = str(race_type or "").strip().lower()
    normalized = _RACE_TYPE_ALIASES.get(key)
    if normalized is None:
        raise FormatError(
            f"Unknown race type: {race_type!r}. Supported: {', '.join(RACE_MILES)}",
            field="race_type",
            value=race_type,
        )
    return normalized


def race_miles(race_type: str) -> float:
    return RACE_MILES[normalize_race_type(race_type)]


def seconds_to_pace_string(seconds: float) -> str:
    """Format seconds per mile as ``M:SS`` (fractional seconds are floored)."""
    if seconds is None or seconds < 0 or math.isnan(seconds):
        raise FormatError(f"Pace must be a non-negative number of seconds, got {seconds!r}", field="pace", value=seconds)
    total = int(math.floor(seconds))
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def rounded_pace_string(seconds: float) -> str:
    """Display a fractional reference pace to the nearest whole second."""
    return seconds_to_pace_string(math.floor(seconds + 0.5))


def pace_string_to_seconds(pace: str) -> int:
    """Parse an ``M:SS`` pace string into seconds per mile."""
    text = str(pace or "").strip()
    parts = text.split(":")
    if len(parts) != 2 or not all(p.strip().isdigit() for p in parts):
        raise FormatError(f"Invalid pace format: {pace!r}. Expected M:SS.", field="pace", value=pace)
    minutes, seconds = (int(p) for p in parts)
    if seconds >= 60:
        raise FormatError(f"Invalid pace format: {pace!r}. Seconds must be less than 60.", field="pace", value=pace)
    return minutes * 60 + seconds


def is_pace_string(value: object) -> bool:
    if not isinstance(value, str):
        return False
    try:
        pace_string_to_seconds(value)
    except FormatError:
        return False
    return True


def predicted_pace(
    reference_pace_seconds: float,
    race_type: str,
    offsets: Optional[Mapping[str, int]] = None,
) -> float:
    """Predict race pace from a 5k-equivalent pace using per-distance offsets."""
    table = offsets if offsets is not None else DEFAULT_RACE_PACE_OFFSETS
    return reference_pace_seconds + table.get(normalize_race_type(race_type), 0)


def _goal_time_seconds(goal_time: str, miles: float) -> int:
    text = str(goal_time or "").strip()
    if not text:
        raise FormatError("Goal time is required", field="goal_time", value=goal_time)
    parts = text.split(":")
    if not all(p.strip().isdigit() for p in parts):
        raise FormatError(
            f"Invalid goal time format: {goal_time!r}. All parts must be numbers.", field="goal_time", value=goal_time
        )
    values = [int(p) for p in parts]

    if len(values) == 3:
        hours, minutes, seconds = values
        if minutes >= 60 or seconds >= 60:
            raise FormatError(
                f"Invalid goal time {goal_time!r}: minutes and seconds must be less than 60.",
                field="goal_time",
                value=goal_time,
            )
        return hours * 3600 + minutes * 60 + seconds

    if len(values) == 2:
        first, second = values
        if second >= 60:
            raise FormatError(
                f"Invalid goal time {goal_time!r}: second part must be less than 60.", field="goal_time", value=goal_time
            )
        if miles >= LONG_RACE_MIN_MILES:
            return first * 3600 + second * 60
        if first >= 60:
            logger.warning(
                "ambiguous_goal_time_rejected",
                extra={"goal_time": goal_time, "race_miles": miles},
            )
            raise FormatError(
                f"Goal time {goal_time!r} is ambiguous for a {miles} mile race. Use HH:MM:SS.",
                field="goal_time",
                value=goal_time,
            )
        return first * 60 + second

    raise FormatError(
        f"Invalid goal time format: {goal_time!r}. Expected HH:MM:SS, or H:MM for half marathon and longer, "
        "or MM:SS for shorter races.",
        field="goal_time",
        value=goal_time,
    )


def goal_pace_per_mile(goal_time: str, race: Union[str, float, int]) -> float:
    """Seconds per mile needed to finish ``race`` in ``goal_time``.

    ``race`` is either a race type (``"marathon"``) or a distance in miles.
    """
    miles = float(race) if isinstance(race, (int, float)) else race_miles(race)
    if miles <= 0:
        raise FormatError(f"Race distance must be positive, got {miles}", field="race_miles", value=miles)

    total_seconds = _goal_time_seconds(goal_time, miles)
    if total_seconds < MIN_GOAL_SECONDS:
        raise FormatError(f"Goal time {goal_time!r} is too short. Minimum is 1 minute.", field="goal_time", value=goal_time)
    if total_seconds > MAX_GOAL_SECONDS:
        raise FormatError(f"Goal time {goal_time!r} is too long. Maximum is 24 hours.", field="goal_time", value=goal_time)

    pace = total_seconds / miles
    if not _USUAL_PACE_RANGE[0] <= pace <= _USUAL_PACE_RANGE[1]:
        logger.warning("unusual_goal_pace", extra={"goal_time": goal_time, "race_miles": miles, "pace_sec": round(pace, 1)})
    return pace


def mps_to_pace_seconds(mps: float) -> Optional[float]:
    """Convert metres per second into seconds per mile."""
    if not mps or mps <= 0:
        return None
    return METERS_PER_MILE / mps


def meters_to_miles(meters: Optional[float]) -> float:
    if not meters:
        return 0.0
    return meters / METERS_PER_MILE


def format_pace(pace: Optional[str]) -> str:
    if not pace:
        return "N/A"
    return f"{pace} /mi"
