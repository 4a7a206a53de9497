"""Assemble generation requests from stored prompt configuration.

The section layout is fixed here; only the section contents come from the
database. Placeholders use plain ``{key}`` substitution with no control flow.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from core.models import GenerationPrompt
from core.services.calendar import day_name, day_of_week, first_week_day_numbers
from core.services.pace import seconds_to_pace_string

logger = logging.getLogger(__name__)

JSON_REMINDER = "Please return your response as valid JSON."
SYSTEM_MESSAGE = "You are a running coach. Respond with a single JSON object and nothing else."


@dataclass(frozen=True)
class Instruction:
    title: str
    content: str


@dataclass(frozen=True)
class RuleTopic:
    name: str
    rules: tuple[str, ...] = ()


@dataclass
class PromptComponents:
    ai_role: Optional[str] = None
    instructions: list[Instruction] = field(default_factory=list)
    must_haves: Any = None
    rule_topics: list[RuleTopic] = field(default_factory=list)
    return_schema: Any = None
    return_example: Any = None

    @classmethod
    def from_prompt(cls, prompt: GenerationPrompt) -> "PromptComponents":
        return cls(
            ai_role=prompt.ai_role.content if prompt.ai_role else None,
            instructions=[Instruction(i.title or "", i.content or "") for i in prompt.instructions],
            must_haves=prompt.must_haves.fields if prompt.must_haves else None,
            rule_topics=[
                RuleTopic(name=t.name, rules=tuple(r.text for r in t.rules))
                for t in (prompt.rule_set.topics if prompt.rule_set else [])
            ],
            return_schema=prompt.return_format.schema_json if prompt.return_format else None,
            return_example=prompt.return_format.example_json if prompt.return_format else None,
        )


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    inputs: dict[str, str]
    system: Optional[str] = SYSTEM_MESSAGE


def _block(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2)


def assemble_template(components: PromptComponents) -> str:
    parts: list[str] = []
    if components.ai_role:
        parts.append(components.ai_role)

    if components.instructions:
        parts.append("## Instructions")
        for instruction in components.instructions:
            if instruction.title:
                parts.append(f"### {instruction.title}")
            if instruction.content:
                parts.append(instruction.content)

    if components.must_haves:
        parts.append("## Required Fields")
        parts.append(_block(components.must_haves))

    if components.rule_topics:
        parts.append("## Training Rules")
        for topic in components.rule_topics:
            parts.append(f"### {topic.name}")
            parts.extend(f"- {rule}" for rule in topic.rules)

    if components.return_schema:
        parts.append("## Return Format Schema")
        parts.append(_block(components.return_schema))

    if components.return_example:
        parts.append("## Example Output")
        parts.append(_block(components.return_example))

    return "\n\n".join(parts)


def _normalize(value: Any) -> str:
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        if all(isinstance(v, int) and not isinstance(v, bool) for v in value):
            return ", ".join(str(v) for v in value)
        return json.dumps(list(value))
    if isinstance(value, dict):
        return json.dumps(value)
    return str(value)


def interpolate(template: str, values: Mapping[str, Any]) -> str:
    """Replace each ``{key}``; placeholders without a value are left untouched."""
    text = template
    for key, value in values.items():
        if value is None:
            continue
        text = text.replace("{" + key + "}", _normalize(value))
    return text


def _pace_text(value: Union[str, float, int, None]) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, str):
        return value
    return seconds_to_pace_string(value)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _day_names(numbers: Iterable[int]) -> str:
    return ", ".join(day_name(n) for n in numbers)


def build_plan_inputs(
    *,
    race_name: str,
    race_type: str,
    goal_time: str,
    five_k_pace: Union[str, float, int],
    predicted_race_pace: Union[str, float, int, None],
    goal_race_pace: Union[str, float, int, None],
    weekly_mileage: float,
    total_weeks: int,
    plan_start: date,
    preferred_days: Sequence[int],
    today: Optional[date] = None,
) -> dict[str, str]:
    """Placeholder values for a full-plan request."""
    start_number = day_of_week(plan_start)
    week1_numbers = first_week_day_numbers(plan_start)
    week1_days = len(week1_numbers)
    days = sorted(int(d) for d in preferred_days)
    mileage = float(weekly_mileage or 0)
    return {
        "raceName": race_name,
        "raceType": race_type,
        "raceDistance": race_type,
        "goalTime": goal_time,
        "fiveKPace": _pace_text(five_k_pace),
        "predictedRacePace": _pace_text(predicted_race_pace),
        "goalRacePace": _pace_text(goal_race_pace),
        "currentWeeklyMileage": f"{mileage:g}",
        "totalWeeks": str(total_weeks),
        "planStartDate": plan_start.isoformat(),
        "planStartDayName": day_name(start_number),
        "planStartDayNumber": str(start_number),
        "preferredDays": _normalize(days),
        "preferredDayNames": _day_names(days),
        "week1DayCount": str(week1_days),
        "week1DayNumbers": _normalize(week1_numbers),
        "week1DayNames": _day_names(week1_numbers),
        "week1TargetMiles": str(_round_half_up(mileage * week1_days / 7)),
        "todayDate": (today or date.today()).isoformat(),
    }


def _finalize(template: str, inputs: dict[str, str]) -> GenerationRequest:
    text = interpolate(template, inputs)
    if "json" not in text.lower():
        text = f"{text}\n\n{JSON_REMINDER}"
    return GenerationRequest(prompt=text, inputs=inputs)


def build_plan_request(components: PromptComponents, inputs: Mapping[str, str]) -> GenerationRequest:
    request = _finalize(assemble_template(components), dict(inputs))
    logger.info(
        "plan_request_assembled",
        extra={
            "total_weeks": inputs.get("totalWeeks"),
            "plan_start": inputs.get("planStartDate"),
            "prompt_chars": len(request.prompt),
        },
    )
    return request


def build_week_request(
    components: PromptComponents,
    plan_inputs: Mapping[str, str],
    *,
    week_number: int,
    phase_name: str,
    previous_week_mileage: float,
    previous_execution: Optional[Mapping[str, Any]] = None,
) -> GenerationRequest:
    """Request for a single week 2..N, carrying last week's load and execution."""
    inputs = dict(plan_inputs)
    execution = previous_execution or {}
    inputs.update(
        {
            "weekNumber": str(week_number),
            "phaseName": phase_name,
            "previousWeekMileage": f"{float(previous_week_mileage or 0):g}",
            "previousWeekCompletedDays": str(execution.get("completed_days", 0)),
            "previousWeekExecutedMiles": f"{float(execution.get('executed_miles', 0) or 0):g}",
            "weekDayNumbers": _normalize(list(range(1, 8))),
        }
    )
    request = _finalize(assemble_template(components), inputs)
    logger.info(
        "week_request_assembled",
        extra={"week_number": week_number, "phase": phase_name, "prompt_chars": len(request.prompt)},
    )
    return request
