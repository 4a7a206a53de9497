"""Seed the default generation configuration.

Creates one plan prompt and one week prompt sharing the coach role, required
fields, training rules and return formats. Safe to run repeatedly.
"""
from __future__ import annotations

from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy import select
from sqlalchemy.orm import Session

from core.config import get_settings
from core.db import Database
from core.models import (
    AiRole,
    GenerationPrompt,
    MustHaves,
    PromptInstruction,
    ReturnFormat,
    RuleSet,
    RuleSetItem,
    RuleSetTopic,
)

COACH_ROLE = (
    "You are an experienced running coach who writes periodized training plans. "
    "You are precise about paces, distances and day numbers."
)

LAP_SCHEMA: dict[str, Any] = {
    "lapIndex": "integer, 1-based and sequential",
    "distanceMiles": "number > 0",
    "paceGoal": "M:SS per mile or null",
    "hrGoal": "heart rate zone such as Z2, a range such as 140-150, or null",
}

DAY_SCHEMA: dict[str, Any] = {
    "dayNumber": "integer 1 (Monday) to 7 (Sunday)",
    "warmup": [LAP_SCHEMA],
    "workout": [LAP_SCHEMA],
    "cooldown": [LAP_SCHEMA],
    "notes": "string",
}

PLAN_SCHEMA: dict[str, Any] = {
    "phases": [{"name": "base | build | peak | taper", "weekCount": "integer >= 1"}],
    "week": {"weekNumber": 1, "days": [DAY_SCHEMA]},
}

WEEK_SCHEMA: dict[str, Any] = {"week": {"weekNumber": "integer", "days": [DAY_SCHEMA]}}

_EASY_DAY = {
    "warmup": [],
    "workout": [{"lapIndex": 1, "distanceMiles": 4.0, "paceGoal": "9:30", "hrGoal": "Z2"}],
    "cooldown": [],
    "notes": "Easy aerobic run.",
}

PLAN_EXAMPLE: dict[str, Any] = {
    "phases": [
        {"name": "base", "weekCount": 4},
        {"name": "build", "weekCount": 6},
        {"name": "peak", "weekCount": 3},
        {"name": "taper", "weekCount": 3},
    ],
    "week": {
        "weekNumber": 1,
        "days": [
            {"dayNumber": 3, **_EASY_DAY},
            {
                "dayNumber": 5,
                "warmup": [{"lapIndex": 1, "distanceMiles": 1.0, "paceGoal": "9:45", "hrGoal": "Z1"}],
                "workout": [
                    {"lapIndex": 1, "distanceMiles": 1.0, "paceGoal": "7:50", "hrGoal": "160-170"},
                    {"lapIndex": 2, "distanceMiles": 1.0, "paceGoal": "7:50", "hrGoal": "160-170"},
                ],
                "cooldown": [{"lapIndex": 1, "distanceMiles": 1.0, "paceGoal": "10:00", "hrGoal": "Z1"}],
                "notes": "Tempo miles.",
            },
            {"dayNumber": 7, **_EASY_DAY, "notes": "Long run at conversational pace."},
        ],
    },
}

PLAN_INSTRUCTIONS = [
    (
        "Athlete",
        "Race: {raceName} ({raceType}) with goal time {goalTime}. Current 5K pace {fiveKPace}/mi, "
        "predicted race pace {predictedRacePace}/mi, goal race pace {goalRacePace}/mi. "
        "Current weekly mileage is {currentWeeklyMileage} miles. Today is {todayDate}.",
    ),
    (
        "Plan shape",
        "Split {totalWeeks} weeks into base, build, peak and taper in that order. "
        "The weekCount values must add up to exactly {totalWeeks}.",
    ),
    (
        "Week 1",
        "The plan starts on {planStartDate}, a {planStartDayName} (dayNumber {planStartDayNumber}). "
        "Week 1 must contain exactly {week1DayCount} days with dayNumbers {week1DayNumbers} "
        "({week1DayNames}) and target about {week1TargetMiles} miles. "
        "Preferred training days are {preferredDayNames} (dayNumbers {preferredDays}).",
    ),
]

WEEK_INSTRUCTIONS = [
    (
        "Athlete",
        "Race: {raceName} ({raceType}) with goal time {goalTime}. Goal race pace {goalRacePace}/mi, "
        "predicted race pace {predictedRacePace}/mi.",
    ),
    (
        "This week",
        "Write week {weekNumber} of {totalWeeks}, part of the {phaseName} phase. "
        "Last week was planned at {previousWeekMileage} miles; the athlete completed "
        "{previousWeekCompletedDays} days covering {previousWeekExecutedMiles} miles. "
        "Use dayNumbers from {weekDayNumbers}, favouring {preferredDayNames}.",
    ),
]

RULES = {
    "Progression": [
        "Increase weekly mileage by no more than 10% over the previous week.",
        "Every fourth week is a recovery week at about 80% of the previous week.",
    ],
    "Intensity": [
        "Keep at least 80% of weekly mileage at easy effort.",
        "Schedule at most two quality sessions per week and never on consecutive days.",
    ],
    "Paces": [
        "Easy runs are 60-90 seconds per mile slower than goal race pace.",
        "Express every pace as M:SS per mile.",
    ],
}


def run_migrations() -> None:
    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")


def _prompt(
    s: Session,
    *,
    name: str,
    kind: str,
    role: AiRole,
    must_haves: MustHaves,
    rule_set: RuleSet,
    return_format: ReturnFormat,
    instructions: list[tuple[str, str]],
) -> GenerationPrompt:
    prompt = GenerationPrompt(
        name=name,
        kind=kind,
        is_default=True,
        ai_role=role,
        must_haves=must_haves,
        rule_set=rule_set,
        return_format=return_format,
    )
    s.add(prompt)
    s.flush()
    s.add_all(
        PromptInstruction(prompt_id=prompt.id, title=title, content=content, position=position)
        for position, (title, content) in enumerate(instructions)
    )
    return prompt


def seed_generation_prompts(s: Session) -> bool:
    """Insert the default prompts unless any prompt already exists."""
    if s.execute(select(GenerationPrompt.id)).first():
        return False

    role = AiRole(name="Running coach", content=COACH_ROLE)
    must_haves = MustHaves(
        name="Plan essentials",
        fields={
            "phases": "base, build, peak, taper in order",
            "days": "dayNumber plus warmup, workout and cooldown lap lists",
            "laps": "lapIndex, distanceMiles, paceGoal, hrGoal",
        },
    )
    rule_set = RuleSet(name="Default coaching rules")
    s.add_all([role, must_haves, rule_set])
    s.flush()
    for topic_position, (topic_name, rules) in enumerate(RULES.items()):
        topic = RuleSetTopic(rule_set_id=rule_set.id, name=topic_name, position=topic_position)
        s.add(topic)
        s.flush()
        s.add_all(RuleSetItem(topic_id=topic.id, text=text, position=i) for i, text in enumerate(rules))

    plan_format = ReturnFormat(name="Plan with week 1", schema_json=PLAN_SCHEMA, example_json=PLAN_EXAMPLE)
    week_format = ReturnFormat(name="Single week", schema_json=WEEK_SCHEMA, example_json=None)
    s.add_all([plan_format, week_format])
    s.flush()

    _prompt(
        s,
        name="Default plan",
        kind="plan",
        role=role,
        must_haves=must_haves,
        rule_set=rule_set,
        return_format=plan_format,
        instructions=PLAN_INSTRUCTIONS,
    )
    _prompt(
        s,
        name="Default week",
        kind="week",
        role=role,
        must_haves=must_haves,
        rule_set=rule_set,
        return_format=week_format,
        instructions=WEEK_INSTRUCTIONS,
    )
    return True


def main() -> None:
    run_migrations()
    db = Database(get_settings().database_url)
    with db.session_scope() as s:
        created = seed_generation_prompts(s)
    db.dispose()
    print("Seeding complete" if created else "Generation prompts already present")


if __name__ == "__main__":
    main()
