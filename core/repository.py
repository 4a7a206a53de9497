"""Persistence operations for plans, races, activities and prompt configuration.

All methods work inside the caller's session; committing is the caller's job
(``Database.session_scope`` or the request-scoped session in ``api.deps``).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from core.errors import ConflictError, NotFoundError, PrerequisiteError
from core.models import (
    Activity,
    Athlete,
    Day,
    ExecutedDay,
    GenerationPrompt,
    Phase,
    Plan,
    Race,
    RuleSet,
    RuleSetTopic,
    Week,
)
from core.services.calendar import date_for_coordinate, day_of_week
from core.services.phases import PhaseSpan, phase_target_miles
from core.services.plan_validator import PhaseSpec, WeekSpec

logger = logging.getLogger(__name__)


def race_name_key(name: str) -> str:
    return " ".join(name.split()).lower()


class PlanRepository:
    def __init__(self, session: Session):
        self.session = session

    # -- Athletes --

    def get_or_create_athlete(self, athlete_id: int) -> Athlete:
        athlete = self.session.get(Athlete, athlete_id)
        if athlete is None:
            athlete = Athlete(id=athlete_id)
            self.session.add(athlete)
            self.session.flush()
        return athlete

    # -- Race registry --

    def _race_by_key(self, name: str, race_date: date) -> Optional[Race]:
        return self.session.execute(
            select(Race).where(Race.name_key == race_name_key(name), Race.race_date == race_date)
        ).scalar_one_or_none()

    def find_or_create_race(
        self,
        *,
        name: str,
        race_type: str,
        miles: float,
        race_date: date,
        city: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> tuple[Race, bool]:
        """Return ``(race, created)``, matching on case-insensitive name and date.

        A concurrent insert of the same race loses the unique-constraint race
        and is answered with the winner's row. Call this at the start of a
        unit of work: the losing path rolls the session back.
        """
        existing = self._race_by_key(name, race_date)
        if existing is not None:
            return existing, False

        race = Race(
            name=" ".join(name.split()),
            name_key=race_name_key(name),
            race_type=race_type,
            miles=miles,
            race_date=race_date,
            city=city,
            state=state,
            country=country,
            created_by=created_by,
        )
        self.session.add(race)
        try:
            self.session.flush()
        except IntegrityError as exc:
            self.session.rollback()
            existing = self._race_by_key(name, race_date)
            if existing is None:
                raise ConflictError(f"Race {name!r} on {race_date.isoformat()} could not be registered") from exc
            logger.info("race_registry_conflict_resolved", extra={"race_id": existing.id})
            return existing, False
        logger.info("race_created", extra={"race_id": race.id, "race_type": race_type})
        return race, True

    def get_race(self, race_id: int) -> Race:
        race = self.session.get(Race, race_id)
        if race is None:
            raise NotFoundError(f"Race {race_id} not found", field="race_id", value=race_id)
        return race

    def search_races(self, query: str = "", limit: int = 20) -> Sequence[Race]:
        stmt = select(Race).order_by(Race.race_date, Race.name).limit(limit)
        if query.strip():
            stmt = stmt.where(Race.name_key.contains(race_name_key(query)))
        return self.session.execute(stmt).scalars().all()

    # -- Plans --

    def get_plan(self, athlete_id: int, plan_id: int) -> Plan:
        plan = self.session.execute(
            select(Plan)
            .options(selectinload(Plan.race), selectinload(Plan.phases))
            .where(Plan.id == plan_id, Plan.athlete_id == athlete_id)
        ).scalar_one_or_none()
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found", field="plan_id", value=plan_id)
        return plan

    def list_plans(self, athlete_id: int) -> Sequence[Plan]:
        return (
            self.session.execute(
                select(Plan).options(selectinload(Plan.race)).where(Plan.athlete_id == athlete_id).order_by(Plan.id.desc())
            )
            .scalars()
            .all()
        )

    def find_draft_without_race(self, athlete_id: int) -> Optional[Plan]:
        return self.session.execute(
            select(Plan)
            .where(Plan.athlete_id == athlete_id, Plan.status == "draft", Plan.race_id.is_(None))
            .order_by(Plan.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def add(self, instance) -> None:
        self.session.add(instance)
        self.session.flush()

    # -- Phase / Week / Day cascade --

    def create_phases(
        self,
        plan: Plan,
        specs: Sequence[PhaseSpec],
        spans: Sequence[PhaseSpan],
    ) -> list[Phase]:
        phases = [
            Phase(
                plan_id=plan.id,
                name=spec.name,
                sequence=position,
                week_count=spec.week_count,
                start_date=span.start_date,
                end_date=span.end_date,
                target_miles=phase_target_miles(plan.current_weekly_mileage, spec.week_count),
            )
            for position, (spec, span) in enumerate(zip(specs, spans), start=1)
        ]
        self.session.add_all(phases)
        self.session.flush()
        return phases

    def create_week(
        self,
        plan: Plan,
        phase: Phase,
        spec: WeekSpec,
        allow_partial_first_week: bool = True,
    ) -> Week:
        week = Week(plan_id=plan.id, phase_id=phase.id, week_number=spec.week_number, miles=spec.miles or None)
        self.session.add(week)
        self.session.flush()

        for day_spec in spec.days:
            day_date = date_for_coordinate(
                plan.start_date, spec.week_number, day_spec.day_number, allow_partial_first_week
            )
            self.session.add(
                Day(
                    plan_id=plan.id,
                    phase_id=phase.id,
                    week_id=week.id,
                    date=day_date,
                    day_of_week=day_of_week(day_date),
                    warmup=[lap.as_record() for lap in day_spec.warmup],
                    workout=[lap.as_record() for lap in day_spec.workout],
                    cooldown=[lap.as_record() for lap in day_spec.cooldown],
                    notes=day_spec.notes,
                )
            )
        self.session.flush()
        return week

    def refresh_phase_miles(self, phase: Phase) -> float:
        total = self.session.execute(
            select(func.coalesce(func.sum(Week.miles), 0.0)).where(Week.phase_id == phase.id)
        ).scalar_one()
        phase.total_miles = round(float(total), 2)
        self.session.flush()
        return phase.total_miles

    def get_phases(self, plan_id: int) -> Sequence[Phase]:
        return self.session.execute(select(Phase).where(Phase.plan_id == plan_id).order_by(Phase.sequence)).scalars().all()

    def get_phase(self, athlete_id: int, phase_id: int) -> Phase:
        phase = self.session.execute(
            select(Phase)
            .options(selectinload(Phase.plan))
            .join(Plan, Plan.id == Phase.plan_id)
            .where(Phase.id == phase_id, Plan.athlete_id == athlete_id)
        ).scalar_one_or_none()
        if phase is None:
            raise NotFoundError(f"Phase {phase_id} not found", field="phase_id", value=phase_id)
        return phase

    def weeks_in_phase(self, phase_id: int) -> Sequence[Week]:
        return (
            self.session.execute(
                select(Week).options(selectinload(Week.days)).where(Week.phase_id == phase_id).order_by(Week.week_number)
            )
            .scalars()
            .all()
        )

    def get_week(self, plan_id: int, week_number: int) -> Optional[Week]:
        return self.session.execute(
            select(Week)
            .options(selectinload(Week.days), selectinload(Week.phase))
            .where(Week.plan_id == plan_id, Week.week_number == week_number)
        ).scalar_one_or_none()

    def week_numbers(self, plan_id: int) -> list[int]:
        return list(
            self.session.execute(select(Week.week_number).where(Week.plan_id == plan_id).order_by(Week.week_number)).scalars()
        )

    def get_day(self, athlete_id: int, day_id: int) -> Day:
        day = self.session.execute(
            select(Day).join(Plan, Plan.id == Day.plan_id).where(Day.id == day_id, Plan.athlete_id == athlete_id)
        ).scalar_one_or_none()
        if day is None:
            raise NotFoundError(f"Day {day_id} not found", field="day_id", value=day_id)
        return day

    def days_on_date(self, athlete_id: int, on: date) -> Sequence[Day]:
        return (
            self.session.execute(
                select(Day)
                .join(Plan, Plan.id == Day.plan_id)
                .where(Plan.athlete_id == athlete_id, Plan.status == "active", Day.date == on)
                .order_by(Day.id)
            )
            .scalars()
            .all()
        )

    # -- Activities / execution --

    def get_activity(self, athlete_id: int, activity_id: int) -> Activity:
        activity = self.session.get(Activity, activity_id)
        if activity is None or activity.athlete_id != athlete_id:
            raise NotFoundError(f"Activity {activity_id} not found", field="activity_id", value=activity_id)
        return activity

    def activity_by_source(self, source: str, source_activity_id: str) -> Optional[Activity]:
        return self.session.execute(
            select(Activity).where(Activity.source == source, Activity.source_activity_id == source_activity_id)
        ).scalar_one_or_none()

    def executed_for_activity(self, activity_id: int) -> Optional[ExecutedDay]:
        return self.session.execute(
            select(ExecutedDay).where(ExecutedDay.activity_id == activity_id)
        ).scalar_one_or_none()

    def executed_for_day(self, day_id: int) -> Optional[ExecutedDay]:
        return self.session.execute(
            select(ExecutedDay).where(ExecutedDay.day_id == day_id).order_by(ExecutedDay.id.desc()).limit(1)
        ).scalar_one_or_none()

    def get_executed_day(self, athlete_id: int, executed_id: int) -> ExecutedDay:
        executed = self.session.execute(
            select(ExecutedDay)
            .options(selectinload(ExecutedDay.activity))
            .where(ExecutedDay.id == executed_id, ExecutedDay.athlete_id == athlete_id)
        ).scalar_one_or_none()
        if executed is None:
            raise NotFoundError(f"Executed day {executed_id} not found", field="executed_day_id", value=executed_id)
        return executed

    def executed_in_week(self, week_id: int) -> Sequence[ExecutedDay]:
        return (
            self.session.execute(
                select(ExecutedDay)
                .options(selectinload(ExecutedDay.activity))
                .join(Day, Day.id == ExecutedDay.day_id)
                .where(Day.week_id == week_id)
                .order_by(ExecutedDay.date)
            )
            .scalars()
            .all()
        )

    # -- Generation configuration --

    @staticmethod
    def _prompt_query():
        return select(GenerationPrompt).options(
            selectinload(GenerationPrompt.ai_role),
            selectinload(GenerationPrompt.must_haves),
            selectinload(GenerationPrompt.return_format),
            selectinload(GenerationPrompt.instructions),
            selectinload(GenerationPrompt.rule_set).selectinload(RuleSet.topics).selectinload(RuleSetTopic.rules),
        )

    def list_prompts(self, kind: Optional[str] = None) -> Sequence[GenerationPrompt]:
        stmt = self._prompt_query().order_by(GenerationPrompt.kind, GenerationPrompt.id)
        if kind is not None:
            stmt = stmt.where(GenerationPrompt.kind == kind)
        return self.session.execute(stmt).scalars().all()

    def get_prompt(self, prompt_id: int) -> GenerationPrompt:
        prompt = self.session.execute(self._prompt_query().where(GenerationPrompt.id == prompt_id)).scalar_one_or_none()
        if prompt is None:
            raise NotFoundError(f"Prompt {prompt_id} not found", field="prompt_id", value=prompt_id)
        return prompt

    def default_prompt(self, kind: str) -> GenerationPrompt:
        prompt = self.session.execute(
            self._prompt_query()
            .where(GenerationPrompt.kind == kind)
            .order_by(GenerationPrompt.is_default.desc(), GenerationPrompt.id)
            .limit(1)
        ).scalar_one_or_none()
        if prompt is None:
            raise PrerequisiteError(f"No {kind} generation prompt is configured", missing=[f"generation prompt ({kind})"])
        return prompt
