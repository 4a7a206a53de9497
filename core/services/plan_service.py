"""Plan lifecycle: draft -> inputs -> preview -> confirm -> weekly generation.

Every mutating operation is its own unit of work and commits before
returning. The generator is always called with no write transaction open.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import Settings
from core.errors import ConflictError, FormatError, NotFoundError, PrerequisiteError
from core.models import Day, ExecutedDay, Phase, Plan, Race, Week
from core.repository import PlanRepository
from core.services.calendar import total_weeks_between
from core.services.generator import PlanGenerator
from core.services.pace import (
    goal_pace_per_mile,
    meters_to_miles,
    normalize_race_type,
    pace_string_to_seconds,
    predicted_pace,
    race_miles,
    seconds_to_pace_string,
)
from core.services.phases import phase_date_spans, phase_for_week, phase_target_miles, split_weeks
from core.services.plan_validator import (
    parse_generated_json,
    validate_plan_structure,
    validate_week_structure,
)
from core.services.preview_cache import PreviewCache
from core.services.prompt_assembler import (
    PromptComponents,
    build_plan_inputs,
    build_plan_request,
    build_week_request,
)

logger = logging.getLogger(__name__)


class PlanService:
    def __init__(
        self,
        session: Session,
        settings: Settings,
        generator: PlanGenerator,
        preview_cache: PreviewCache,
        today: Callable[[], date] = date.today,
    ):
        self.session = session
        self.settings = settings
        self.generator = generator
        self.preview_cache = preview_cache
        self.repo = PlanRepository(session)
        self._today = today

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # -- Race registry --

    def find_or_create_race(
        self,
        athlete_id: int,
        *,
        name: str,
        race_type: str,
        race_date: date,
        city: Optional[str] = None,
        state: Optional[str] = None,
        country: Optional[str] = None,
    ) -> tuple[Race, bool]:
        normalized = normalize_race_type(race_type)
        with self._unit_of_work():
            self.repo.get_or_create_athlete(athlete_id)
            race, created = self.repo.find_or_create_race(
                name=name,
                race_type=normalized,
                miles=race_miles(normalized),
                race_date=race_date,
                city=city,
                state=state,
                country=country,
                created_by=athlete_id,
            )
        return race, created

    # -- Draft inputs --

    def create_draft_plan(
        self,
        athlete_id: int,
        race_id: Optional[int] = None,
        start_date: Optional[date] = None,
    ) -> Plan:
        """Start a draft, reusing the athlete's existing race-less draft if any."""
        with self._unit_of_work():
            self.repo.get_or_create_athlete(athlete_id)
            plan = self.repo.find_draft_without_race(athlete_id)
            if plan is not None:
                logger.info("draft_plan_reused", extra={"plan_id": plan.id, "athlete_id": athlete_id})
                if start_date is not None:
                    plan.start_date = start_date
            else:
                plan = Plan(
                    athlete_id=athlete_id,
                    start_date=start_date or self._today(),
                    total_weeks=self.settings.min_plan_weeks,
                    status="draft",
                    preferred_days=[],
                )
                self.repo.add(plan)
                logger.info("draft_plan_created", extra={"plan_id": plan.id, "athlete_id": athlete_id})
            if race_id is not None:
                self._attach_race(plan, race_id)
        return plan

    def _require_draft(self, plan: Plan) -> None:
        if plan.status != "draft":
            raise ConflictError(f"Plan {plan.id} is {plan.status}; only draft plans can be changed")

    def _attach_race(self, plan: Plan, race_id: int) -> None:
        race = self.repo.get_race(race_id)
        if race.race_date <= plan.start_date:
            raise FormatError(
                f"Race date {race.race_date.isoformat()} must be after the plan start {plan.start_date.isoformat()}",
                field="race_date",
                value=race.race_date.isoformat(),
            )
        plan.race_id = race.id
        plan.race = race
        plan.name = f"{race.name} Training Plan"
        plan.total_weeks = total_weeks_between(plan.start_date, race.race_date, self.settings.min_plan_weeks)
        if plan.goal_time:
            plan.goal_race_pace = round(goal_pace_per_mile(plan.goal_time, race.miles))
        if plan.current_five_k_pace:
            plan.predicted_race_pace = round(
                predicted_pace(
                    pace_string_to_seconds(plan.current_five_k_pace), race.race_type, self.settings.race_pace_offsets
                )
            )
        self.session.flush()

    def attach_race(self, athlete_id: int, plan_id: int, race_id: int) -> Plan:
        with self._unit_of_work():
            plan = self.repo.get_plan(athlete_id, plan_id)
            self._require_draft(plan)
            self._attach_race(plan, race_id)
        self.preview_cache.delete(plan.id)
        return plan

    def set_goal_time(self, athlete_id: int, plan_id: int, goal_time: str) -> Plan:
        with self._unit_of_work():
            plan = self.repo.get_plan(athlete_id, plan_id)
            self._require_draft(plan)
            if plan.race is None:
                raise PrerequisiteError("Attach a race before setting a goal time", missing=["race"])
            pace = goal_pace_per_mile(goal_time, plan.race.miles)
            plan.goal_time = goal_time.strip()
            plan.goal_race_pace = round(pace)
        self.preview_cache.delete(plan.id)
        return plan

    def set_baseline(self, athlete_id: int, plan_id: int, five_k_pace: str, weekly_mileage: float) -> Plan:
        seconds = pace_string_to_seconds(five_k_pace)
        if weekly_mileage < 0:
            raise FormatError("Weekly mileage cannot be negative", field="weekly_mileage", value=weekly_mileage)
        with self._unit_of_work():
            plan = self.repo.get_plan(athlete_id, plan_id)
            self._require_draft(plan)
            plan.current_five_k_pace = seconds_to_pace_string(seconds)
            plan.current_weekly_mileage = float(weekly_mileage)
            if plan.race is not None:
                plan.predicted_race_pace = round(
                    predicted_pace(seconds, plan.race.race_type, self.settings.race_pace_offsets)
                )
            athlete = self.repo.get_or_create_athlete(athlete_id)
            athlete.five_k_pace = plan.current_five_k_pace
            athlete.five_k_pace_seconds = float(seconds)
        self.preview_cache.delete(plan.id)
        return plan

    def set_preferred_days(self, athlete_id: int, plan_id: int, days: list[int]) -> Plan:
        values = sorted(set(int(d) for d in days))
        if any(d < 1 or d > 7 for d in values):
            raise FormatError("Preferred days must be between 1 (Monday) and 7 (Sunday)", field="days", value=days)
        if len(values) < self.settings.min_preferred_days:
            raise FormatError(
                f"Select at least {self.settings.min_preferred_days} training days",
                field="days",
                value=values,
            )
        with self._unit_of_work():
            plan = self.repo.get_plan(athlete_id, plan_id)
            self._require_draft(plan)
            plan.preferred_days = values
        self.preview_cache.delete(plan.id)
        return plan

    def missing_prerequisites(self, plan: Plan) -> list[str]:
        missing = []
        if plan.race_id is None:
            missing.append("race")
        if not plan.goal_time:
            missing.append("goal_time")
        if not plan.current_five_k_pace:
            missing.append("five_k_pace")
        if plan.current_weekly_mileage is None:
            missing.append("weekly_mileage")
        if len(plan.preferred_days or []) < self.settings.min_preferred_days:
            missing.append("preferred_days")
        return missing

    def _require_inputs(self, plan: Plan) -> None:
        missing = self.missing_prerequisites(plan)
        if missing:
            raise PrerequisiteError(f"Plan {plan.id} is missing: {', '.join(missing)}", missing=missing)

    def _plan_inputs(self, plan: Plan) -> dict[str, str]:
        return build_plan_inputs(
            race_name=plan.race.name,
            race_type=plan.race.race_type,
            goal_time=plan.goal_time,
            five_k_pace=plan.current_five_k_pace,
            predicted_race_pace=plan.predicted_race_pace,
            goal_race_pace=plan.goal_race_pace,
            weekly_mileage=plan.current_weekly_mileage or 0,
            total_weeks=plan.total_weeks,
            plan_start=plan.start_date,
            preferred_days=plan.preferred_days or [],
            today=self._today(),
        )

    # -- Preview / confirm --

    def _describe_preview(self, plan: Plan, payload: dict[str, Any]) -> dict[str, Any]:
        spans = phase_date_spans(plan.start_date, payload["phases"])
        return {
            "planId": plan.id,
            "totalWeeks": plan.total_weeks,
            "phases": [
                {
                    "name": span.name,
                    "weekCount": span.week_count,
                    "startDate": span.start_date.isoformat(),
                    "endDate": span.end_date.isoformat(),
                }
                for span in spans
            ],
            "week": payload["week"],
        }

    def generate_preview(self, athlete_id: int, plan_id: int) -> dict[str, Any]:
        plan = self.repo.get_plan(athlete_id, plan_id)
        self._require_draft(plan)
        self._require_inputs(plan)
        components = PromptComponents.from_prompt(self.repo.default_prompt("plan"))
        request = build_plan_request(components, self._plan_inputs(plan))
        # Release the read transaction before the slow external call.
        self.session.commit()

        raw = self.generator.generate(request)
        validated = validate_plan_structure(parse_generated_json(raw), plan.start_date, plan.total_weeks)
        payload = validated.as_payload()
        self.preview_cache.put(plan.id, payload)
        logger.info(
            "plan_preview_generated",
            extra={"plan_id": plan.id, "total_weeks": plan.total_weeks, "week1_miles": validated.week.miles},
        )
        return self._describe_preview(plan, payload)

    def get_preview(self, athlete_id: int, plan_id: int) -> dict[str, Any]:
        plan = self.repo.get_plan(athlete_id, plan_id)
        payload = self.preview_cache.get(plan.id)
        if payload is None:
            raise NotFoundError(f"No preview cached for plan {plan.id}", field="plan_id", value=plan.id)
        return self._describe_preview(plan, payload)

    def confirm_plan(self, athlete_id: int, plan_id: int, candidate: Optional[dict[str, Any]] = None) -> Plan:
        """Persist phases, week 1 and its days in one transaction and activate the plan."""
        with self._unit_of_work():
            plan = self.repo.get_plan(athlete_id, plan_id)
            self._require_draft(plan)
            self._require_inputs(plan)
            if candidate is None:
                candidate = self.preview_cache.get(plan.id)
            if candidate is None:
                raise PrerequisiteError("Generate a preview before confirming", missing=["preview"])

            validated = validate_plan_structure(candidate, plan.start_date, plan.total_weeks)
            spans = phase_date_spans(plan.start_date, validated.phases)
            phases = self.repo.create_phases(plan, validated.phases, spans)
            self.repo.create_week(plan, phases[0], validated.week)
            self.repo.refresh_phase_miles(phases[0])
            plan.status = "active"
        self.preview_cache.delete(plan.id)
        logger.info("plan_confirmed", extra={"plan_id": plan.id, "phases": len(phases), "total_weeks": plan.total_weeks})
        return plan

    # -- Weekly generation --

    def _week_execution(self, week: Week) -> dict[str, Any]:
        executed = self.repo.executed_in_week(week.id)
        return {
            "completed_days": len(executed),
            "executed_miles": round(sum(meters_to_miles(e.activity.distance_m) for e in executed), 2),
        }

    def generate_week(self, athlete_id: int, plan_id: int, week_number: int) -> Week:
        """Generate and store week ``week_number`` (2..N) after its predecessor."""
        if week_number < 2:
            raise FormatError(
                "Week 1 is created when the plan is confirmed; generate weeks from 2 onwards",
                field="week_number",
                value=week_number,
            )
        plan = self.repo.get_plan(athlete_id, plan_id)
        if plan.status != "active":
            raise PrerequisiteError(f"Plan {plan.id} is {plan.status}, not active", missing=["confirmed plan"])
        if self.repo.get_week(plan.id, week_number) is not None:
            raise ConflictError(f"Week {week_number} already exists", field="week_number", value=week_number)
        previous = self.repo.get_week(plan.id, week_number - 1)
        if previous is None:
            raise PrerequisiteError(
                f"Week {week_number - 1} must exist before generating week {week_number}",
                missing=[f"week {week_number - 1}"],
            )
        phase: Phase = phase_for_week(self.repo.get_phases(plan.id), week_number)

        components = PromptComponents.from_prompt(self.repo.default_prompt("week"))
        request = build_week_request(
            components,
            self._plan_inputs(plan),
            week_number=week_number,
            phase_name=phase.name,
            previous_week_mileage=previous.miles or 0,
            previous_execution=self._week_execution(previous),
        )
        self.session.commit()

        raw = self.generator.generate(request)
        spec = validate_week_structure(parse_generated_json(raw), week_number)

        try:
            with self._unit_of_work():
                if self.repo.get_week(plan.id, week_number) is not None:
                    raise ConflictError(f"Week {week_number} already exists", field="week_number", value=week_number)
                week = self.repo.create_week(plan, phase, spec)
                self.repo.refresh_phase_miles(phase)
        except IntegrityError as exc:
            # Another request stored this week between the check and the insert.
            logger.info("week_generation_conflict", extra={"plan_id": plan.id, "week_number": week_number})
            raise ConflictError(
                f"Week {week_number} already exists", field="week_number", value=week_number
            ) from exc
        logger.info(
            "week_generated",
            extra={"plan_id": plan.id, "week_number": week_number, "phase": phase.name, "miles": week.miles},
        )
        return week

    # -- Reads --

    def get_plan(self, athlete_id: int, plan_id: int) -> Plan:
        return self.repo.get_plan(athlete_id, plan_id)

    def list_plans(self, athlete_id: int) -> list[Plan]:
        return list(self.repo.list_plans(athlete_id))

    def get_week(self, athlete_id: int, plan_id: int, week_number: int) -> Week:
        plan = self.repo.get_plan(athlete_id, plan_id)
        week = self.repo.get_week(plan.id, week_number)
        if week is None:
            raise NotFoundError(f"Week {week_number} not found", field="week_number", value=week_number)
        return week

    def get_day(self, athlete_id: int, day_id: int) -> tuple[Day, Optional[ExecutedDay]]:
        """A planned day together with the execution linked to it, if any."""
        day = self.repo.get_day(athlete_id, day_id)
        return day, self.repo.executed_for_day(day.id)

    def get_phase(self, athlete_id: int, phase_id: int) -> tuple[Phase, list[Week], float]:
        """A phase, its generated weeks and the miles those weeks add up to."""
        phase = self.repo.get_phase(athlete_id, phase_id)
        weeks = list(self.repo.weeks_in_phase(phase.id))
        return phase, weeks, round(sum(w.miles or 0.0 for w in weeks), 2)

    def phase_overview(self, athlete_id: int, plan_id: int) -> dict[str, Any]:
        """Stored phases once confirmed; otherwise the default split as a proposal."""
        plan = self.repo.get_plan(athlete_id, plan_id)
        stored = self.repo.get_phases(plan.id)
        generated = self.repo.week_numbers(plan.id)
        if stored:
            phases = [
                {
                    "name": p.name,
                    "week_count": p.week_count,
                    "start_date": p.start_date,
                    "end_date": p.end_date,
                    "target_miles": p.target_miles,
                    "total_miles": p.total_miles,
                }
                for p in stored
            ]
            proposed = False
        else:
            phases = [
                {
                    "name": s.name,
                    "week_count": s.week_count,
                    "start_date": s.start_date,
                    "end_date": s.end_date,
                    "target_miles": phase_target_miles(plan.current_weekly_mileage, s.week_count),
                    "total_miles": None,
                }
                for s in phase_date_spans(plan.start_date, split_weeks(plan.total_weeks))
            ]
            proposed = True
        return {
            "plan_id": plan.id,
            "total_weeks": plan.total_weeks,
            "proposed": proposed,
            "generated_weeks": generated,
            "phases": phases,
        }
