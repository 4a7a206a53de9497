"""Link imported activities to planned days, score them and adapt the athlete's pace."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import ConflictError
from core.models import Activity, Day, ExecutedDay
from core.repository import PlanRepository
from core.services.pace import pace_string_to_seconds, rounded_pace_string
from core.services.scoring import (
    DEFAULT_PLANNED_PACE,
    adapt_reference_pace,
    compute_score,
    planned_targets,
    week_trend_score,
)

logger = logging.getLogger(__name__)

RUNNING_TYPES = {"running", "run", "trail_running", "trailrun", "treadmill_running", "track_running", "virtualrun", "race"}


@dataclass(frozen=True)
class ScoreResult:
    executed_day_id: int
    score: dict[str, float]
    previous_five_k_pace: str
    five_k_pace: str
    five_k_pace_seconds: float


def is_running(activity_type: Optional[str]) -> bool:
    return (activity_type or "").strip().lower().replace(" ", "_") in RUNNING_TYPES


def plan_snapshot(day: Day) -> dict[str, Any]:
    snapshot = planned_targets(day).as_snapshot()
    snapshot.update({"day_id": day.id, "date": day.date.isoformat(), "day_of_week": day.day_of_week})
    return snapshot


class MatchService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = PlanRepository(session)

    def record_activity(
        self,
        athlete_id: int,
        *,
        source: str,
        source_activity_id: str,
        start_time: datetime,
        activity_type: str = "running",
        duration_sec: Optional[int] = None,
        distance_m: Optional[float] = None,
        average_speed: Optional[float] = None,
        average_heart_rate: Optional[int] = None,
    ) -> tuple[Activity, bool]:
        """Store an imported activity once per ``(source, source_activity_id)``."""
        existing = self.repo.activity_by_source(source, source_activity_id)
        if existing is not None:
            if existing.athlete_id != athlete_id:
                raise ConflictError("Activity belongs to another athlete", field="source_activity_id", value=source_activity_id)
            return existing, False

        self.repo.get_or_create_athlete(athlete_id)
        activity = Activity(
            athlete_id=athlete_id,
            source=source,
            source_activity_id=source_activity_id,
            start_time=start_time,
            activity_type=activity_type,
            duration_sec=duration_sec,
            distance_m=distance_m,
            average_speed=average_speed,
            average_heart_rate=average_heart_rate,
        )
        self.session.add(activity)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            existing = self.repo.activity_by_source(source, source_activity_id)
            if existing is None or existing.athlete_id != athlete_id:
                raise
            return existing, False
        logger.info("activity_recorded", extra={"activity_id": activity.id, "source": source})
        return activity, True

    def link_activity_to_day(self, athlete_id: int, day_id: int, activity_id: int) -> ExecutedDay:
        day = self.repo.get_day(athlete_id, day_id)
        activity = self.repo.get_activity(athlete_id, activity_id)

        linked = self.repo.executed_for_activity(activity.id)
        if linked is not None:
            if linked.day_id == day.id:
                return linked
            raise ConflictError(
                f"Activity {activity.id} is already linked to day {linked.day_id}",
                field="activity_id",
                value=activity.id,
            )

        executed = self.repo.executed_for_day(day.id)
        if executed is not None:
            executed.activity_id = activity.id
            executed.plan_snapshot = plan_snapshot(day)
            executed.score = None
        else:
            executed = ExecutedDay(
                athlete_id=athlete_id,
                activity_id=activity.id,
                day_id=day.id,
                date=day.date,
                plan_snapshot=plan_snapshot(day),
            )
            self.session.add(executed)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            linked = self.repo.executed_for_activity(activity.id)
            if linked is not None and linked.day_id == day.id:
                return linked
            raise ConflictError(f"Activity {activity.id} is already linked", field="activity_id", value=activity.id)
        logger.info("activity_linked", extra={"executed_day_id": executed.id, "day_id": day.id, "activity_id": activity.id})
        return executed

    def auto_match_activity(self, athlete_id: int, activity_id: int) -> Optional[ExecutedDay]:
        """Link a running activity to the active plan day on the same date, if one exists."""
        activity = self.repo.get_activity(athlete_id, activity_id)
        if not is_running(activity.activity_type):
            return None
        days = self.repo.days_on_date(athlete_id, activity.start_time.date())
        if not days:
            logger.info("activity_unmatched", extra={"activity_id": activity.id})
            return None
        return self.link_activity_to_day(athlete_id, days[0].id, activity.id)

    def _week_trend(self, executed: ExecutedDay) -> float:
        if executed.day_id is None:
            return week_trend_score([])
        day = self.session.get(Day, executed.day_id)
        others = [
            e.score["workout_quality_score"]
            for e in self.repo.executed_in_week(day.week_id)
            if e.id != executed.id and e.score
        ]
        return week_trend_score(others)

    def _reference_seconds(self, athlete) -> float:
        if athlete.five_k_pace_seconds is not None:
            return float(athlete.five_k_pace_seconds)
        return float(pace_string_to_seconds(athlete.five_k_pace or DEFAULT_PLANNED_PACE))

    def score_executed_day(self, athlete_id: int, executed_day_id: int) -> ScoreResult:
        """Score an executed day and adapt the athlete's reference pace.

        The pace is adapted once per executed day. Scoring the day again
        returns the stored score; a day whose score was cleared by relinking
        is re-scored but keeps its original adaptation.
        """
        executed = self.repo.get_executed_day(athlete_id, executed_day_id)
        adaptation = executed.pace_adaptation
        if executed.score is not None and adaptation is not None:
            return self._result(executed, adaptation)

        activity = executed.activity
        score = compute_score(
            executed.plan_snapshot or {},
            average_speed=activity.average_speed,
            average_heart_rate=activity.average_heart_rate,
            distance_m=activity.distance_m,
            week_trend=self._week_trend(executed),
        )
        executed.score = score.as_dict()

        if adaptation is None:
            athlete = self.repo.get_or_create_athlete(athlete_id)
            previous_seconds = self._reference_seconds(athlete)
            updated_seconds = adapt_reference_pace(previous_seconds, score.workout_quality_score)
            adaptation = {
                "previous_seconds": round(previous_seconds, 4),
                "updated_seconds": round(updated_seconds, 4),
                "previous_five_k_pace": athlete.five_k_pace or rounded_pace_string(previous_seconds),
                "five_k_pace": rounded_pace_string(updated_seconds),
            }
            athlete.five_k_pace_seconds = updated_seconds
            athlete.five_k_pace = adaptation["five_k_pace"]
            executed.pace_adaptation = adaptation
        self.session.commit()

        logger.info(
            "executed_day_scored",
            extra={
                "executed_day_id": executed.id,
                "quality": round(score.workout_quality_score, 1),
                "five_k_pace_seconds": adaptation["updated_seconds"],
            },
        )
        return self._result(executed, adaptation)

    @staticmethod
    def _result(executed: ExecutedDay, adaptation: dict[str, Any]) -> ScoreResult:
        return ScoreResult(
            executed_day_id=executed.id,
            score=executed.score,
            previous_five_k_pace=adaptation["previous_five_k_pace"],
            five_k_pace=adaptation["five_k_pace"],
            five_k_pace_seconds=adaptation["updated_seconds"],
        )
