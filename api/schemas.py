from __future__ import annotations

from datetime import date as dt_date
from datetime import datetime as dt_datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class RaceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    race_type: str
    miles: float
    race_date: dt_date
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class RaceCreateResponse(BaseModel):
    race: RaceResponse
    created: bool


class PlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    athlete_id: int
    race_id: Optional[int] = None
    name: str
    status: str
    start_date: dt_date
    total_weeks: int
    goal_time: Optional[str] = None
    current_five_k_pace: Optional[str] = None
    current_weekly_mileage: Optional[float] = None
    goal_race_pace: Optional[int] = None
    predicted_race_pace: Optional[int] = None
    preferred_days: list[int] = Field(default_factory=list)
    race: Optional[RaceResponse] = None


class PlanDetailResponse(PlanResponse):
    missing: list[str] = Field(default_factory=list)


class PhaseOverviewItem(BaseModel):
    name: str
    week_count: int
    start_date: dt_date
    end_date: dt_date
    target_miles: Optional[float] = None
    total_miles: Optional[float] = None


class PhaseOverviewResponse(BaseModel):
    plan_id: int
    total_weeks: int
    proposed: bool
    generated_weeks: list[int]
    phases: list[PhaseOverviewItem]


class LapResponse(BaseModel):
    lap_index: int
    distance_miles: float
    pace_goal: Optional[str] = None
    hr_goal: Optional[str] = None


class DayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: dt_date
    day_of_week: int
    warmup: list[LapResponse] = Field(default_factory=list)
    workout: list[LapResponse] = Field(default_factory=list)
    cooldown: list[LapResponse] = Field(default_factory=list)
    notes: Optional[str] = None


class WeekResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    plan_id: int
    phase_id: int
    week_number: int
    miles: Optional[float] = None
    days: list[DayResponse] = Field(default_factory=list)


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    source: str
    source_activity_id: str
    activity_type: str
    start_time: dt_datetime
    distance_m: Optional[float] = None
    duration_sec: Optional[int] = None
    average_speed: Optional[float] = None
    average_heart_rate: Optional[int] = None


class ExecutedDayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    activity_id: int
    day_id: Optional[int] = None
    date: dt_date
    plan_snapshot: dict[str, Any] = Field(default_factory=dict)
    score: Optional[dict[str, Any]] = None


class ActivityRecordResponse(BaseModel):
    activity: ActivityResponse
    created: bool
    matched: Optional[ExecutedDayResponse] = None


class ScoreResponse(BaseModel):
    executed_day_id: int
    score: dict[str, float]
    previous_five_k_pace: str
    five_k_pace: str
    five_k_pace_seconds: float


class SimpleStatusResponse(BaseModel):
    status: str


class DayDetailResponse(BaseModel):
    plan_id: int
    plan_name: str
    phase_id: int
    phase_name: str
    week_number: int
    day: DayResponse
    executed: Optional[ExecutedDayResponse] = None
    activity: Optional[ActivityResponse] = None


class PhaseWeekResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    week_number: int
    miles: Optional[float] = None
    days: list[DayResponse] = Field(default_factory=list)


class PhaseDetailResponse(BaseModel):
    id: int
    plan_id: int
    name: str
    week_count: int
    start_date: dt_date
    end_date: dt_date
    target_miles: Optional[float] = None
    total_miles: float
    weeks: list[PhaseWeekResponse] = Field(default_factory=list)


# -- Generation configuration --


class AiRoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    content: str


class MustHavesResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    fields: dict[str, Any] = Field(default_factory=dict)


class ReturnFormatResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    json_schema: dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("schema_json", "json_schema"))
    example_json: Optional[dict[str, Any]] = None


class RuleItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    text: str
    position: int


class RuleTopicResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    position: int
    rules: list[RuleItemResponse] = Field(default_factory=list)


class RuleSetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    topics: list[RuleTopicResponse] = Field(default_factory=list)


class InstructionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    content: str
    position: int


class PromptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    kind: str
    is_default: bool
    ai_role_id: Optional[int] = None
    must_haves_id: Optional[int] = None
    rule_set_id: Optional[int] = None
    return_format_id: Optional[int] = None
    instructions: list[InstructionResponse] = Field(default_factory=list)


class PromptTemplateResponse(BaseModel):
    prompt_id: int
    template: str
