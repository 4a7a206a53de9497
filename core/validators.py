"""Pydantic validation models for all user-facing data entry points."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from core.errors import FormatError
from core.services.pace import normalize_race_type, pace_string_to_seconds


class RaceCreateInput(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    race_type: str
    race_date: date
    city: Optional[str] = Field(default=None, max_length=120)
    state: Optional[str] = Field(default=None, max_length=80)
    country: Optional[str] = Field(default=None, max_length=80)

    @field_validator("race_type")
    @classmethod
    def known_race_type(cls, v):
        try:
            return normalize_race_type(v)
        except FormatError as exc:
            raise ValueError(exc.message) from exc

    @field_validator("name")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class PlanCreateInput(BaseModel):
    race_id: Optional[int] = Field(default=None, gt=0)
    start_date: Optional[date] = None


class AttachRaceInput(BaseModel):
    race_id: int = Field(gt=0)


class GoalTimeInput(BaseModel):
    goal_time: str = Field(min_length=3, max_length=12, pattern=r"^\s*\d{1,2}(:\d{1,2}){1,2}\s*$")


class BaselineInput(BaseModel):
    five_k_pace: str = Field(min_length=3, max_length=8)
    weekly_mileage: float = Field(ge=0, le=250)

    @field_validator("five_k_pace")
    @classmethod
    def valid_pace(cls, v):
        try:
            pace_string_to_seconds(v)
        except FormatError as exc:
            raise ValueError(exc.message) from exc
        return v.strip()


class PreferredDaysInput(BaseModel):
    days: list[int] = Field(min_length=1, max_length=7)

    @field_validator("days")
    @classmethod
    def valid_days(cls, v):
        if any(d < 1 or d > 7 for d in v):
            raise ValueError("days must be between 1 (Monday) and 7 (Sunday)")
        if len(set(v)) != len(v):
            raise ValueError("days must be unique")
        return sorted(v)


class ConfirmPlanInput(BaseModel):
    plan: Optional[dict[str, Any]] = None


class ActivityInput(BaseModel):
    source: str = Field(default="manual", min_length=1, max_length=40)
    source_activity_id: str = Field(min_length=1, max_length=120)
    activity_type: str = Field(default="running", max_length=40)
    start_time: datetime
    duration_sec: Optional[int] = Field(default=None, ge=0)
    distance_m: Optional[float] = Field(default=None, ge=0)
    average_speed: Optional[float] = Field(default=None, ge=0)
    average_heart_rate: Optional[int] = Field(default=None, ge=30, le=250)


class MatchInput(BaseModel):
    activity_id: int = Field(gt=0)


# -- Generation configuration --


class _NamedInput(BaseModel):
    name: str = Field(min_length=1, max_length=120)

    @field_validator("name")
    @classmethod
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class AiRoleInput(_NamedInput):
    content: str = Field(min_length=1)


class MustHavesInput(_NamedInput):
    fields: dict[str, Any] = Field(min_length=1)


class ReturnFormatInput(_NamedInput):
    json_schema: dict[str, Any] = Field(min_length=1)
    example_json: Optional[dict[str, Any]] = None


class RuleTopicInput(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    rules: list[str] = Field(min_length=1)

    @field_validator("rules")
    @classmethod
    def rules_not_blank(cls, v):
        rules = [r.strip() for r in v]
        if not all(rules):
            raise ValueError("rules must not be blank")
        return rules


class RuleSetInput(_NamedInput):
    topics: list[RuleTopicInput] = Field(min_length=1)


class InstructionInput(BaseModel):
    title: str = Field(default="", max_length=160)
    content: str = Field(min_length=1)


class PromptInput(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    kind: Literal["plan", "week"] = "plan"
    is_default: bool = False
    ai_role_id: Optional[int] = Field(default=None, gt=0)
    must_haves_id: Optional[int] = Field(default=None, gt=0)
    rule_set_id: Optional[int] = Field(default=None, gt=0)
    return_format_id: Optional[int] = Field(default=None, gt=0)
    instructions: list[InstructionInput] = Field(default_factory=list)
