from __future__ import annotations

import datetime as dt
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


PLAN_STATUSES = ("draft", "active", "completed", "archived")
RACE_TYPES = ("5k", "10k", "10m", "half", "marathon")


class Athlete(Base):
    __tablename__ = "athletes"
    id: Mapped[int] = mapped_column(primary_key=True)
    display_name: Mapped[str] = mapped_column(String(120), default="")
    five_k_pace: Mapped[str | None] = mapped_column(String(8))
    # Unrounded reference pace; five_k_pace is its display form.
    five_k_pace_seconds: Mapped[float | None] = mapped_column(Float)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)


class Race(Base):
    __tablename__ = "races"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    name_key: Mapped[str] = mapped_column(String(200))
    race_type: Mapped[str] = mapped_column(String(12))
    miles: Mapped[float] = mapped_column(Float)
    race_date: Mapped[dt.date] = mapped_column(Date)
    city: Mapped[str | None] = mapped_column(String(120))
    state: Mapped[str | None] = mapped_column(String(80))
    country: Mapped[str | None] = mapped_column(String(80))
    created_by: Mapped[int | None] = mapped_column(ForeignKey("athletes.id"))
    __table_args__ = (UniqueConstraint("name_key", "race_date", name="uq_race_registry"),)


class Plan(Base):
    __tablename__ = "plans"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    race_id: Mapped[int | None] = mapped_column(ForeignKey("races.id"), index=True)
    name: Mapped[str] = mapped_column(String(200), default="My Training Plan")
    goal_time: Mapped[str | None] = mapped_column(String(12))
    start_date: Mapped[dt.date] = mapped_column(Date)
    total_weeks: Mapped[int] = mapped_column(Integer, default=16)
    status: Mapped[str] = mapped_column(String(16), default="draft")
    current_five_k_pace: Mapped[str | None] = mapped_column(String(8))
    current_weekly_mileage: Mapped[float | None] = mapped_column(Float)
    goal_race_pace: Mapped[int | None] = mapped_column(Integer)
    predicted_race_pace: Mapped[int | None] = mapped_column(Integer)
    preferred_days: Mapped[list[int]] = mapped_column(JSON, default=list)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    race: Mapped[Race | None] = relationship()
    phases: Mapped[list["Phase"]] = relationship(back_populates="plan", order_by="Phase.sequence")
    weeks: Mapped[list["Week"]] = relationship(back_populates="plan", order_by="Week.week_number")
    __table_args__ = (CheckConstraint("total_weeks >= 1"),)


class Phase(Base):
    __tablename__ = "phases"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("plans.id"), index=True)
    name: Mapped[str] = mapped_column(String(16))
    sequence: Mapped[int] = mapped_column(Integer)
    week_count: Mapped[int] = mapped_column(Integer)
    start_date: Mapped[dt.date] = mapped_column(Date)
    end_date: Mapped[dt.date] = mapped_column(Date)
    target_miles: Mapped[float | None] = mapped_column(Float)
    total_miles: Mapped[float | None] = mapped_column(Float)

    plan: Mapped[Plan] = relationship(back_populates="phases")
    __table_args__ = (
        UniqueConstraint("plan_id", "name", name="uq_phase_plan_name"),
        CheckConstraint("week_count >= 1"),
    )


class Week(Base):
    __tablename__ = "weeks"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("plans.id"), index=True)
    phase_id: Mapped[int] = mapped_column(ForeignKey("phases.id"), index=True)
    week_number: Mapped[int] = mapped_column(Integer)
    miles: Mapped[float | None] = mapped_column(Float)

    plan: Mapped[Plan] = relationship(back_populates="weeks")
    phase: Mapped[Phase] = relationship()
    days: Mapped[list["Day"]] = relationship(back_populates="week", order_by="Day.date")
    __table_args__ = (UniqueConstraint("plan_id", "week_number", name="uq_week_plan_number"),)


class Day(Base):
    __tablename__ = "days"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(ForeignKey("plans.id"), index=True)
    phase_id: Mapped[int] = mapped_column(ForeignKey("phases.id"))
    week_id: Mapped[int] = mapped_column(ForeignKey("weeks.id"), index=True)
    date: Mapped[dt.date] = mapped_column(Date, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)
    warmup: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    workout: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    cooldown: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    notes: Mapped[str | None] = mapped_column(Text)

    week: Mapped[Week] = relationship(back_populates="days")
    phase: Mapped[Phase] = relationship()
    __table_args__ = (
        UniqueConstraint("plan_id", "date", name="uq_day_plan_date"),
        CheckConstraint("day_of_week between 1 and 7"),
    )


class Activity(Base):
    __tablename__ = "activities"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    source: Mapped[str] = mapped_column(String(40), default="manual")
    source_activity_id: Mapped[str] = mapped_column(String(120))
    activity_type: Mapped[str] = mapped_column(String(40), default="running")
    start_time: Mapped[dt.datetime] = mapped_column(DateTime, index=True)
    duration_sec: Mapped[int | None] = mapped_column(Integer)
    distance_m: Mapped[float | None] = mapped_column(Float)
    average_speed: Mapped[float | None] = mapped_column(Float)
    average_heart_rate: Mapped[int | None] = mapped_column(Integer)
    __table_args__ = (UniqueConstraint("source", "source_activity_id", name="uq_activity_source"),)


class ExecutedDay(Base):
    __tablename__ = "executed_days"
    id: Mapped[int] = mapped_column(primary_key=True)
    athlete_id: Mapped[int] = mapped_column(ForeignKey("athletes.id"), index=True)
    activity_id: Mapped[int] = mapped_column(ForeignKey("activities.id"), unique=True)
    day_id: Mapped[int | None] = mapped_column(ForeignKey("days.id"), index=True)
    date: Mapped[dt.date] = mapped_column(Date)
    plan_snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    score: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    pace_adaptation: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)

    activity: Mapped[Activity] = relationship()
    __table_args__ = (Index("ix_executed_days_athlete_date", "athlete_id", "date"),)


# -- Generation configuration --


class AiRole(Base):
    __tablename__ = "ai_roles"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    content: Mapped[str] = mapped_column(Text)


class MustHaves(Base):
    __tablename__ = "must_haves"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    fields: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)


class ReturnFormat(Base):
    __tablename__ = "return_formats"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    schema_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    example_json: Mapped[dict[str, Any] | None] = mapped_column(JSON)


class RuleSet(Base):
    __tablename__ = "rule_sets"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    topics: Mapped[list["RuleSetTopic"]] = relationship(order_by="RuleSetTopic.position")


class RuleSetTopic(Base):
    __tablename__ = "rule_set_topics"
    id: Mapped[int] = mapped_column(primary_key=True)
    rule_set_id: Mapped[int] = mapped_column(ForeignKey("rule_sets.id"), index=True)
    name: Mapped[str] = mapped_column(String(120))
    position: Mapped[int] = mapped_column(Integer, default=0)
    rules: Mapped[list["RuleSetItem"]] = relationship(order_by="RuleSetItem.position")


class RuleSetItem(Base):
    __tablename__ = "rule_set_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    topic_id: Mapped[int] = mapped_column(ForeignKey("rule_set_topics.id"), index=True)
    text: Mapped[str] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, default=0)


class GenerationPrompt(Base):
    __tablename__ = "generation_prompts"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(160))
    kind: Mapped[str] = mapped_column(String(16), default="plan")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_role_id: Mapped[int | None] = mapped_column(ForeignKey("ai_roles.id"))
    must_haves_id: Mapped[int | None] = mapped_column(ForeignKey("must_haves.id"))
    rule_set_id: Mapped[int | None] = mapped_column(ForeignKey("rule_sets.id"))
    return_format_id: Mapped[int | None] = mapped_column(ForeignKey("return_formats.id"))

    ai_role: Mapped[AiRole | None] = relationship()
    must_haves: Mapped[MustHaves | None] = relationship()
    rule_set: Mapped[RuleSet | None] = relationship()
    return_format: Mapped[ReturnFormat | None] = relationship()
    instructions: Mapped[list["PromptInstruction"]] = relationship(order_by="PromptInstruction.position")


class PromptInstruction(Base):
    __tablename__ = "prompt_instructions"
    id: Mapped[int] = mapped_column(primary_key=True)
    prompt_id: Mapped[int] = mapped_column(ForeignKey("generation_prompts.id"), index=True)
    title: Mapped[str] = mapped_column(String(160), default="")
    content: Mapped[str] = mapped_column(Text)
    position: Mapped[int] = mapped_column(Integer, default=0)

