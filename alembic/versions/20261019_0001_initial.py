"""initial schema"""

from alembic import op
import sqlalchemy as sa


revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "athletes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("display_name", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("five_k_pace", sa.String(length=8), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "races",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("name_key", sa.String(length=200), nullable=False),
        sa.Column("race_type", sa.String(length=12), nullable=False),
        sa.Column("miles", sa.Float(), nullable=False),
        sa.Column("race_date", sa.Date(), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("state", sa.String(length=80), nullable=True),
        sa.Column("country", sa.String(length=80), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=True),
        sa.UniqueConstraint("name_key", "race_date", name="uq_race_registry"),
    )

    op.create_table(
        "plans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("race_id", sa.Integer(), sa.ForeignKey("races.id"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False, server_default="My Training Plan"),
        sa.Column("goal_time", sa.String(length=12), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("total_weeks", sa.Integer(), nullable=False, server_default="16"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("current_five_k_pace", sa.String(length=8), nullable=True),
        sa.Column("current_weekly_mileage", sa.Float(), nullable=True),
        sa.Column("goal_race_pace", sa.Integer(), nullable=True),
        sa.Column("predicted_race_pace", sa.Integer(), nullable=True),
        sa.Column("preferred_days", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("total_weeks >= 1"),
    )
    op.create_index("ix_plans_athlete_id", "plans", ["athlete_id"])
    op.create_index("ix_plans_race_id", "plans", ["race_id"])

    op.create_table(
        "phases",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plans.id"), nullable=False),
        sa.Column("name", sa.String(length=16), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("week_count", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("target_miles", sa.Float(), nullable=True),
        sa.Column("total_miles", sa.Float(), nullable=True),
        sa.UniqueConstraint("plan_id", "name", name="uq_phase_plan_name"),
        sa.CheckConstraint("week_count >= 1"),
    )
    op.create_index("ix_phases_plan_id", "phases", ["plan_id"])

    op.create_table(
        "weeks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plans.id"), nullable=False),
        sa.Column("phase_id", sa.Integer(), sa.ForeignKey("phases.id"), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("miles", sa.Float(), nullable=True),
        sa.UniqueConstraint("plan_id", "week_number", name="uq_week_plan_number"),
    )
    op.create_index("ix_weeks_plan_id", "weeks", ["plan_id"])
    op.create_index("ix_weeks_phase_id", "weeks", ["phase_id"])

    op.create_table(
        "days",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plans.id"), nullable=False),
        sa.Column("phase_id", sa.Integer(), sa.ForeignKey("phases.id"), nullable=False),
        sa.Column("week_id", sa.Integer(), sa.ForeignKey("weeks.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("warmup", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("workout", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("cooldown", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("plan_id", "date", name="uq_day_plan_date"),
        sa.CheckConstraint("day_of_week between 1 and 7"),
    )
    op.create_index("ix_days_plan_id", "days", ["plan_id"])
    op.create_index("ix_days_week_id", "days", ["week_id"])
    op.create_index("ix_days_date", "days", ["date"])

    op.create_table(
        "activities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("source", sa.String(length=40), nullable=False, server_default="manual"),
        sa.Column("source_activity_id", sa.String(length=120), nullable=False),
        sa.Column("activity_type", sa.String(length=40), nullable=False, server_default="running"),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("duration_sec", sa.Integer(), nullable=True),
        sa.Column("distance_m", sa.Float(), nullable=True),
        sa.Column("average_speed", sa.Float(), nullable=True),
        sa.Column("average_heart_rate", sa.Integer(), nullable=True),
        sa.UniqueConstraint("source", "source_activity_id", name="uq_activity_source"),
    )
    op.create_index("ix_activities_athlete_id", "activities", ["athlete_id"])
    op.create_index("ix_activities_start_time", "activities", ["start_time"])

    op.create_table(
        "executed_days",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("athlete_id", sa.Integer(), sa.ForeignKey("athletes.id"), nullable=False),
        sa.Column("activity_id", sa.Integer(), sa.ForeignKey("activities.id"), nullable=False, unique=True),
        sa.Column("day_id", sa.Integer(), sa.ForeignKey("days.id"), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("plan_snapshot", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("score", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_executed_days_athlete_id", "executed_days", ["athlete_id"])
    op.create_index("ix_executed_days_day_id", "executed_days", ["day_id"])
    op.create_index("ix_executed_days_athlete_date", "executed_days", ["athlete_id", "date"])

    op.create_table(
        "ai_roles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
    )
    op.create_table(
        "must_haves",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("fields", sa.JSON(), nullable=False, server_default="{}"),
    )
    op.create_table(
        "return_formats",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("schema_json", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("example_json", sa.JSON(), nullable=True),
    )
    op.create_table(
        "rule_sets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
    )
    op.create_table(
        "rule_set_topics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("rule_set_id", sa.Integer(), sa.ForeignKey("rule_sets.id"), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_rule_set_topics_rule_set_id", "rule_set_topics", ["rule_set_id"])
    op.create_table(
        "rule_set_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("rule_set_topics.id"), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_rule_set_items_topic_id", "rule_set_items", ["topic_id"])
    op.create_table(
        "generation_prompts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False, server_default="plan"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ai_role_id", sa.Integer(), sa.ForeignKey("ai_roles.id"), nullable=True),
        sa.Column("must_haves_id", sa.Integer(), sa.ForeignKey("must_haves.id"), nullable=True),
        sa.Column("rule_set_id", sa.Integer(), sa.ForeignKey("rule_sets.id"), nullable=True),
        sa.Column("return_format_id", sa.Integer(), sa.ForeignKey("return_formats.id"), nullable=True),
    )
    op.create_table(
        "prompt_instructions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("prompt_id", sa.Integer(), sa.ForeignKey("generation_prompts.id"), nullable=False),
        sa.Column("title", sa.String(length=160), nullable=False, server_default=""),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_prompt_instructions_prompt_id", "prompt_instructions", ["prompt_id"])


def downgrade() -> None:
    for table in (
        "prompt_instructions",
        "generation_prompts",
        "rule_set_items",
        "rule_set_topics",
        "rule_sets",
        "return_formats",
        "must_haves",
        "ai_roles",
        "executed_days",
        "activities",
        "days",
        "weeks",
        "phases",
        "plans",
        "races",
        "athletes",
    ):
        op.drop_table(table)
