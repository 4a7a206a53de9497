import logging
from typing import Any, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from api.deps import current_athlete_id, get_config_service, get_match_service, get_plan_service
from api.ratelimit import limiter
from api.schemas import (
    ActivityRecordResponse,
    ActivityResponse,
    AiRoleResponse,
    DayDetailResponse,
    DayResponse,
    ExecutedDayResponse,
    MustHavesResponse,
    PhaseDetailResponse,
    PhaseOverviewResponse,
    PhaseWeekResponse,
    PlanDetailResponse,
    PlanResponse,
    PromptResponse,
    PromptTemplateResponse,
    RaceCreateResponse,
    RaceResponse,
    ReturnFormatResponse,
    RuleSetResponse,
    ScoreResponse,
    SimpleStatusResponse,
    WeekResponse,
)
from core.config import get_settings
from core.services.config_service import ConfigService
from core.services.match_service import MatchService
from core.services.plan_service import PlanService
from core.validators import (
    ActivityInput,
    AiRoleInput,
    AttachRaceInput,
    BaselineInput,
    ConfirmPlanInput,
    GoalTimeInput,
    MatchInput,
    MustHavesInput,
    PlanCreateInput,
    PreferredDaysInput,
    PromptInput,
    RaceCreateInput,
    ReturnFormatInput,
    RuleSetInput,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1")


@router.get("/health", response_model=SimpleStatusResponse, tags=["ops"])
def health():
    return SimpleStatusResponse(status="ok")


# -- Races --


@router.post("/races", response_model=RaceCreateResponse, tags=["races"])
def create_race(
    body: RaceCreateInput,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    race, created = service.find_or_create_race(athlete_id, **body.model_dump())
    return RaceCreateResponse(race=RaceResponse.model_validate(race), created=created)


@router.get("/races", response_model=list[RaceResponse], tags=["races"])
def search_races(
    q: str = Query("", max_length=120),
    limit: int = Query(20, ge=1, le=100),
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    del athlete_id
    return [RaceResponse.model_validate(r) for r in service.repo.search_races(q, limit)]


# -- Plans --


def _plan_detail(service: PlanService, plan) -> PlanDetailResponse:
    detail = PlanDetailResponse.model_validate(plan)
    detail.missing = service.missing_prerequisites(plan) if plan.status == "draft" else []
    return detail


@router.post("/plans", response_model=PlanDetailResponse, tags=["plans"])
def create_plan(
    body: PlanCreateInput,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    plan = service.create_draft_plan(athlete_id, race_id=body.race_id, start_date=body.start_date)
    return _plan_detail(service, plan)


@router.get("/plans", response_model=list[PlanResponse], tags=["plans"])
def list_plans(athlete_id: int = Depends(current_athlete_id), service: PlanService = Depends(get_plan_service)):
    return [PlanResponse.model_validate(p) for p in service.list_plans(athlete_id)]


@router.get("/plans/{plan_id}", response_model=PlanDetailResponse, tags=["plans"])
def get_plan(plan_id: int, athlete_id: int = Depends(current_athlete_id), service: PlanService = Depends(get_plan_service)):
    return _plan_detail(service, service.get_plan(athlete_id, plan_id))


@router.patch("/plans/{plan_id}/race", response_model=PlanDetailResponse, tags=["plans"])
def attach_race(
    plan_id: int,
    body: AttachRaceInput,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    return _plan_detail(service, service.attach_race(athlete_id, plan_id, body.race_id))


@router.patch("/plans/{plan_id}/goal", response_model=PlanDetailResponse, tags=["plans"])
def set_goal(
    plan_id: int,
    body: GoalTimeInput,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    return _plan_detail(service, service.set_goal_time(athlete_id, plan_id, body.goal_time))


@router.patch("/plans/{plan_id}/baseline", response_model=PlanDetailResponse, tags=["plans"])
def set_baseline(
    plan_id: int,
    body: BaselineInput,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    return _plan_detail(service, service.set_baseline(athlete_id, plan_id, body.five_k_pace, body.weekly_mileage))


@router.patch("/plans/{plan_id}/preferred-days", response_model=PlanDetailResponse, tags=["plans"])
def set_preferred_days(
    plan_id: int,
    body: PreferredDaysInput,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    return _plan_detail(service, service.set_preferred_days(athlete_id, plan_id, body.days))


@router.get("/plans/{plan_id}/phase-overview", response_model=PhaseOverviewResponse, tags=["plans"])
def phase_overview(plan_id: int, athlete_id: int = Depends(current_athlete_id), service: PlanService = Depends(get_plan_service)):
    return service.phase_overview(athlete_id, plan_id)


# -- Generation --


@router.post("/plans/{plan_id}/generate", tags=["generation"])
@limiter.limit(get_settings().generation_rate_limit)
def generate_preview(
    request: Request,
    response: Response,
    plan_id: int,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
) -> dict[str, Any]:
    del request, response
    return service.generate_preview(athlete_id, plan_id)


@router.get("/plans/{plan_id}/preview", tags=["generation"])
def get_preview(plan_id: int, athlete_id: int = Depends(current_athlete_id), service: PlanService = Depends(get_plan_service)) -> dict[str, Any]:
    return service.get_preview(athlete_id, plan_id)


@router.post("/plans/{plan_id}/confirm", response_model=PlanDetailResponse, tags=["generation"])
def confirm_plan(
    plan_id: int,
    body: Optional[ConfirmPlanInput] = None,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    candidate = body.plan if body is not None else None
    return _plan_detail(service, service.confirm_plan(athlete_id, plan_id, candidate))


@router.post("/plans/{plan_id}/weeks/{week_number}/generate", response_model=WeekResponse, tags=["generation"])
@limiter.limit(get_settings().generation_rate_limit)
def generate_week(
    request: Request,
    response: Response,
    plan_id: int,
    week_number: int,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    del request, response
    week = service.generate_week(athlete_id, plan_id, week_number)
    return WeekResponse.model_validate(service.get_week(athlete_id, plan_id, week.week_number))


@router.get("/plans/{plan_id}/weeks/{week_number}", response_model=WeekResponse, tags=["plans"])
def get_week(
    plan_id: int,
    week_number: int,
    athlete_id: int = Depends(current_athlete_id),
    service: PlanService = Depends(get_plan_service),
):
    return WeekResponse.model_validate(service.get_week(athlete_id, plan_id, week_number))


# -- Execution --


@router.post("/activities", response_model=ActivityRecordResponse, tags=["execution"])
def record_activity(
    body: ActivityInput,
    athlete_id: int = Depends(current_athlete_id),
    service: MatchService = Depends(get_match_service),
):
    activity, created = service.record_activity(athlete_id, **body.model_dump())
    matched = service.auto_match_activity(athlete_id, activity.id)
    return ActivityRecordResponse(
        activity=ActivityResponse.model_validate(activity),
        created=created,
        matched=ExecutedDayResponse.model_validate(matched) if matched is not None else None,
    )


@router.post("/days/{day_id}/match", response_model=ExecutedDayResponse, tags=["execution"])
def match_day(
    day_id: int,
    body: MatchInput,
    athlete_id: int = Depends(current_athlete_id),
    service: MatchService = Depends(get_match_service),
):
    return ExecutedDayResponse.model_validate(service.link_activity_to_day(athlete_id, day_id, body.activity_id))


@router.post("/executed-days/{executed_day_id}/score", response_model=ScoreResponse, tags=["execution"])
def score_executed_day(
    executed_day_id: int,
    athlete_id: int = Depends(current_athlete_id),
    service: MatchService = Depends(get_match_service),
):
    result = service.score_executed_day(athlete_id, executed_day_id)
    return ScoreResponse(
        executed_day_id=result.executed_day_id,
        score=result.score,
        previous_five_k_pace=result.previous_five_k_pace,
        five_k_pace=result.five_k_pace,
        five_k_pace_seconds=result.five_k_pace_seconds,
    )


# -- Planned detail --


@router.get("/days/{day_id}", response_model=DayDetailResponse, tags=["plans"])
def get_day(day_id: int, athlete_id: int = Depends(current_athlete_id), service: PlanService = Depends(get_plan_service)):
    day, executed = service.get_day(athlete_id, day_id)
    return DayDetailResponse(
        plan_id=day.plan_id,
        plan_name=day.week.plan.name,
        phase_id=day.phase_id,
        phase_name=day.phase.name,
        week_number=day.week.week_number,
        day=DayResponse.model_validate(day),
        executed=ExecutedDayResponse.model_validate(executed) if executed is not None else None,
        activity=ActivityResponse.model_validate(executed.activity) if executed is not None else None,
    )


@router.get("/phases/{phase_id}", response_model=PhaseDetailResponse, tags=["plans"])
def get_phase(phase_id: int, athlete_id: int = Depends(current_athlete_id), service: PlanService = Depends(get_plan_service)):
    phase, weeks, total_miles = service.get_phase(athlete_id, phase_id)
    return PhaseDetailResponse(
        id=phase.id,
        plan_id=phase.plan_id,
        name=phase.name,
        week_count=phase.week_count,
        start_date=phase.start_date,
        end_date=phase.end_date,
        target_miles=phase.target_miles,
        total_miles=total_miles,
        weeks=[PhaseWeekResponse.model_validate(w) for w in weeks],
    )


# -- Generation configuration --


@router.get("/config/ai-roles", response_model=list[AiRoleResponse], tags=["config"])
def list_ai_roles(athlete_id: int = Depends(current_athlete_id), service: ConfigService = Depends(get_config_service)):
    del athlete_id
    return [AiRoleResponse.model_validate(r) for r in service.list_ai_roles()]


@router.post("/config/ai-roles", response_model=AiRoleResponse, status_code=201, tags=["config"])
def create_ai_role(
    body: AiRoleInput,
    athlete_id: int = Depends(current_athlete_id),
    service: ConfigService = Depends(get_config_service),
):
    del athlete_id
    return AiRoleResponse.model_validate(service.create_ai_role(body.name, body.content))


@router.get("/config/must-haves", response_model=list[MustHavesResponse], tags=["config"])
def list_must_haves(athlete_id: int = Depends(current_athlete_id), service: ConfigService = Depends(get_config_service)):
    del athlete_id
    return [MustHavesResponse.model_validate(m) for m in service.list_must_haves()]


@router.post("/config/must-haves", response_model=MustHavesResponse, status_code=201, tags=["config"])
def create_must_haves(
    body: MustHavesInput,
    athlete_id: int = Depends(current_athlete_id),
    service: ConfigService = Depends(get_config_service),
):
    del athlete_id
    return MustHavesResponse.model_validate(service.create_must_haves(body.name, body.fields))


@router.get("/config/return-formats", response_model=list[ReturnFormatResponse], tags=["config"])
def list_return_formats(athlete_id: int = Depends(current_athlete_id), service: ConfigService = Depends(get_config_service)):
    del athlete_id
    return [ReturnFormatResponse.model_validate(f) for f in service.list_return_formats()]


@router.post("/config/return-formats", response_model=ReturnFormatResponse, status_code=201, tags=["config"])
def create_return_format(
    body: ReturnFormatInput,
    athlete_id: int = Depends(current_athlete_id),
    service: ConfigService = Depends(get_config_service),
):
    del athlete_id
    created = service.create_return_format(body.name, body.json_schema, body.example_json)
    return ReturnFormatResponse.model_validate(created)


@router.get("/config/rule-sets", response_model=list[RuleSetResponse], tags=["config"])
def list_rule_sets(athlete_id: int = Depends(current_athlete_id), service: ConfigService = Depends(get_config_service)):
    del athlete_id
    return [RuleSetResponse.model_validate(r) for r in service.list_rule_sets()]


@router.post("/config/rule-sets", response_model=RuleSetResponse, status_code=201, tags=["config"])
def create_rule_set(
    body: RuleSetInput,
    athlete_id: int = Depends(current_athlete_id),
    service: ConfigService = Depends(get_config_service),
):
    del athlete_id
    rule_set = service.create_rule_set(body.name, [(t.name, t.rules) for t in body.topics])
    return RuleSetResponse.model_validate(rule_set)


@router.get("/prompts", response_model=list[PromptResponse], tags=["config"])
def list_prompts(
    kind: Optional[Literal["plan", "week"]] = None,
    athlete_id: int = Depends(current_athlete_id),
    service: ConfigService = Depends(get_config_service),
):
    del athlete_id
    return [PromptResponse.model_validate(p) for p in service.list_prompts(kind)]


@router.post("/prompts", response_model=PromptResponse, status_code=201, tags=["config"])
def create_prompt(
    body: PromptInput,
    athlete_id: int = Depends(current_athlete_id),
    service: ConfigService = Depends(get_config_service),
):
    del athlete_id
    values = body.model_dump(exclude={"instructions"})
    prompt = service.create_prompt(instructions=[(i.title, i.content) for i in body.instructions], **values)
    return PromptResponse.model_validate(prompt)


@router.post("/prompts/{prompt_id}/default", response_model=PromptResponse, tags=["config"])
def set_default_prompt(
    prompt_id: int,
    athlete_id: int = Depends(current_athlete_id),
    service: ConfigService = Depends(get_config_service),
):
    del athlete_id
    return PromptResponse.model_validate(service.set_default_prompt(prompt_id))


@router.get("/prompts/{prompt_id}/template", response_model=PromptTemplateResponse, tags=["config"])
def get_prompt_template(
    prompt_id: int,
    athlete_id: int = Depends(current_athlete_id),
    service: ConfigService = Depends(get_config_service),
):
    del athlete_id
    return PromptTemplateResponse(prompt_id=prompt_id, template=service.render_template(prompt_id))
