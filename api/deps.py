from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from api.auth import AuthPrincipal, get_current_principal
from core.services.config_service import ConfigService
from core.services.match_service import MatchService
from core.services.plan_service import PlanService


def get_db(request: Request) -> Generator[Session, None, None]:
    session = request.app.state.db.session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_plan_service(request: Request, db: Session = Depends(get_db)) -> PlanService:
    state = request.app.state
    return PlanService(db, state.settings, state.generator, state.preview_cache)


def get_match_service(db: Session = Depends(get_db)) -> MatchService:
    return MatchService(db)


def current_athlete_id(principal: AuthPrincipal = Depends(get_current_principal)) -> int:
    return principal.athlete_id


def get_config_service(db: Session = Depends(get_db)) -> ConfigService:
    return ConfigService(db)
