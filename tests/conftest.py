"""Shared fixtures: a seeded SQLite database and a scripted plan generator."""

from __future__ import annotations

import json
from datetime import date
from typing import Optional

import pytest

from core.config import Settings
from core.db import Database
from core.services.calendar import first_week_day_numbers
from core.services.preview_cache import PreviewCache
from core.services.prompt_assembler import GenerationRequest
from db.seed import seed_generation_prompts

PLAN_START = date(2026, 1, 7)  # Wednesday
RACE_DATE = date(2026, 4, 29)  # 16 weeks later
TODAY = date(2026, 1, 1)


def lap(index: int = 1, miles: float = 4.0, pace: Optional[str] = "8:00", hr: Optional[str] = "140-150") -> dict:
    return {"lapIndex": index, "distanceMiles": miles, "paceGoal": pace, "hrGoal": hr}


def day(number: int, miles: float = 4.0) -> dict:
    return {
        "dayNumber": number,
        "warmup": [],
        "workout": [lap(1, miles)],
        "cooldown": [],
        "notes": "Easy aerobic run.",
    }


def week_json(week_number: int, day_numbers: list[int], miles: float = 4.0) -> dict:
    return {"weekNumber": week_number, "days": [day(n, miles) for n in day_numbers]}


def plan_json(start: date = PLAN_START, counts: tuple[int, int, int, int] = (4, 6, 3, 3)) -> dict:
    names = ("base", "build", "peak", "taper")
    return {
        "phases": [{"name": n, "weekCount": c} for n, c in zip(names, counts)],
        "week": week_json(1, first_week_day_numbers(start)),
    }


class FakeGenerator:
    """Returns queued responses and records every request it receives."""

    def __init__(self, responses: Optional[list] = None):
        self.responses = list(responses or [])
        self.requests: list[GenerationRequest] = []

    def queue(self, payload) -> None:
        self.responses.append(payload)

    def generate(self, request: GenerationRequest) -> str:
        self.requests.append(request)
        if not self.responses:
            raise AssertionError("FakeGenerator has no queued response")
        payload = self.responses.pop(0)
        return payload if isinstance(payload, str) else json.dumps(payload)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(database_url=f"sqlite:///{tmp_path / 'coach.db'}", app_env="test")


@pytest.fixture
def database(settings) -> Database:
    db = Database(settings.database_url)
    db.create_all()
    with db.session_scope() as s:
        seed_generation_prompts(s)
    yield db
    db.dispose()


@pytest.fixture
def session(database):
    s = database.session()
    yield s
    s.close()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def preview_cache() -> PreviewCache:
    return PreviewCache(None, ttl_seconds=60)


@pytest.fixture
def plan_service(session, settings, generator, preview_cache):
    from core.services.plan_service import PlanService

    return PlanService(session, settings, generator, preview_cache, today=lambda: TODAY)
