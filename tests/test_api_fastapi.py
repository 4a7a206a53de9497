from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import plan_json, week_json
from core.config import get_settings
from core.services.pace import METERS_PER_MILE


@pytest.fixture
def client(monkeypatch, settings, database, generator, preview_cache):
    monkeypatch.setenv("JWT_SECRET_KEY", "api-test-secret")
    get_settings.cache_clear()
    from api.main import create_app

    app = create_app(settings=settings, database=database, generator=generator, preview_cache=preview_cache)
    with TestClient(app) as c:
        yield c
    get_settings.cache_clear()


def _auth(athlete_id: int = 1) -> dict[str, str]:
    from api.auth import issue_access_token

    return {"Authorization": f"Bearer {issue_access_token(athlete_id=athlete_id)}"}


def _ready_plan(client) -> int:
    race = client.post(
        "/api/v1/races",
        json={"name": "Spring Half", "race_type": "Half Marathon", "race_date": "2026-04-29", "city": "Leeds"},
        headers=_auth(),
    )
    assert race.status_code == 200
    assert race.json()["created"] is True
    race_id = race.json()["race"]["id"]

    plan = client.post("/api/v1/plans", json={"race_id": race_id, "start_date": "2026-01-07"}, headers=_auth())
    assert plan.status_code == 200
    body = plan.json()
    assert body["total_weeks"] == 16
    assert body["missing"] == ["goal_time", "five_k_pace", "weekly_mileage", "preferred_days"]
    plan_id = body["id"]

    assert client.patch(f"/api/v1/plans/{plan_id}/goal", json={"goal_time": "1:45"}, headers=_auth()).status_code == 200
    assert (
        client.patch(
            f"/api/v1/plans/{plan_id}/baseline", json={"five_k_pace": "7:30", "weekly_mileage": 25}, headers=_auth()
        ).status_code
        == 200
    )
    days = client.patch(f"/api/v1/plans/{plan_id}/preferred-days", json={"days": [7, 1, 3, 5, 6]}, headers=_auth())
    assert days.status_code == 200
    assert days.json()["preferred_days"] == [1, 3, 5, 6, 7]
    assert days.json()["missing"] == []
    return plan_id


def test_health_is_public(client):
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_auth_required(client):
    resp = client.get("/api/v1/plans")
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "AUTH_REQUIRED"


def test_request_id_is_echoed(client):
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"
    assert client.get("/api/v1/health").headers["X-Request-ID"]


def test_race_search(client):
    _ready_plan(client)
    resp = client.get("/api/v1/races", params={"q": "spring"}, headers=_auth())
    assert resp.status_code == 200
    assert [r["name"] for r in resp.json()] == ["Spring Half"]
    assert client.get("/api/v1/races", params={"q": "autumn"}, headers=_auth()).json() == []


def test_invalid_body_is_422(client):
    resp = client.post("/api/v1/races", json={"name": "X", "race_type": "ultra", "race_date": "2026-04-29"}, headers=_auth())
    assert resp.status_code == 422


def test_format_error_maps_to_422(client):
    plan_id = _ready_plan(client)
    resp = client.patch(f"/api/v1/plans/{plan_id}/goal", json={"goal_time": "1:75"}, headers=_auth())
    assert resp.status_code == 422
    assert resp.json()["detail"]["code"] == "FORMAT_ERROR"
    assert resp.json()["detail"]["field"] == "goal_time"


def test_generate_before_inputs_is_409(client, generator):
    plan = client.post("/api/v1/plans", json={"start_date": "2026-01-07"}, headers=_auth()).json()
    resp = client.post(f"/api/v1/plans/{plan['id']}/generate", headers=_auth())
    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["code"] == "PREREQUISITE_ERROR"
    assert "race" in detail["missing"]
    assert generator.requests == []


def test_schema_violation_maps_to_502(client, generator):
    plan_id = _ready_plan(client)
    broken = plan_json()
    broken["phases"].reverse()
    generator.queue(broken)
    resp = client.post(f"/api/v1/plans/{plan_id}/generate", headers=_auth())
    assert resp.status_code == 502
    assert resp.json()["detail"]["code"] == "ORDER_ERROR"


def test_other_athletes_plan_is_404(client):
    plan_id = _ready_plan(client)
    resp = client.get(f"/api/v1/plans/{plan_id}", headers=_auth(athlete_id=2))
    assert resp.status_code == 404
    assert resp.json()["detail"]["code"] == "NOT_FOUND"


def test_full_plan_lifecycle(client, generator):
    plan_id = _ready_plan(client)

    overview = client.get(f"/api/v1/plans/{plan_id}/phase-overview", headers=_auth()).json()
    assert overview["proposed"] is True

    generator.queue(plan_json())
    preview = client.post(f"/api/v1/plans/{plan_id}/generate", headers=_auth())
    assert preview.status_code == 200
    assert preview.json()["phases"][0]["startDate"] == "2026-01-07"
    assert client.get(f"/api/v1/plans/{plan_id}/preview", headers=_auth()).json() == preview.json()

    confirmed = client.post(f"/api/v1/plans/{plan_id}/confirm", headers=_auth())
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "active"

    week1 = client.get(f"/api/v1/plans/{plan_id}/weeks/1", headers=_auth()).json()
    assert [d["date"] for d in week1["days"]] == ["2026-01-07", "2026-01-08", "2026-01-09", "2026-01-10", "2026-01-11"]
    assert week1["days"][0]["workout"][0]["pace_goal"] == "8:00"

    skipped = client.post(f"/api/v1/plans/{plan_id}/weeks/3/generate", headers=_auth())
    assert skipped.status_code == 409
    assert skipped.json()["detail"]["missing"] == ["week 2"]

    generator.queue({"week": week_json(2, [1, 3, 5, 6, 7])})
    week2 = client.post(f"/api/v1/plans/{plan_id}/weeks/2/generate", headers=_auth())
    assert week2.status_code == 200
    assert week2.json()["week_number"] == 2
    assert week2.json()["days"][0]["date"] == "2026-01-12"

    again = client.post(f"/api/v1/plans/{plan_id}/weeks/2/generate", headers=_auth())
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "CONFLICT"

    overview = client.get(f"/api/v1/plans/{plan_id}/phase-overview", headers=_auth()).json()
    assert overview["proposed"] is False
    assert overview["generated_weeks"] == [1, 2]


def test_activity_matching_and_scoring(client, generator):
    plan_id = _ready_plan(client)
    generator.queue(plan_json())
    client.post(f"/api/v1/plans/{plan_id}/generate", headers=_auth())
    client.post(f"/api/v1/plans/{plan_id}/confirm", headers=_auth())

    activity = {
        "source": "strava",
        "source_activity_id": "9001",
        "activity_type": "Run",
        "start_time": "2026-01-07T07:00:00",
        "distance_m": 4 * METERS_PER_MILE,
        "average_speed": METERS_PER_MILE / 480,
        "average_heart_rate": 145,
    }
    recorded = client.post("/api/v1/activities", json=activity, headers=_auth())
    assert recorded.status_code == 200
    body = recorded.json()
    assert body["created"] is True
    assert body["matched"]["date"] == "2026-01-07"

    duplicate = client.post("/api/v1/activities", json=activity, headers=_auth()).json()
    assert duplicate["created"] is False
    assert duplicate["matched"]["id"] == body["matched"]["id"]

    scored = client.post(f"/api/v1/executed-days/{body['matched']['id']}/score", headers=_auth())
    assert scored.status_code == 200
    assert scored.json()["previous_five_k_pace"] == "7:30"
    assert scored.json()["five_k_pace"] == "7:29"


def test_manual_match(client, generator):
    plan_id = _ready_plan(client)
    generator.queue(plan_json())
    client.post(f"/api/v1/plans/{plan_id}/generate", headers=_auth())
    client.post(f"/api/v1/plans/{plan_id}/confirm", headers=_auth())
    day_id = client.get(f"/api/v1/plans/{plan_id}/weeks/1", headers=_auth()).json()["days"][1]["id"]

    activity = {"source_activity_id": "m-1", "start_time": "2026-01-20T18:00:00", "distance_m": 6000}
    recorded = client.post("/api/v1/activities", json=activity, headers=_auth()).json()
    assert recorded["matched"] is None

    linked = client.post(f"/api/v1/days/{day_id}/match", json={"activity_id": recorded["activity"]["id"]}, headers=_auth())
    assert linked.status_code == 200
    assert linked.json()["day_id"] == day_id
    assert linked.json()["plan_snapshot"]["mileage"] == 4.0


def _active_plan(client, generator) -> int:
    plan_id = _ready_plan(client)
    generator.queue(plan_json())
    client.post(f"/api/v1/plans/{plan_id}/generate", headers=_auth())
    client.post(f"/api/v1/plans/{plan_id}/confirm", headers=_auth())
    return plan_id


def test_day_detail(client, generator):
    plan_id = _active_plan(client, generator)
    day_id = client.get(f"/api/v1/plans/{plan_id}/weeks/1", headers=_auth()).json()["days"][0]["id"]

    detail = client.get(f"/api/v1/days/{day_id}", headers=_auth())
    assert detail.status_code == 200
    body = detail.json()
    assert body["plan_name"] == "Spring Half Training Plan"
    assert body["phase_name"] == "base"
    assert body["week_number"] == 1
    assert body["day"]["date"] == "2026-01-07"
    assert body["executed"] is None and body["activity"] is None

    activity = {"source_activity_id": "d-1", "start_time": "2026-01-07T07:00:00", "distance_m": 4 * METERS_PER_MILE}
    client.post("/api/v1/activities", json=activity, headers=_auth())
    body = client.get(f"/api/v1/days/{day_id}", headers=_auth()).json()
    assert body["executed"]["day_id"] == day_id
    assert body["activity"]["source_activity_id"] == "d-1"

    assert client.get(f"/api/v1/days/{day_id}", headers=_auth(athlete_id=2)).status_code == 404


def test_phase_detail(client, generator):
    plan_id = _active_plan(client, generator)
    day_id = client.get(f"/api/v1/plans/{plan_id}/weeks/1", headers=_auth()).json()["days"][0]["id"]
    phase_id = client.get(f"/api/v1/days/{day_id}", headers=_auth()).json()["phase_id"]

    detail = client.get(f"/api/v1/phases/{phase_id}", headers=_auth())
    assert detail.status_code == 200
    body = detail.json()
    assert body["name"] == "base"
    assert body["week_count"] == 4
    assert body["target_miles"] == 100.0
    assert body["total_miles"] == 20.0
    assert [w["week_number"] for w in body["weeks"]] == [1]
    assert len(body["weeks"][0]["days"]) == 5

    assert client.get("/api/v1/phases/999", headers=_auth()).json()["detail"]["code"] == "NOT_FOUND"


def test_config_building_blocks(client):
    roles = client.get("/api/v1/config/ai-roles", headers=_auth())
    assert roles.status_code == 200
    assert [r["name"] for r in roles.json()] == ["Running coach"]

    created = client.post(
        "/api/v1/config/ai-roles", json={"name": "Trail coach", "content": "You coach trail runners."}, headers=_auth()
    )
    assert created.status_code == 201
    assert created.json()["name"] == "Trail coach"

    assert client.post("/api/v1/config/ai-roles", json={"name": "No content"}, headers=_auth()).status_code == 422

    fields = client.post("/api/v1/config/must-haves", json={"name": "Laps", "fields": {"laps": "lapIndex"}}, headers=_auth())
    assert fields.status_code == 201
    assert len(client.get("/api/v1/config/must-haves", headers=_auth()).json()) == 2

    fmt = client.post(
        "/api/v1/config/return-formats",
        json={"name": "Tiny week", "json_schema": {"week": {"days": []}}},
        headers=_auth(),
    )
    assert fmt.status_code == 201
    assert fmt.json()["json_schema"] == {"week": {"days": []}}
    formats = client.get("/api/v1/config/return-formats", headers=_auth()).json()
    assert [f["name"] for f in formats] == ["Plan with week 1", "Single week", "Tiny week"]

    rules = client.post(
        "/api/v1/config/rule-sets",
        json={"name": "Hills", "topics": [{"name": "Terrain", "rules": ["One hill session a week."]}]},
        headers=_auth(),
    )
    assert rules.status_code == 201
    assert rules.json()["topics"][0]["rules"][0]["text"] == "One hill session a week."
    assert client.post("/api/v1/config/rule-sets", json={"name": "Empty", "topics": []}, headers=_auth()).status_code == 422
    assert len(client.get("/api/v1/config/rule-sets", headers=_auth()).json()) == 2


def test_prompts(client):
    listed = client.get("/api/v1/prompts", params={"kind": "week"}, headers=_auth())
    assert listed.status_code == 200
    assert [p["name"] for p in listed.json()] == ["Default week"]

    role_id = client.get("/api/v1/config/ai-roles", headers=_auth()).json()[0]["id"]
    created = client.post(
        "/api/v1/prompts",
        json={
            "name": "Quick week",
            "kind": "week",
            "is_default": True,
            "ai_role_id": role_id,
            "instructions": [{"title": "Week", "content": "Write week {weekNumber}."}],
        },
        headers=_auth(),
    )
    assert created.status_code == 201
    prompt = created.json()
    assert prompt["is_default"] is True
    assert prompt["instructions"][0]["content"] == "Write week {weekNumber}."

    weeks = client.get("/api/v1/prompts", params={"kind": "week"}, headers=_auth()).json()
    assert [(p["name"], p["is_default"]) for p in weeks] == [("Default week", False), ("Quick week", True)]

    template = client.get(f"/api/v1/prompts/{prompt['id']}/template", headers=_auth()).json()["template"]
    assert "### Week" in template

    restored = client.post(f"/api/v1/prompts/{weeks[0]['id']}/default", headers=_auth())
    assert restored.json()["is_default"] is True

    missing = client.post("/api/v1/prompts", json={"name": "Broken", "ai_role_id": 999}, headers=_auth())
    assert missing.status_code == 404
    assert missing.json()["detail"]["field"] == "ai_role_id"
    assert client.post("/api/v1/prompts", json={"name": "Bad", "kind": "month"}, headers=_auth()).status_code == 422
