import pytest
from fastapi import HTTPException

from api.auth import decode_access_token, get_current_principal, issue_access_token
from core.config import get_settings


@pytest.fixture(autouse=True)
def _jwt_secret(monkeypatch):
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_token_round_trip():
    principal = decode_access_token(issue_access_token(athlete_id=42))
    assert principal.athlete_id == 42


def test_tampered_token_rejected():
    token = issue_access_token(athlete_id=42)
    header, payload, signature = token.split(".")
    forged = issue_access_token(athlete_id=7).split(".")[1]
    with pytest.raises(HTTPException) as exc:
        decode_access_token(f"{header}.{forged}.{signature}")
    assert exc.value.status_code == 401
    assert exc.value.detail["code"] == "INVALID_TOKEN"


def test_token_signed_with_other_secret_rejected(monkeypatch):
    token = issue_access_token(athlete_id=42)
    monkeypatch.setenv("JWT_SECRET_KEY", "rotated")
    get_settings.cache_clear()
    with pytest.raises(HTTPException):
        decode_access_token(token)


def test_expired_token():
    with pytest.raises(HTTPException) as exc:
        decode_access_token(issue_access_token(athlete_id=1, expires_in_seconds=-5))
    assert exc.value.detail["code"] == "TOKEN_EXPIRED"


def test_malformed_token():
    with pytest.raises(HTTPException) as exc:
        decode_access_token("not-a-token")
    assert exc.value.detail["code"] == "INVALID_TOKEN"


def test_missing_credentials():
    with pytest.raises(HTTPException) as exc:
        get_current_principal(None)
    assert exc.value.detail["code"] == "AUTH_REQUIRED"
